"""Back-office pages, namespaced as 'dashboard'."""

from django.urls import path

from leads import pages as lead_pages
from listings import pages as listing_pages
from property_management import pages as pm_pages
from tenancy.pages import TenantSettingsView

from .views import DashboardHomeView

app_name = 'dashboard'

urlpatterns = [
    path('', DashboardHomeView.as_view(), name='home'),
    path('settings/', TenantSettingsView.as_view(), name='settings'),

    # Listings
    path('listings/', listing_pages.ListingListView.as_view(), name='listings'),
    path('listings/new/', listing_pages.ListingCreateView.as_view(), name='listing-create'),
    path('listings/import/', listing_pages.ListingImportView.as_view(), name='listing-import'),
    path('listings/geocode/', listing_pages.ListingGeocodeBackfillView.as_view(), name='listing-geocode'),
    path('listings/<int:pk>/edit/', listing_pages.ListingUpdateView.as_view(), name='listing-edit'),
    path('listings/<int:pk>/status/', listing_pages.ListingStatusView.as_view(), name='listing-status'),
    path('listings/<int:pk>/delete/', listing_pages.ListingDeleteView.as_view(), name='listing-delete'),
    path('listings/<int:pk>/convert/', listing_pages.ListingConvertView.as_view(), name='listing-convert'),

    # Leads
    path('leads/', lead_pages.LeadListView.as_view(), name='leads'),
    path('leads/export/', lead_pages.LeadExportView.as_view(), name='lead-export'),
    path('leads/<int:pk>/', lead_pages.LeadDetailView.as_view(), name='lead-detail'),
    path('leads/<int:pk>/delete/', lead_pages.LeadDeleteView.as_view(), name='lead-delete'),

    # Property management
    path('pm/', pm_pages.OverviewView.as_view(), name='pm-overview'),
    path('pm/properties/', pm_pages.PropertyListView.as_view(), name='pm-properties'),
    path('pm/properties/new/', pm_pages.PropertyCreateView.as_view(), name='pm-property-create'),
    path('pm/properties/<int:pk>/', pm_pages.PropertyDetailView.as_view(), name='pm-property-detail'),
    path('pm/properties/<int:pk>/units/', pm_pages.UnitCreateView.as_view(), name='pm-unit-create'),
    path('pm/tenants/', pm_pages.TenantProfileListView.as_view(), name='pm-tenant-profiles'),
    path('pm/tenants/new/', pm_pages.TenantProfileCreateView.as_view(), name='pm-tenant-profile-create'),
    path('pm/leases/', pm_pages.LeaseListView.as_view(), name='pm-leases'),
    path('pm/leases/new/', pm_pages.LeaseCreateView.as_view(), name='pm-lease-create'),
    path('pm/leases/<int:pk>/terminate/', pm_pages.LeaseTerminateView.as_view(), name='pm-lease-terminate'),
    path('pm/payments/', pm_pages.PaymentListView.as_view(), name='pm-payments'),
    path('pm/payments/<int:pk>/mark-paid/', pm_pages.PaymentMarkPaidView.as_view(), name='pm-payment-mark-paid'),
    path('pm/maintenance/', pm_pages.MaintenanceListView.as_view(), name='pm-maintenance'),
    path('pm/maintenance/new/', pm_pages.MaintenanceCreateView.as_view(), name='pm-maintenance-create'),
    path('pm/maintenance/<int:pk>/status/', pm_pages.MaintenanceStatusView.as_view(), name='pm-maintenance-status'),
    path('pm/maintenance/<int:pk>/assign/', pm_pages.MaintenanceAssignView.as_view(), name='pm-maintenance-assign'),
]
