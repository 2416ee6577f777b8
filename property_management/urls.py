"""
URL configuration for the property management API.

Included by the project URLs at /api/v1/pm/, giving:

/api/v1/pm/properties/                    -> PropertyViewSet
/api/v1/pm/units/?propertyId=<id>         -> UnitViewSet
/api/v1/pm/units/{id}/status/             -> unit status change (POST)
/api/v1/pm/tenant-profiles/               -> TenantProfileViewSet
/api/v1/pm/leases/                        -> LeaseViewSet
/api/v1/pm/leases/{id}/terminate/         -> terminate (POST)
/api/v1/pm/leases/{id}/revisions/         -> revision history (GET)
/api/v1/pm/payments/                      -> PaymentViewSet
/api/v1/pm/payments/{id}/mark-paid/       -> record a payment (POST)
/api/v1/pm/maintenance/                   -> MaintenanceRequestViewSet
/api/v1/pm/maintenance/{id}/assign/       -> assign (POST)
/api/v1/pm/maintenance/{id}/status/       -> status change (POST)
/api/v1/pm/documents/                     -> PropertyDocumentViewSet (multipart upload)
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    LeaseViewSet,
    MaintenanceRequestViewSet,
    PaymentViewSet,
    PropertyDocumentViewSet,
    PropertyViewSet,
    TenantProfileViewSet,
    UnitViewSet,
)

router = DefaultRouter()
router.register(r'properties', PropertyViewSet, basename='pm-property')
router.register(r'units', UnitViewSet, basename='pm-unit')
router.register(r'tenant-profiles', TenantProfileViewSet, basename='pm-tenant-profile')
router.register(r'leases', LeaseViewSet, basename='pm-lease')
router.register(r'payments', PaymentViewSet, basename='pm-payment')
router.register(r'maintenance', MaintenanceRequestViewSet, basename='pm-maintenance')
router.register(r'documents', PropertyDocumentViewSet, basename='pm-document')

urlpatterns = [
    path('', include(router.urls)),
]
