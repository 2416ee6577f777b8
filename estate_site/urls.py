"""
URL configuration for the estate_site project.

URL Structure Overview:
========================

/                                - Public site (home, search, listing pages)
/dashboard/                      - Back office (listings, leads, property management)
/accounts/login/ /accounts/logout/
/admin/                          - Django admin interface
/sitemap.xml /robots.txt         - Per-tenant crawler files
/whatsapp/track/                 - WhatsApp click tracking redirect
/api/v1/health/                  - Health check (SELECT 1)
/api/v1/info/                    - API information
/api/v1/auth/token/              - JWT token authentication
/api/v1/listings/                - Listing API
/api/v1/leads/                   - Lead API
/api/v1/pm/                      - Property management API
/api/v1/geocode/                 - Address geocoding proxy
/api/v1/places/autocomplete/     - Address autocomplete proxy
"""

from django.conf import settings
from django.contrib import admin
from django.contrib.auth import views as auth_views
from django.urls import include, path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

from listings.pages import robots_txt, sitemap_xml, whatsapp_track

from .views import (
    api_info,
    custom_404_handler,
    custom_500_handler,
    geocode_address,
    health_check,
    places_autocomplete,
)

urlpatterns = [
    # Django Admin Interface
    path('admin/', admin.site.urls),

    # Session auth for the back office
    path('accounts/login/', auth_views.LoginView.as_view(), name='login'),
    path('accounts/logout/', auth_views.LogoutView.as_view(), name='logout'),

    # =============================================================================
    # API VERSION 1 - Main API Endpoints
    # =============================================================================

    # Health and System Status
    path('api/v1/health/', health_check, name='health-check'),
    path('api/v1/info/', api_info, name='api-info'),

    # Authentication Endpoints (JWT)
    path('api/v1/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/v1/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/v1/auth/token/verify/', TokenVerifyView.as_view(), name='token_verify'),

    # Utility Endpoints
    path('api/v1/geocode/', geocode_address, name='geocode-proxy'),
    path('api/v1/places/autocomplete/', places_autocomplete, name='places-autocomplete'),

    # Core Application Endpoints
    path('api/v1/pm/', include('property_management.urls')),
    path('api/v1/', include('listings.urls')),
    path('api/v1/', include('leads.urls')),

    # =============================================================================
    # SITE PAGES
    # =============================================================================

    path('sitemap.xml', sitemap_xml, name='sitemap'),
    path('robots.txt', robots_txt, name='robots'),
    path('whatsapp/track/', whatsapp_track, name='whatsapp-track'),
    path('dashboard/', include('estate_site.dashboard_urls')),
    path('', include('estate_site.public_urls')),
]


# =============================================================================
# DEVELOPMENT URL PATTERNS
# =============================================================================

if settings.DEBUG:
    from django.conf.urls.static import static

    urlpatterns += [
        *static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT),
        path('api-auth/', include('rest_framework.urls')),
    ]


# Register custom error handlers
handler404 = custom_404_handler
handler500 = custom_500_handler
