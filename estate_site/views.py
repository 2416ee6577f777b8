"""
Project-level views for the estate site.

- health_check / api_info: deployment monitoring and API discovery
- geocode_address / places_autocomplete: Google proxies that keep the
  API key server-side
- DashboardHomeView: back-office landing page
- custom_404_handler / custom_500_handler: JSON errors under /api/
"""

import json
import logging
import sys

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views.decorators.cache import cache_control
from django.views.decorators.http import require_http_methods
from django.views.defaults import page_not_found, server_error
from django.views.generic import TemplateView

from leads.services import LeadService
from listings.models import Listing
from property_management.services import get_overview_stats
from services.geocoding import GeocodingError, geocoding_service
from tenancy.features import is_property_management_enabled
from tenancy.models import Tenant
from tenancy.permissions import tenant_role_required

logger = logging.getLogger(__name__)


# =============================================================================
# HEALTH CHECK ENDPOINT
# =============================================================================

@require_http_methods(["GET"])
@cache_control(no_cache=True, must_revalidate=True, no_store=True)
def health_check(request):
    """
    Health check endpoint for deployment monitoring.

    Returns:
        JSON response with system status and database connectivity
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.error(f"Health check failed: {str(e)}")
        return JsonResponse({
            "status": "unhealthy",
            "database": "error",
            "error": str(e) if settings.DEBUG else "Database connection failed",
        }, status=503)

    return JsonResponse({
        "status": "healthy",
        "database": "connected",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}",
        "timestamp": timezone.now().isoformat(),
    })


# =============================================================================
# API INFO ENDPOINT
# =============================================================================

@require_http_methods(["GET"])
def api_info(request):
    """API information endpoint listing the available routes."""
    data = {
        "api_name": "Estate Site API",
        "version": "1.0",
        "description": "Multi-tenant real-estate listings, leads and property management",
        "endpoints": {
            "authentication": {
                "token_obtain": "/api/v1/auth/token/",
                "token_refresh": "/api/v1/auth/token/refresh/",
                "token_verify": "/api/v1/auth/token/verify/",
            },
            "listings": {
                "list_create": "/api/v1/listings/",
                "search": "/api/v1/listings/search/",
                "import": "/api/v1/listings/import/",
                "geocode_backfill": "/api/v1/listings/geocode-backfill/",
                "media_upload": "/api/v1/listings/{id}/media/",
                "convert": "/api/v1/listings/{id}/convert-to-property/",
            },
            "leads": {
                "list_create": "/api/v1/leads/",
                "export": "/api/v1/leads/export/",
                "metrics": "/api/v1/leads/metrics/",
            },
            "property_management": {
                "properties": "/api/v1/pm/properties/",
                "units": "/api/v1/pm/units/",
                "tenant_profiles": "/api/v1/pm/tenant-profiles/",
                "leases": "/api/v1/pm/leases/",
                "payments": "/api/v1/pm/payments/",
                "maintenance": "/api/v1/pm/maintenance/",
                "documents": "/api/v1/pm/documents/",
            },
            "utilities": {
                "health": "/api/v1/health/",
                "geocode": "/api/v1/geocode/",
                "places_autocomplete": "/api/v1/places/autocomplete/",
            },
        },
        "tenant": None,
    }

    tenant = getattr(request, "tenant", None)
    if tenant is not None:
        data["tenant"] = {
            "slug": tenant.slug,
            "name": tenant.name,
            "active_listings": Listing.objects.filter(tenant=tenant).active().count(),
            "property_management": is_property_management_enabled(tenant),
        }
    data["tenants"] = Tenant.objects.count()

    return JsonResponse(data)


# =============================================================================
# GOOGLE PROXY ENDPOINTS
# =============================================================================

@require_http_methods(["POST"])
def geocode_address(request):
    """
    Geocoding proxy endpoint for frontend address validation.

    POST {"address": "10 Downing Street, London"}
    """
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return JsonResponse({"error": "Invalid JSON data"}, status=400)

    address = (data.get("address") or "").strip() if isinstance(data, dict) else ""
    if not address:
        return JsonResponse({"error": "Address parameter required"}, status=400)

    try:
        latitude, longitude = geocoding_service.geocode_or_raise(address)
    except GeocodingError as e:
        logger.warning(f"Geocode proxy failed for '{address}': {str(e)}")
        return JsonResponse({"error": "Address not found", "status": "not_found"}, status=404)

    return JsonResponse({
        "latitude": latitude,
        "longitude": longitude,
        "address": address,
        "status": "success",
    })


@require_http_methods(["GET"])
def places_autocomplete(request):
    """GET /api/v1/places/autocomplete/?input=10+Downi&sessiontoken=..."""
    text = request.GET.get("input", "")
    try:
        predictions = geocoding_service.autocomplete(text, request.GET.get("sessiontoken"))
    except GeocodingError as e:
        logger.warning(f"Places autocomplete failed: {str(e)}")
        return JsonResponse({"error": "Autocomplete service error", "predictions": []}, status=502)
    return JsonResponse({"predictions": predictions})


# =============================================================================
# BACK OFFICE HOME
# =============================================================================

@method_decorator(tenant_role_required(), name="dispatch")
class DashboardHomeView(TemplateView):
    template_name = "dashboard/home.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tenant = self.request.tenant
        context["lead_metrics"] = LeadService(tenant).metrics()
        context["recent_leads"] = LeadService(tenant).list()[:5]
        context["listing_counts"] = {
            "active": Listing.objects.filter(tenant=tenant).active().count(),
            "total": Listing.objects.filter(tenant=tenant).count(),
        }
        if is_property_management_enabled(tenant):
            context["pm_stats"] = get_overview_stats(tenant)
        return context


# =============================================================================
# CUSTOM ERROR HANDLERS
# =============================================================================

def custom_404_handler(request, exception):
    """Custom 404 handler for API endpoints"""
    if request.path.startswith('/api/'):
        return JsonResponse({
            'error': 'API endpoint not found',
            'message': f'The requested endpoint {request.path} does not exist',
            'available_endpoints': '/api/v1/info/'
        }, status=404)

    return page_not_found(request, exception)


def custom_500_handler(request):
    """Custom 500 handler for API endpoints"""
    if request.path.startswith('/api/'):
        return JsonResponse({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred',
        }, status=500)

    return server_error(request)
