"""
Attach the resolved tenant to every request.
"""

from django.conf import settings

from .resolution import SOURCE_QUERY, get_tenant_identifier, lookup_tenant


class TenantMiddleware:
    """
    Sets request.tenant and persists a ?tenant= choice in the x-tenant
    cookie so later requests stay on the same tenant.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        identifier, source = get_tenant_identifier(request)
        request.tenant_source = source
        request.tenant = lookup_tenant(identifier)

        response = self.get_response(request)

        if source == SOURCE_QUERY and request.tenant is not None:
            response.set_cookie(
                settings.TENANT_COOKIE,
                request.tenant.slug,
                samesite='Lax',
                path='/',
            )
        return response
