"""
Tenant resolution for incoming requests.

Order of precedence:
1. X-Tenant request header
2. ?tenant= query parameter
3. x-tenant cookie
4. The signed-in user's first membership
5. settings.DEFAULT_TENANT_SLUG

Identifiers are matched against Tenant.slug first, then the numeric id.
Unknown identifiers fall back to the oldest tenant.
"""

import logging
from typing import Optional, Tuple

from django.conf import settings
from django.http import Http404

from .models import Tenant

logger = logging.getLogger(__name__)

SOURCE_HEADER = 'header'
SOURCE_QUERY = 'query'
SOURCE_COOKIE = 'cookie'
SOURCE_MEMBERSHIP = 'membership'
SOURCE_DEFAULT = 'default'


def get_tenant_identifier(request) -> Tuple[Optional[str], str]:
    """Return the raw tenant identifier for a request and where it came from."""
    header_key = 'HTTP_' + settings.TENANT_HEADER.upper().replace('-', '_')
    header_value = (request.META.get(header_key) or '').strip()
    if header_value:
        return header_value, SOURCE_HEADER

    query_value = (request.GET.get(settings.TENANT_QUERY_PARAM) or '').strip()
    if query_value:
        return query_value, SOURCE_QUERY

    cookie_value = (request.COOKIES.get(settings.TENANT_COOKIE) or '').strip()
    if cookie_value:
        return cookie_value, SOURCE_COOKIE

    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        membership = user.memberships.select_related('tenant').first()
        if membership:
            return membership.tenant.slug, SOURCE_MEMBERSHIP

    return settings.DEFAULT_TENANT_SLUG, SOURCE_DEFAULT


def lookup_tenant(identifier: Optional[str]) -> Optional[Tenant]:
    """Find a tenant by slug, then by id, falling back to the first tenant."""
    if identifier:
        tenant = Tenant.objects.filter(slug=identifier).first()
        if tenant:
            return tenant

        if identifier.isdigit():
            tenant = Tenant.objects.filter(pk=int(identifier)).first()
            if tenant:
                return tenant

        logger.info(f"Tenant '{identifier}' not found, using first tenant")

    return Tenant.objects.order_by('created_at', 'id').first()


def resolve_tenant(request) -> Optional[Tenant]:
    identifier, _source = get_tenant_identifier(request)
    return lookup_tenant(identifier)


def require_tenant(request) -> Tenant:
    """Return the request's tenant, raising Http404 when none exists."""
    tenant = getattr(request, 'tenant', None)
    if tenant is None:
        tenant = resolve_tenant(request)
    if tenant is None:
        raise Http404('Tenant not found')
    return tenant
