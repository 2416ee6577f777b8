"""
Role-based access control.

Roles live on Membership (owner, admin, agent) and are checked against the
request's tenant. Superusers pass every check.

- require_role(): imperative check for API code paths
- HasTenantRole / PropertyManagementEnabled: DRF permission classes
- tenant_role_required(): decorator for server-rendered pages
"""

import logging
from functools import wraps
from typing import Iterable, Optional

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect
from rest_framework import permissions
from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from .features import is_property_management_enabled
from .models import Membership, Tenant
from .resolution import require_tenant

logger = logging.getLogger(__name__)

ALL_ROLES = (Membership.ROLE_OWNER, Membership.ROLE_ADMIN, Membership.ROLE_AGENT)
MANAGER_ROLES = (Membership.ROLE_OWNER, Membership.ROLE_ADMIN)
PROPERTY_MANAGEMENT_ROLES = (Membership.ROLE_ADMIN, Membership.ROLE_AGENT)


def get_membership(user, tenant: Optional[Tenant]) -> Optional[Membership]:
    if user is None or not user.is_authenticated or tenant is None:
        return None
    return Membership.objects.filter(user=user, tenant=tenant).first()


def user_has_role(user, tenant: Optional[Tenant], roles: Iterable[str]) -> bool:
    if user is None or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    membership = get_membership(user, tenant)
    if membership is None:
        return False
    allowed = set(roles)
    # An owner can do anything an admin can
    if membership.role == Membership.ROLE_OWNER and Membership.ROLE_ADMIN in allowed:
        return True
    return membership.role in allowed


def require_role(request, roles: Iterable[str]) -> Optional[Membership]:
    """
    Ensure the requesting user holds one of `roles` in the request tenant.

    Raises:
        NotAuthenticated: no signed-in user
        PermissionDenied: user is not a member or lacks the role
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        raise NotAuthenticated('Authentication required')

    tenant = require_tenant(request)
    if not user_has_role(user, tenant, roles):
        logger.warning(f"User {user.pk} denied on tenant {tenant.slug} (needs {', '.join(roles)})")
        raise PermissionDenied('Insufficient permissions')
    return get_membership(user, tenant)


# =============================================================================
# DRF PERMISSION CLASSES
# =============================================================================

class HasTenantRole(permissions.BasePermission):
    """
    Checks the view's role requirements against the request tenant.

    Views declare `allowed_roles` and may override per action with
    `action_roles = {'destroy': ('owner', 'admin')}`. A role set of None
    means the action is public.
    """

    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        action_roles = getattr(view, 'action_roles', {}) or {}
        action = getattr(view, 'action', None)
        if action in action_roles:
            roles = action_roles[action]
        else:
            roles = getattr(view, 'allowed_roles', ALL_ROLES)

        if roles is None:
            return True

        if not request.user or not request.user.is_authenticated:
            raise NotAuthenticated('Authentication required')

        return user_has_role(request.user, require_tenant(request), roles)


class PropertyManagementEnabled(permissions.BasePermission):
    message = 'Property management not enabled'

    def has_permission(self, request, view):
        return is_property_management_enabled(require_tenant(request))


# =============================================================================
# PAGE DECORATORS
# =============================================================================

def tenant_role_required(*roles):
    """Login plus role check for page views; redirects home on failure."""
    roles = roles or ALL_ROLES

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def _wrapped_view(request, *args, **kwargs):
            tenant = getattr(request, 'tenant', None)
            if not user_has_role(request.user, tenant, roles):
                messages.error(request, "You do not have permission to access that page.")
                return redirect('public:home')
            return view_func(request, *args, **kwargs)

        return _wrapped_view

    return decorator


def property_management_required(view_func):
    """Redirects to the dashboard when the tenant has the module switched off."""

    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if not is_property_management_enabled(getattr(request, 'tenant', None)):
            messages.error(request, "Property management is not enabled for this agency.")
            return redirect('dashboard:home')
        return view_func(request, *args, **kwargs)

    return _wrapped_view
