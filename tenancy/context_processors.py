from .features import is_property_management_enabled
from .permissions import MANAGER_ROLES, get_membership


def current_tenant(request):
    """Expose the tenant, its theme and the user's role to templates."""
    tenant = getattr(request, 'tenant', None)
    user = getattr(request, 'user', None)
    membership = get_membership(user, tenant)
    is_manager = bool(
        user is not None and user.is_authenticated
        and (user.is_superuser or (membership and membership.role in MANAGER_ROLES))
    )
    return {
        'current_tenant': tenant,
        'tenant_theme': tenant.theme if tenant else {},
        'current_membership': membership,
        'is_tenant_manager': is_manager,
        'property_management_enabled': is_property_management_enabled(tenant),
    }
