"""Per-tenant feature toggles stored in Tenant.theme['features']."""


def is_property_management_enabled(tenant) -> bool:
    """Property management is on unless the tenant switches it off."""
    if tenant is None:
        return False
    value = tenant.features.get('propertyManagement')
    if value is None:
        return True
    return bool(value)
