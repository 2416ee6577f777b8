"""
Django app configuration for the property management module.

Properties, units, tenant profiles, leases, rent payments and maintenance
requests. Switched on per agency through the theme feature flag
(theme.features.propertyManagement).
"""

from django.apps import AppConfig


class PropertyManagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'property_management'
    verbose_name = 'Property Management'
