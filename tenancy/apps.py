"""
Django app configuration for the tenancy app.

Tenants (estate agencies), user memberships with roles, and the request
middleware that decides which tenant a request belongs to.
"""

from django.apps import AppConfig


class TenancyConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenancy'
    verbose_name = 'Agencies & Memberships'
