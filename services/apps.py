"""
Django application configuration for the services app.

Shared integrations used by the other apps: Google geocoding and places,
outbound email, Turnstile bot checks and value parsing.
"""

from django.apps import AppConfig
from django.conf import settings
from django.core.checks import Tags, Warning, register


class ServicesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'services'
    verbose_name = 'Services'

    def ready(self):
        register(check_required_services, Tags.compatibility)


def check_required_services(app_configs, **kwargs):
    """Warn about integrations that are switched off by missing configuration."""
    warnings = []

    if not getattr(settings, 'GOOGLE_MAPS_API_KEY', ''):
        warnings.append(
            Warning(
                'Google Maps API key not configured.',
                hint='Set GOOGLE_MAPS_API_KEY to enable geocoding and address autocomplete.',
                obj='services.geocoding',
                id='services.W001',
            )
        )

    if not getattr(settings, 'TURNSTILE_SECRET_KEY', '') and not settings.DEBUG:
        warnings.append(
            Warning(
                'Turnstile secret not configured; lead forms accept submissions without a bot check.',
                hint='Set TURNSTILE_SECRET_KEY in production.',
                obj='services.turnstile',
                id='services.W002',
            )
        )

    return warnings
