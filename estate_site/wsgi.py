"""
WSGI config for the estate_site project.

This is the production entry point (gunicorn estate_site.wsgi:application).
/wsgi-health/ answers without touching Django so load balancers get a
cheap liveness probe; /api/v1/health/ checks the full stack.
"""

import json
import logging
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'estate_site.settings')

# Initialize Django application early to avoid AppRegistryNotReady errors
django_application = get_wsgi_application()

logger = logging.getLogger(__name__)


def application(environ, start_response):
    """
    Production WSGI application.

    - Fast path for /wsgi-health/
    - JSON 500 for failures that escape Django's own handling
    """
    if environ.get('PATH_INFO') == '/wsgi-health/':
        start_response('200 OK', [
            ('Content-Type', 'application/json'),
            ('Cache-Control', 'no-cache'),
        ])
        return [b'{"status": "healthy", "service": "estate-site-wsgi"}']

    try:
        return django_application(environ, start_response)
    except Exception:
        logger.exception("WSGI application error")
        body = json.dumps({
            "error": "Internal server error",
            "message": "The server encountered an unexpected condition",
            "service": "estate-site-wsgi",
        }).encode('utf-8')
        start_response('500 Internal Server Error', [
            ('Content-Type', 'application/json'),
            ('Cache-Control', 'no-cache'),
        ])
        return [body]
