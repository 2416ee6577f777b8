"""
ASGI config for the estate_site project.

Exposes the module-level ``application`` for ASGI servers (uvicorn,
daphne). Production runs WSGI under gunicorn; this is kept for async
deployments.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'estate_site.settings')

application = get_asgi_application()
