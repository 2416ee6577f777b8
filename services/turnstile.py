"""
Cloudflare Turnstile verification for public forms.
"""

import logging
from typing import Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


def verify_turnstile_token(token: Optional[str], remote_ip: Optional[str] = None) -> bool:
    """
    Verify a Turnstile token server-side.

    Verification is skipped (True) when no secret is configured, which is
    the case in development. Network or parsing failures count as failed
    verification.
    """
    secret = getattr(settings, 'TURNSTILE_SECRET_KEY', '')
    if not secret:
        return True

    if not token:
        return False

    payload = {'secret': secret, 'response': token}
    if remote_ip:
        payload['remoteip'] = remote_ip

    try:
        response = requests.post(VERIFY_URL, data=payload, timeout=10)
        response.raise_for_status()
        return response.json().get('success') is True
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Turnstile verification error: {str(e)}")
        return False
