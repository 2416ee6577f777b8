"""
Tenant account services: contact settings and back-office users.
"""

import logging
import re
from typing import Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import transaction

from .models import Membership, Tenant

logger = logging.getLogger(__name__)


def normalize_whatsapp_number(raw_value: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to +<digits>.

    '00 44 7700 900123' -> '+447700900123'; blank input returns None.
    """
    value = (raw_value or '').strip()
    if not value:
        return None

    value = re.sub(r'[^+\d]', '', value)
    if value.startswith('00'):
        value = f"+{value[2:]}"
    if not value.startswith('+'):
        value = f"+{value}"
    return value if len(value) > 1 else None


def update_whatsapp_number(tenant: Tenant, raw_value: Optional[str]) -> Tenant:
    tenant.whatsapp_number = normalize_whatsapp_number(raw_value)
    tenant.save(update_fields=['whatsapp_number', 'updated_at'])
    logger.info(f"Updated WhatsApp number for tenant {tenant.slug}")
    return tenant


@transaction.atomic
def create_tenant_user(
    tenant: Tenant,
    email: str,
    role: str = Membership.ROLE_ADMIN,
    password: Optional[str] = None,
    name: str = '',
) -> Tuple[Membership, bool]:
    """
    Get or create a user by email and give them a role in `tenant`.

    An existing membership is returned unchanged. Returns (membership, created).
    """
    User = get_user_model()
    email = email.strip().lower()

    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        user = User.objects.create_user(username=email, email=email, password=password)
        if name:
            first, _, last = name.partition(' ')
            user.first_name, user.last_name = first, last
            user.save(update_fields=['first_name', 'last_name'])
        logger.info(f"Created user {email}")

    membership, created = Membership.objects.get_or_create(
        user=user,
        tenant=tenant,
        defaults={'role': role},
    )
    return membership, created
