"""
Expire ACTIVE leases whose end date has passed.

Usage:
    python manage.py expire_leases

Cron: daily. Each expired lease frees its unit (VACANT), gets a revision
entry, and re-syncs the status of listings on the property.
"""

import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from property_management.models import Lease
from property_management.services import LeaseService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark ACTIVE leases with end_date before today as EXPIRED'

    def handle(self, *args, **options):
        today = timezone.localdate()
        leases = Lease.objects.filter(
            status=Lease.STATUS_ACTIVE,
            end_date__lt=today,
        ).select_related('tenant', 'unit', 'unit__property')

        expired = 0
        for lease in leases:
            LeaseService(lease.tenant).expire(lease)
            expired += 1
            self.stdout.write(f'  Lease {lease.pk} expired (ended {lease.end_date:%Y-%m-%d})')

        logger.info(f"expire_leases expired {expired} lease(s)")
        self.stdout.write(self.style.SUCCESS(f'✓ Expired {expired} lease(s)'))
