"""
Create upcoming rent payments for active leases.

Usage:
    python manage.py generate_rent_payments
    python manage.py generate_rent_payments --months-ahead 3
    python manage.py generate_rent_payments --tenant acme --date 2025-01-01

Cron: daily. Payments follow each lease's billing interval from its start
date, up to today plus the horizon (and never past the lease end date).
Existing (lease, due_date) payments are left alone, so reruns are safe.
"""

import logging

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from property_management.models import Lease
from property_management.services import PaymentService, add_months
from services.parsing import parse_date

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Schedule missing PENDING rent payments for ACTIVE leases'

    def add_arguments(self, parser):
        parser.add_argument(
            '--months-ahead',
            type=int,
            default=1,
            help='How many months past today to schedule (default: 1)',
        )
        parser.add_argument('--tenant', help='Only process this tenant slug')
        parser.add_argument('--date', help='Treat this date (YYYY-MM-DD) as today')

    def handle(self, *args, **options):
        try:
            today = parse_date(options['date'], strict=True) or timezone.localdate()
        except ValueError as e:
            raise CommandError(str(e))

        horizon = add_months(today, max(options['months_ahead'], 0))
        leases = Lease.objects.filter(status=Lease.STATUS_ACTIVE).select_related('tenant')
        if options['tenant']:
            leases = leases.filter(tenant__slug=options['tenant'])

        self.stdout.write(f'Scheduling payments due on or before {horizon:%Y-%m-%d}')

        total_created = 0
        for lease in leases:
            created = PaymentService(lease.tenant).schedule_missing(lease, horizon)
            if created:
                total_created += len(created)
                self.stdout.write(f'  Lease {lease.pk}: {len(created)} payment(s) added')

        logger.info(f"generate_rent_payments created {total_created} payments (horizon {horizon})")
        self.stdout.write(self.style.SUCCESS(
            f'✓ Created {total_created} payment(s) across {leases.count()} active lease(s)'
        ))
