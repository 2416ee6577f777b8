"""
Email tenants about rent that is due soon or overdue.

Usage:
    python manage.py send_rent_reminders
    python manage.py send_rent_reminders --days-ahead 5

Cron: daily. Each payment is reminded at most once per day
(reminder_sent_at).
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from property_management.models import Lease, Payment
from services.notifications import email_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Send reminders for PENDING/PARTIAL payments due within N days or overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days-ahead',
            type=int,
            default=None,
            help='Remind about payments due within this many days '
                 '(default: RENT_REMINDER_DAYS_AHEAD)',
        )

    def handle(self, *args, **options):
        days_ahead = options['days_ahead']
        if days_ahead is None:
            days_ahead = getattr(settings, 'RENT_REMINDER_DAYS_AHEAD', 3)

        today = timezone.localdate()
        cutoff = today + timedelta(days=days_ahead)

        payments = (
            Payment.objects.filter(
                status__in=Payment.OUTSTANDING_STATUSES,
                lease__status=Lease.STATUS_ACTIVE,
                due_date__lte=cutoff,
            )
            .exclude(lease__tenant_profile__email='')
            .exclude(reminder_sent_at__date=today)
            .select_related('tenant', 'lease', 'lease__tenant_profile')
        )

        sent = 0
        failed = 0
        for payment in payments:
            if email_service.send_rent_reminder(payment):
                payment.reminder_sent_at = timezone.now()
                payment.save(update_fields=['reminder_sent_at', 'updated_at'])
                sent += 1
            else:
                failed += 1

        logger.info(f"send_rent_reminders sent {sent}, failed {failed} (cutoff {cutoff})")
        self.stdout.write(self.style.SUCCESS(f'✓ Sent {sent} rent reminder(s)'))
        if failed:
            self.stdout.write(self.style.ERROR(f'✗ Failed: {failed}'))
