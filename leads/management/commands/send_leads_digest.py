"""
Email each agency a summary of its recent leads.

Usage:
    python manage.py send_leads_digest
    python manage.py send_leads_digest --days=14

Cron: Mondays at 09:00 (0 9 * * 1). Tenants with no new leads in the
window are skipped.
"""

import logging

from django.core.management.base import BaseCommand

from leads.services import LeadService
from services.notifications import email_service
from tenancy.models import Tenant

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Send each tenant a digest of leads from the last N days'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=7,
            help='Size of the reporting window in days (default: 7)'
        )

    def handle(self, *args, **options):
        days = options['days']
        sent = skipped = failed = 0

        for tenant in Tenant.objects.order_by('created_at', 'id'):
            summary = LeadService(tenant).digest(days=days)
            if not summary['total']:
                skipped += 1
                self.stdout.write(f'  ⊘ {tenant.slug}: no new leads')
                continue

            if email_service.send_leads_digest(tenant, summary):
                sent += 1
                self.stdout.write(self.style.SUCCESS(
                    f'  ✓ {tenant.slug}: {summary["total"]} lead(s) sent to {tenant.notification_email}'
                ))
            else:
                failed += 1
                self.stdout.write(self.style.ERROR(f'  ✗ {tenant.slug}: digest failed'))

        logger.info(f"send_leads_digest: {sent} sent, {skipped} skipped, {failed} failed")
        self.stdout.write(self.style.SUCCESS(
            f'✓ Digests sent: {sent}, skipped: {skipped}, failed: {failed}'
        ))
