"""
Flag maintenance requests that have been open longer than their SLA.

Usage:
    python manage.py check_maintenance_sla

Cron: hourly. SLA hours per priority come from MAINTENANCE_SLA_HOURS
(defaults: URGENT 24, HIGH 72, MEDIUM 168, LOW 336). A request is stamped
and reported once; later runs skip anything with sla_breached_at set.
"""

import logging
from collections import defaultdict

from django.core.management.base import BaseCommand
from django.utils import timezone

from property_management.services import MaintenanceService
from services.notifications import email_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Stamp and report OPEN/IN_PROGRESS/ON_HOLD requests past their SLA'

    def handle(self, *args, **options):
        now = timezone.now()
        breaches = MaintenanceService.find_sla_breaches(now).filter(sla_breached_at__isnull=True)

        by_tenant = defaultdict(list)
        for ticket in breaches:
            ticket.sla_breached_at = now
            ticket.save(update_fields=['sla_breached_at', 'updated_at'])
            logger.warning(
                f"Maintenance request {ticket.pk} ({ticket.priority}) breached SLA "
                f"for tenant {ticket.tenant.slug}"
            )
            by_tenant[ticket.tenant].append(ticket)

        if not by_tenant:
            self.stdout.write(self.style.SUCCESS('✓ No new SLA breaches'))
            return

        for tenant, tickets in by_tenant.items():
            if email_service.send_maintenance_sla_alert(tenant, tickets):
                self.stdout.write(self.style.WARNING(
                    f'⊘ {tenant.slug}: {len(tickets)} request(s) past SLA, alert sent'
                ))
            else:
                self.stdout.write(self.style.ERROR(
                    f'✗ {tenant.slug}: {len(tickets)} request(s) past SLA, alert failed'
                ))
