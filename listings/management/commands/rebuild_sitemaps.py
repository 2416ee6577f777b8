"""
Rebuild the cached sitemap for every tenant.

Usage:
    python manage.py rebuild_sitemaps

Cron: nightly (0 2 * * *). Listing changes invalidate a tenant's cached
sitemap; this warms the cache again before crawlers arrive.
"""

import logging

from django.core.management.base import BaseCommand

from listings.services import rebuild_sitemap
from tenancy.models import Tenant

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Rebuild cached sitemap entries for every tenant'

    def handle(self, *args, **options):
        rebuilt = 0
        for tenant in Tenant.objects.order_by('created_at', 'id'):
            entries = rebuild_sitemap(tenant)
            rebuilt += 1
            self.stdout.write(f'  {tenant.slug}: {len(entries)} URL(s)')

        logger.info(f"rebuild_sitemaps rebuilt {rebuilt} sitemap(s)")
        self.stdout.write(self.style.SUCCESS(f'✓ Rebuilt {rebuilt} sitemap(s)'))
