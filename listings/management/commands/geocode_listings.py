"""
Django management command to geocode listings missing coordinates.

Usage:
    python manage.py geocode_listings
    python manage.py geocode_listings --tenant acme
    python manage.py geocode_listings --delay 0.5
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from listings.models import Listing
from services.geocoding import geocoding_service
from tenancy.models import Tenant

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Geocode listing addresses and populate lat/lng fields'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant',
            type=str,
            help='Only geocode listings for this tenant slug',
        )

        parser.add_argument(
            '--delay',
            type=float,
            default=0.2,
            help='Delay between geocoding requests in seconds (default: 0.2)',
        )

    def handle(self, *args, **options):
        delay = options['delay']

        queryset = Listing.objects.all()
        if options['tenant']:
            tenant = Tenant.objects.filter(slug=options['tenant']).first()
            if tenant is None:
                raise CommandError(f"Tenant '{options['tenant']}' not found")
            queryset = queryset.filter(tenant=tenant)

        queryset = queryset.missing_coordinates().order_by('id')

        total = queryset.count()
        if total == 0:
            self.stdout.write(self.style.SUCCESS('✓ All listings already have coordinates'))
            return

        self.stdout.write(f'Found {total} listings to geocode')
        self.stdout.write(f'Using delay of {delay} seconds between requests')

        results = geocoding_service.batch_geocode_listings(queryset, delay=delay)

        self.stdout.write('\n' + '=' * 60)
        self.stdout.write('GEOCODING COMPLETE')
        self.stdout.write('=' * 60)
        self.stdout.write(f'Total listings:          {results["total"]}')
        self.stdout.write(self.style.SUCCESS(f'✓ Successfully geocoded: {results["success"]}'))
        if results['skipped']:
            self.stdout.write(self.style.WARNING(f'⊘ Already had coords:    {results["skipped"]}'))

        if results['failed'] > 0:
            self.stdout.write(self.style.ERROR(f'✗ Failed:                {results["failed"]}'))
            for error in results['errors']:
                self.stdout.write(f'  Listing {error["id"]}: {error["error"]}')

        self.stdout.write('=' * 60)
        logger.info(
            f"geocode_listings: {results['success']} geocoded, {results['failed']} failed"
        )
