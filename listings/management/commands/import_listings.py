"""
Import listings for one tenant from a CSV file.

Usage:
    python manage.py import_listings /path/to/listings.csv --tenant acme
    python manage.py import_listings /path/to/listings.csv --tenant acme --no-geocode

Required columns: title, slug, type, price, addressLine1, city, description.
"""

from django.core.management.base import BaseCommand, CommandError

from listings.services import ImportFileError, ListingImportService
from tenancy.models import Tenant


class Command(BaseCommand):
    help = 'Import listings for a tenant from a CSV file'

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to CSV file')
        parser.add_argument('--tenant', type=str, required=True, help='Tenant slug')
        parser.add_argument(
            '--no-geocode',
            action='store_true',
            help='Skip geocoding rows that have no lat/lng',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']

        tenant = Tenant.objects.filter(slug=options['tenant']).first()
        if tenant is None:
            raise CommandError(f"Tenant '{options['tenant']}' not found")

        self.stdout.write(f"Reading CSV file: {csv_file}")
        try:
            with open(csv_file, 'rb') as f:
                content = f.read()
        except FileNotFoundError:
            raise CommandError(f"File not found: {csv_file}")

        service = ListingImportService(tenant, geocode=not options['no_geocode'])
        try:
            results = service.import_file(content)
        except ImportFileError as e:
            raise CommandError(e.message)

        self.stdout.write("\n" + "=" * 60)
        self.stdout.write(self.style.SUCCESS(f"✓ {results['message']}"))
        self.stdout.write("=" * 60)

        for error in results['errors'][:20]:
            self.stdout.write(self.style.ERROR(f"✗ Row {error['row']}: {error['error']}"))
        if len(results['errors']) > 20:
            self.stdout.write(f"... and {len(results['errors']) - 20} more errors")
