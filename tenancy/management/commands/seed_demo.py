"""
Seed two demo agencies with sample listings.

Usage:
    python manage.py seed_demo
    python manage.py seed_demo --listings 20 --seed 42

Tenants are matched on slug, so running the command twice does not create
duplicate agencies. Listings are only added to tenants that have none.
"""

import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from listings.models import Listing
from tenancy.models import Tenant

PROPERTY_TYPES = ['house', 'apartment', 'flat', 'villa', 'townhouse']
FEATURES = [
    'parking', 'garden', 'balcony', 'pool', 'gym', 'elevator',
    'fireplace', 'hardwood floors', 'central heating', 'air conditioning',
]
CITIES = [
    ('London', 51.5074, -0.1278),
    ('Manchester', 53.4808, -2.2426),
    ('Bristol', 51.4545, -2.5879),
    ('Leeds', 53.8008, -1.5491),
    ('Edinburgh', 55.9533, -3.1883),
]
STREETS = ['High St', 'Station Rd', 'Park Ave', 'Church Ln', 'Mill Rd']

DEMO_TENANTS = [
    {
        'slug': 'acme',
        'name': 'ACME Real Estate',
        'theme': {'primaryColor': '#3b82f6', 'logo': '/logo-acme.png'},
        'contact_email': 'hello@acme.example.com',
    },
    {
        'slug': 'bluebird',
        'name': 'Bluebird Properties',
        'theme': {'primaryColor': '#10b981', 'logo': '/logo-bluebird.png'},
        'contact_email': 'hello@bluebird.example.com',
    },
]


class Command(BaseCommand):
    help = 'Create the acme and bluebird demo tenants with sample listings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--listings',
            type=int,
            default=12,
            help='Listings to create per tenant (default: 12)',
        )
        parser.add_argument(
            '--seed',
            type=int,
            help='Random seed for reproducible data',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        rng = random.Random(options['seed'])

        for demo in DEMO_TENANTS:
            tenant, created = Tenant.objects.get_or_create(
                slug=demo['slug'],
                defaults={
                    'name': demo['name'],
                    'theme': demo['theme'],
                    'contact_email': demo['contact_email'],
                },
            )
            label = 'Created' if created else 'Found'
            self.stdout.write(f'{label} tenant {tenant.slug}')

            if tenant.listings.exists():
                self.stdout.write(self.style.WARNING(f'⊘ {tenant.slug} already has listings, skipping'))
                continue

            for index in range(options['listings']):
                Listing.objects.create(tenant=tenant, **self._listing_data(rng, index))

            self.stdout.write(self.style.SUCCESS(
                f"✓ Added {options['listings']} listings to {tenant.slug}"
            ))

    def _listing_data(self, rng, index):
        listing_type = rng.choice(['sale', 'rent'])
        price = rng.randint(150000, 1500000) if listing_type == 'sale' else rng.randint(900, 6000)
        property_type = rng.choice(PROPERTY_TYPES)
        city, lat, lng = rng.choice(CITIES)
        adjective = rng.choice(['Beautiful', 'Stunning', 'Spacious', 'Modern', 'Charming'])

        return {
            'slug': f'property-{index + 1}',
            'title': f'{adjective} {property_type} in {city}',
            'status': rng.choice(['active', 'active', 'active', 'draft', 'sold']),
            'type': listing_type,
            'price': Decimal(price),
            'currency': 'GBP',
            'bedrooms': rng.randint(1, 5),
            'bathrooms': rng.randint(1, 3),
            'property_type': property_type,
            'address_line1': f'{rng.randint(1, 250)} {rng.choice(STREETS)}',
            'city': city,
            'postcode': f'{rng.choice("ABCEHLMNS")}{rng.randint(1, 20)} {rng.randint(1, 9)}AA',
            'lat': Decimal(str(round(lat + rng.uniform(-0.05, 0.05), 6))),
            'lng': Decimal(str(round(lng + rng.uniform(-0.05, 0.05), 6))),
            'description': (
                f'This {adjective.lower()} {property_type} is close to schools, shops '
                f'and transport links in {city}.'
            ),
            'features': sorted(set(rng.sample(FEATURES, rng.randint(2, 5)))),
            'media': [],
        }
