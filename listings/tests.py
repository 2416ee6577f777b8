# ===== LISTINGS APP TEST SUITE =====
"""
Test suite for the listings app
File: listings/tests.py

Test Coverage:
- Listing model helpers and per-tenant slug uniqueness
- Public search: filter parsing, keyset cursor, radius and feature matching
- ListingService create/update/status, geocoding on save and conversion
- CSV import with per-row error reporting
- Image uploads appended to listing media
- Listing API permissions, tenant isolation and 409 slug conflicts
- Public pages, WhatsApp tracking, sitemap.xml and robots.txt
- Back-office pages and management commands
"""

import os
import shutil
import tempfile
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from leads.models import Lead
from property_management.models import Property, Unit
from tenancy.models import Membership, Tenant

from .models import Listing, WhatsAppClick, build_media_key
from .search import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    build_filters,
    decode_cursor,
    encode_cursor,
    haversine_km,
    search_service,
)
from .services import (
    ImportFileError,
    ListingImportService,
    ListingService,
    SlugConflictError,
    build_sitemap_entries,
    build_whatsapp_url,
    get_sitemap_entries,
    sitemap_cache_key,
)

User = get_user_model()

CSV_HEADER = "title,slug,type,price,addressLine1,city,description,status,bedrooms,features,lat,lng\n"


def make_listing(tenant, slug, **kwargs):
    defaults = {
        'tenant': tenant,
        'slug': slug,
        'title': slug.replace('-', ' ').title(),
        'status': 'active',
        'type': 'sale',
        'price': Decimal('250000'),
        'address_line1': '1 High St',
        'city': 'London',
        'postcode': 'N1 1AA',
        'description': 'A lovely home.',
    }
    defaults.update(kwargs)
    return Listing.objects.create(**defaults)


# =============================================================================
# MODEL TESTS
# =============================================================================

class ListingModelTest(TestCase):
    """Test Listing model functionality"""

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.listing = make_listing(
            self.tenant,
            'garden-flat',
            media=[{'alt': 'no key'}, {'key': 'photos/1.jpg', 'width': 800, 'height': 600}],
        )

    def test_full_address(self):
        self.assertEqual(self.listing.get_full_address(), '1 High St, London, N1 1AA')

        self.listing.postcode = ''
        self.assertEqual(self.listing.get_full_address(), '1 High St, London')

    def test_primary_image_skips_items_without_key(self):
        self.assertEqual(self.listing.primary_image['key'], 'photos/1.jpg')

    def test_has_coordinates(self):
        self.assertFalse(self.listing.has_coordinates)
        self.listing.set_coordinates(51.50336351234, -0.12762481234)
        self.assertTrue(self.listing.has_coordinates)
        self.assertEqual(self.listing.lat, Decimal('51.5033635'))

    def test_property_link_alongside_computed_attributes(self):
        managed = Property.objects.create(
            tenant=self.tenant, name='High St', address_line1='1 High St', city='London'
        )
        self.listing.property = managed
        self.listing.save()
        self.listing.refresh_from_db()

        self.assertEqual(self.listing.property, managed)
        self.assertIsInstance(Listing.__dict__['has_coordinates'], property)
        self.assertIsInstance(Listing.__dict__['primary_image'], property)
        self.assertEqual(self.listing.primary_image['key'], 'photos/1.jpg')

    def test_absolute_url(self):
        self.assertEqual(self.listing.get_absolute_url(), '/listing/garden-flat/')

    def test_media_key(self):
        key = build_media_key('ACME', 'Front Door.JPEG')
        self.assertRegex(key, r'^listings/acme/\d+-[0-9a-f]{12}\.jpeg$')
        self.assertTrue(build_media_key('acme', 'no-extension').endswith('.jpg'))

    def test_slug_unique_per_tenant_only(self):
        other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        make_listing(other, 'garden-flat')
        with self.assertRaises(Exception):  # IntegrityError
            make_listing(self.tenant, 'garden-flat')


# =============================================================================
# SEARCH TESTS
# =============================================================================

class SearchFilterParsingTest(TestCase):

    def test_defaults(self):
        filters = build_filters({})
        self.assertEqual(filters.status, ('active',))
        self.assertEqual(filters.limit, DEFAULT_LIMIT)
        self.assertFalse(filters.is_filtered)

    def test_public_search_never_includes_drafts(self):
        self.assertEqual(build_filters({'status': 'draft'}).status, ('active',))
        self.assertEqual(build_filters({'status': 'draft,sold'}).status, ('sold',))
        self.assertEqual(build_filters({'status': 'draft'}, public=False).status, ('draft',))

    def test_lenient_parsing_drops_bad_values(self):
        filters = build_filters({
            'type': 'rent,castle',
            'min_price': 'cheap',
            'bedrooms': '-2',
            'lat': '123',
            'lng': '-0.12',
            'radius': '0',
            'limit': '5000',
        })
        self.assertEqual(filters.types, ('rent',))
        self.assertIsNone(filters.min_price)
        self.assertIsNone(filters.bedrooms)
        self.assertIsNone(filters.lat)
        self.assertIsNone(filters.radius)
        self.assertFalse(filters.has_geo)
        self.assertEqual(filters.limit, MAX_LIMIT)

    def test_keywords_accept_q_alias(self):
        self.assertEqual(build_filters({'q': ' garden '}).keywords, 'garden')

    def test_haversine(self):
        # London to Manchester is roughly 262 km
        distance = haversine_km(51.5074, -0.1278, 53.4808, -2.2426)
        self.assertAlmostEqual(distance, 262, delta=5)


class ListingSearchTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')

    def test_keyset_pagination_covers_every_listing_once(self):
        for index in range(5):
            make_listing(self.tenant, f'home-{index}')

        seen = []
        cursor = ''
        for _page in range(5):
            result = search_service.search(self.tenant, build_filters({'limit': '2', 'cursor': cursor}))
            seen.extend(listing.slug for listing in result.listings)
            if not result.has_more:
                break
            cursor = result.next_cursor

        self.assertEqual(sorted(seen), [f'home-{index}' for index in range(5)])
        self.assertEqual(len(seen), len(set(seen)))
        self.assertIsNone(result.next_cursor)

    def test_cursor_round_trip(self):
        listing = make_listing(self.tenant, 'home')
        created_at, listing_id = decode_cursor(encode_cursor(listing))
        self.assertEqual(created_at, listing.created_at)
        self.assertEqual(listing_id, listing.pk)

    def test_invalid_cursor_raises(self):
        with self.assertRaises(ValidationError):
            decode_cursor('not-a-cursor!!')

    def test_search_is_tenant_scoped_and_hides_drafts(self):
        make_listing(self.tenant, 'visible')
        make_listing(self.tenant, 'hidden', status='draft')
        make_listing(self.other, 'elsewhere')

        result = search_service.search(self.tenant, build_filters({'status': 'active,draft'}))

        self.assertEqual([listing.slug for listing in result.listings], ['visible'])

    def test_price_bedroom_and_keyword_filters(self):
        make_listing(self.tenant, 'cheap', price=Decimal('900'), type='rent', bedrooms=1)
        make_listing(self.tenant, 'family', price=Decimal('2500'), type='rent', bedrooms=4,
                     description='Large garden and garage')
        make_listing(self.tenant, 'mansion', price=Decimal('5000000'), bedrooms=8)

        result = search_service.search(self.tenant, build_filters({
            'type': 'rent', 'min_price': '1000', 'bedrooms': '3', 'keywords': 'garden',
        }))

        self.assertEqual([listing.slug for listing in result.listings], ['family'])

    def test_feature_matching_is_case_insensitive(self):
        make_listing(self.tenant, 'with-garden', features=['Garden', 'Parking'])
        make_listing(self.tenant, 'no-garden', features=['Balcony'])

        result = search_service.search(self.tenant, build_filters({'features': 'garden'}))

        self.assertEqual([listing.slug for listing in result.listings], ['with-garden'])

    def test_radius_search(self):
        make_listing(self.tenant, 'central', lat=Decimal('51.5074'), lng=Decimal('-0.1278'))
        make_listing(self.tenant, 'greenwich', lat=Decimal('51.4826'), lng=Decimal('0.0077'))
        make_listing(self.tenant, 'manchester', lat=Decimal('53.4808'), lng=Decimal('-2.2426'))
        make_listing(self.tenant, 'ungeocoded')

        result = search_service.search(self.tenant, build_filters({
            'lat': '51.5074', 'lng': '-0.1278', 'radius': '15', 'city': 'Manchester',
        }))

        self.assertEqual(
            sorted(listing.slug for listing in result.listings),
            ['central', 'greenwich'],
        )


# =============================================================================
# SERVICE TESTS
# =============================================================================

@override_settings(GOOGLE_MAPS_API_KEY='')
class ListingServiceTest(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.service = ListingService(self.tenant)
        self.data = {
            'slug': 'canal-view',
            'title': 'Canal view apartment',
            'type': 'rent',
            'price': Decimal('1800'),
            'address_line1': '5 Wharf Rd',
            'city': 'London',
            'description': 'Two bed flat by the canal.',
            'property_type': 'apartment',
            'bedrooms': 2,
        }

    @patch('listings.services.geocoding_service.geocode_listing')
    def test_create_geocodes_missing_coordinates(self, mock_geocode):
        def fake_geocode(listing, save=True):
            listing.set_coordinates(51.53, -0.09)
            return True
        mock_geocode.side_effect = fake_geocode

        listing = self.service.create(self.data)

        listing.refresh_from_db()
        self.assertEqual(listing.lat, Decimal('51.5300000'))
        mock_geocode.assert_called_once()

    def test_create_without_geocoding_still_saves(self):
        listing = self.service.create(self.data)
        self.assertIsNotNone(listing.pk)
        self.assertFalse(listing.has_coordinates)

    def test_create_duplicate_slug(self):
        self.service.create(self.data)
        with self.assertRaises(SlugConflictError):
            self.service.create(dict(self.data, title='Another'))

    def test_update_address_clears_stale_coordinates(self):
        listing = self.service.create(dict(self.data, lat=Decimal('51.5'), lng=Decimal('-0.1')))

        self.service.update(listing, {'address_line1': '9 Other Rd'})

        listing.refresh_from_db()
        self.assertFalse(listing.has_coordinates)

    def test_update_keeps_coordinates_when_address_unchanged(self):
        listing = self.service.create(dict(self.data, lat=Decimal('51.5'), lng=Decimal('-0.1')))

        self.service.update(listing, {'title': 'Renamed'})

        listing.refresh_from_db()
        self.assertTrue(listing.has_coordinates)

    def test_update_to_taken_slug(self):
        self.service.create(self.data)
        other = self.service.create(dict(self.data, slug='other'))
        with self.assertRaises(SlugConflictError):
            self.service.update(other, {'slug': 'canal-view'})

    def test_set_status_invalidates_sitemap(self):
        listing = self.service.create(self.data)
        get_sitemap_entries(self.tenant)
        self.assertIsNotNone(cache.get(sitemap_cache_key(self.tenant)))

        self.service.set_status(listing, 'active')

        self.assertIsNone(cache.get(sitemap_cache_key(self.tenant)))

    def test_set_status_rejects_unknown_value(self):
        listing = self.service.create(self.data)
        with self.assertRaises(ValidationError):
            self.service.set_status(listing, 'archived')

    def test_list_defaults_to_active(self):
        make_listing(self.tenant, 'live')
        make_listing(self.tenant, 'draft', status='draft')

        self.assertEqual([l.slug for l in self.service.list()], ['live'])
        self.assertEqual(self.service.list(status='all').count(), 2)

    def test_convert_to_property(self):
        listing = self.service.create(dict(self.data, status='let'))

        prop, unit = self.service.convert_to_property(listing)

        self.assertEqual(prop.name, 'Canal view apartment')
        self.assertEqual(prop.tenant, self.tenant)
        self.assertEqual(unit.label, 'Unit 1')
        self.assertEqual(unit.status, Unit.STATUS_OCCUPIED)
        self.assertEqual(unit.rent_amount, Decimal('1800'))
        listing.refresh_from_db()
        self.assertEqual(listing.property, prop)

    def test_convert_twice_is_rejected(self):
        listing = self.service.create(self.data)
        self.service.convert_to_property(listing, create_unit=False)

        with self.assertRaises(ValidationError):
            self.service.convert_to_property(listing)
        self.assertEqual(Property.objects.count(), 1)

    def test_whatsapp_url(self):
        self.assertEqual(
            build_whatsapp_url('+44 7700 900123', 'Hi there & more'),
            'https://wa.me/447700900123?text=Hi%20there%20%26%20more',
        )
        self.assertIn('interested', build_whatsapp_url('447700900123'))

    @override_settings(APP_URL='https://acme.example.com')
    def test_sitemap_entries(self):
        make_listing(self.tenant, 'live')
        make_listing(self.tenant, 'draft', status='draft')

        locs = [entry['loc'] for entry in build_sitemap_entries(self.tenant)]

        self.assertEqual(locs, [
            'https://acme.example.com/',
            'https://acme.example.com/search/',
            'https://acme.example.com/listing/live/',
        ])


@override_settings(GOOGLE_MAPS_API_KEY='')
class ListingImportServiceTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.service = ListingImportService(self.tenant, geocode=False)

    def test_import_with_bad_rows(self):
        content = (
            "\ufeff" + CSV_HEADER +
            'Garden flat,Garden-Flat,rent,"£1,250",1 Park Ave,Bristol,Nice,active,2,"garden, parking",51.45,-2.58\n'
            'Bad price,bad-price,sale,free,2 Park Ave,Bristol,Nice,,,,,\n'
            'Bad type,bad-type,auction,100,3 Park Ave,Bristol,Nice,,,,,\n'
            ',,,,,,,,,,,\n'
            'Missing desc,missing,sale,100,4 Park Ave,Bristol,,,,,,\n'
        ).encode('utf-8')

        results = self.service.import_file(content)

        self.assertEqual(results['success'], 1)
        self.assertEqual(results['skipped'], 3)
        self.assertEqual([error['row'] for error in results['errors']], [3, 4, 5])
        self.assertIn('Invalid price', results['errors'][0]['error'])

        listing = Listing.objects.get(tenant=self.tenant)
        self.assertEqual(listing.slug, 'garden-flat')
        self.assertEqual(listing.price, Decimal('1250'))
        self.assertEqual(listing.features, ['garden', 'parking'])
        self.assertEqual(listing.lat, Decimal('51.4500000'))

    def test_duplicate_slug_row_is_skipped(self):
        make_listing(self.tenant, 'garden-flat')
        content = CSV_HEADER + 'Garden flat,garden-flat,rent,1250,1 Park Ave,Bristol,Nice,,,,,\n'

        results = self.service.import_file(content)

        self.assertEqual(results['success'], 0)
        self.assertIn('already exists', results['errors'][0]['error'])

    def test_missing_columns(self):
        with self.assertRaises(ImportFileError) as ctx:
            self.service.import_file('title,slug\nA,a\n')
        self.assertIn('addressLine1', ctx.exception.message)
        self.assertEqual(ctx.exception.details['foundColumns'], ['title', 'slug'])

    def test_snake_case_headers_accepted(self):
        content = (
            'title,slug,type,price,address_line1,city,description,property_type\n'
            'Flat,flat,rent,900,1 Park Ave,Bristol,Nice,Flat\n'
        )
        results = self.service.import_file(content)
        self.assertEqual(results['success'], 1)
        self.assertEqual(Listing.objects.get().property_type, 'flat')

    def test_empty_file(self):
        with self.assertRaisesMessage(ImportFileError, 'CSV file is empty'):
            self.service.import_file(b'')


# =============================================================================
# API TESTS
# =============================================================================

@override_settings(GOOGLE_MAPS_API_KEY='')
class ListingsAPITestCase(APITestCase):
    """Base class for listing API tests"""

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.client.credentials(HTTP_X_TENANT='acme')
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')

        self.owner = User.objects.create_user(username='owner', email='owner@acme.test')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        self.outsider = User.objects.create_user(username='outsider', email='x@bluebird.test')
        Membership.objects.create(user=self.owner, tenant=self.tenant, role=Membership.ROLE_OWNER)
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Membership.objects.create(user=self.outsider, tenant=self.other, role=Membership.ROLE_OWNER)

        self.active = make_listing(self.tenant, 'active-home')
        self.draft = make_listing(self.tenant, 'draft-home', status='draft')
        self.sold = make_listing(self.tenant, 'sold-home', status='sold')
        self.foreign = make_listing(self.other, 'foreign-home')

        self.list_url = reverse('listing-list')
        self.payload = {
            'slug': 'New-Build',
            'title': 'New build',
            'type': 'sale',
            'price': '325000.00',
            'address_line1': '7 New Rd',
            'city': 'Leeds',
            'description': 'Brand new.',
            'features': ['garden', ' ', 'parking'],
        }


class ListingAPIReadTest(ListingsAPITestCase):

    def _slugs(self, response):
        return sorted(item['slug'] for item in response.data['results'])

    def test_anonymous_list_defaults_to_active(self):
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self._slugs(response), ['active-home'])

    def test_anonymous_never_sees_drafts(self):
        response = self.client.get(self.list_url, {'status': 'all'})
        self.assertEqual(self._slugs(response), ['active-home', 'sold-home'])

        response = self.client.get(reverse('listing-detail', kwargs={'pk': self.draft.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_member_sees_drafts(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.get(self.list_url, {'status': 'draft'})
        self.assertEqual(self._slugs(response), ['draft-home'])

    def test_other_tenant_listing_not_found(self):
        response = self.client.get(reverse('listing-detail', kwargs={'pk': self.foreign.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_tenant_chosen_by_query_param(self):
        client = APIClient()
        response = client.get(self.list_url, {'tenant': 'bluebird'})
        self.assertEqual(self._slugs(response), ['foreign-home'])

    def test_detail_includes_address_and_features(self):
        response = self.client.get(reverse('listing-detail', kwargs={'pk': self.active.pk}))
        self.assertEqual(response.data['full_address'], '1 High St, London, N1 1AA')
        self.assertEqual(response.data['url'], '/listing/active-home/')

    def test_search_endpoint_pagination(self):
        make_listing(self.tenant, 'second-active')
        url = reverse('listing-search')

        first = self.client.get(url, {'limit': 1})
        self.assertTrue(first.data['has_more'])
        self.assertEqual(len(first.data['results']), 1)

        second = self.client.get(url, {'limit': 1, 'cursor': first.data['next_cursor']})
        self.assertFalse(second.data['has_more'])
        self.assertIsNone(second.data['next_cursor'])
        self.assertNotEqual(first.data['results'][0]['slug'], second.data['results'][0]['slug'])

    def test_search_invalid_cursor(self):
        response = self.client.get(reverse('listing-search'), {'cursor': '%%%'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ListingAPIWriteTest(ListingsAPITestCase):

    def test_anonymous_cannot_create(self):
        response = self.client.post(self.list_url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_outsider_cannot_create(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.post(self.list_url, self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_agent_creates_listing(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.post(self.list_url, self.payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'new-build')
        self.assertEqual(response.data['features'], ['garden', 'parking'])
        self.assertEqual(Listing.objects.get(slug='new-build').tenant, self.tenant)

    def test_duplicate_slug_conflict(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.post(self.list_url, dict(self.payload, slug='active-home'), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('active-home', response.data['error'])

    def test_same_slug_allowed_in_other_tenant(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.post(self.list_url, dict(self.payload, slug='foreign-home'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_validation_errors(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.post(self.list_url, dict(
            self.payload, price='0', currency='POUNDS', media=[{'alt': 'x'}]
        ), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        for field in ('price', 'currency', 'media'):
            self.assertIn(field, response.data)

        response = self.client.post(self.list_url, dict(self.payload, lat='95', lng='0'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('lat', response.data)
        self.assertFalse(Listing.objects.filter(slug='new-build').exists())

    def test_partial_update(self):
        self.client.force_authenticate(user=self.agent)
        url = reverse('listing-detail', kwargs={'pk': self.active.pk})
        response = self.client.patch(url, {'title': 'Updated title'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.active.refresh_from_db()
        self.assertEqual(self.active.title, 'Updated title')

    def test_only_managers_delete(self):
        url = reverse('listing-detail', kwargs={'pk': self.active.pk})

        self.client.force_authenticate(user=self.agent)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.owner)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Listing.objects.filter(pk=self.active.pk).exists())

    def test_set_status(self):
        self.client.force_authenticate(user=self.agent)
        url = reverse('listing-set-status', kwargs={'pk': self.draft.pk})

        response = self.client.post(url, {'status': 'active'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'active')

        response = self.client.post(url, {'status': 'gone'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_csv_import(self):
        self.client.force_authenticate(user=self.agent)
        upload = SimpleUploadedFile(
            'listings.csv',
            (CSV_HEADER + 'Loft,loft,sale,400000,1 Mill Rd,Leeds,Open plan,,,,,\n').encode(),
            content_type='text/csv',
        )

        response = self.client.post(reverse('listing-import-csv'), {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 1)
        self.assertTrue(Listing.objects.filter(tenant=self.tenant, slug='loft', status='draft').exists())

    def test_csv_import_missing_columns(self):
        self.client.force_authenticate(user=self.agent)
        upload = SimpleUploadedFile('listings.csv', b'title,slug\nLoft,loft\n', content_type='text/csv')

        response = self.client.post(reverse('listing-import-csv'), {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Missing required columns', response.data['error'])
        self.assertIn('requiredColumns', response.data)

    def test_csv_import_rejects_other_extensions(self):
        self.client.force_authenticate(user=self.agent)
        upload = SimpleUploadedFile('listings.xlsx', b'data', content_type='application/octet-stream')

        response = self.client.post(reverse('listing-import-csv'), {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('listings.services.geocoding_service.batch_geocode_listings')
    def test_geocode_backfill(self, mock_batch):
        mock_batch.return_value = {'total': 3, 'success': 2, 'skipped': 0, 'failed': 1, 'errors': [{'id': 1, 'error': 'x'}]}
        self.client.force_authenticate(user=self.agent)

        response = self.client.post(reverse('listing-geocode-backfill'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['success'], 2)
        self.assertEqual(list(mock_batch.call_args.args[0]), [self.active, self.draft, self.sold])

    def test_convert_to_property(self):
        self.client.force_authenticate(user=self.owner)
        url = reverse('listing-convert-to-property', kwargs={'pk': self.active.pk})

        response = self.client.post(url, {'create_unit': False}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['unit'])
        self.assertEqual(response.data['property']['name'], self.active.title)

    def test_convert_requires_feature_flag(self):
        self.tenant.theme = {'features': {'propertyManagement': False}}
        self.tenant.save()
        self.client.force_authenticate(user=self.owner)
        url = reverse('listing-convert-to-property', kwargs={'pk': self.active.pk})

        response = self.client.post(url, {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Property.objects.exists())


class ListingMediaUploadTest(ListingsAPITestCase):
    """Image uploads through /api/v1/listings/{id}/media/"""

    def setUp(self):
        super().setUp()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media_settings = self.settings(MEDIA_ROOT=media_root)
        media_settings.enable()
        self.addCleanup(media_settings.disable)
        self.url = reverse('listing-upload-media', kwargs={'pk': self.draft.pk})

    def image(self, name='Front Door.PNG', content=b'\x89PNG\r\n\x1a\n0000', content_type='image/png'):
        return SimpleUploadedFile(name, content, content_type=content_type)

    def test_upload_appends_media(self):
        self.client.force_authenticate(user=self.agent)

        response = self.client.post(self.url, {'file': self.image()}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item = response.data['media']
        self.assertRegex(item['key'], r'^listings/acme/\d+-[0-9a-f]{12}\.png$')
        self.assertEqual(item['alt'], 'Front Door.PNG')
        self.assertIsNone(item['width'])
        self.assertTrue(default_storage.exists(item['key']))

        self.draft.refresh_from_db()
        self.assertEqual(self.draft.media, [item])
        self.assertEqual(response.data['listing']['media'], [item])

    def test_rejects_non_images(self):
        self.client.force_authenticate(user=self.agent)
        upload = self.image(name='notes.txt', content=b'hello', content_type='text/plain')

        response = self.client.post(self.url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File must be an image', str(response.data['file']))
        self.draft.refresh_from_db()
        self.assertEqual(self.draft.media, [])

    @override_settings(MAX_IMAGE_UPLOAD_SIZE=8)
    def test_rejects_large_files(self):
        self.client.force_authenticate(user=self.agent)

        response = self.client.post(self.url, {'file': self.image()}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File size must be less than', str(response.data['file']))

    def test_requires_member(self):
        response = self.client.post(self.url, {'file': self.image()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.force_authenticate(user=self.outsider)
        response = self.client.post(self.url, {'file': self.image()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_foreign_listing(self):
        self.client.force_authenticate(user=self.agent)
        url = reverse('listing-upload-media', kwargs={'pk': self.foreign.pk})

        response = self.client.post(url, {'file': self.image()}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


# =============================================================================
# PUBLIC PAGE TESTS
# =============================================================================

@override_settings(
    TURNSTILE_SECRET_KEY='',
    GOOGLE_MAPS_API_KEY='',
    APP_URL='https://acme.example.com',
    DEFAULT_TENANT_SLUG='acme',
)
class PublicPagesTest(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = Tenant.objects.create(slug='acme', name='ACME', whatsapp_number='+447700900123')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        self.listing = make_listing(self.tenant, 'garden-flat', title='Garden flat')
        self.draft = make_listing(self.tenant, 'secret', status='draft')
        self.foreign = make_listing(self.other, 'foreign')

    def test_home_lists_active_listings(self):
        response = self.client.get(reverse('public:home'))
        self.assertContains(response, 'Garden flat')
        self.assertNotContains(response, 'Secret')

    def test_search_page(self):
        response = self.client.get(reverse('public:search'), {'keywords': 'garden'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([l.slug for l in response.context['listings']], ['garden-flat'])

    def test_search_page_ignores_invalid_cursor(self):
        response = self.client.get(reverse('public:search'), {'cursor': 'garbage!'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['listings']), 1)

    def test_listing_detail(self):
        response = self.client.get(self.listing.get_absolute_url())
        self.assertContains(response, 'Garden flat')
        self.assertIn('number=447700900123', response.context['whatsapp_url'])

    def test_draft_listing_not_found(self):
        response = self.client.get(self.draft.get_absolute_url())
        self.assertEqual(response.status_code, 404)

    def test_enquiry_form_creates_lead(self):
        response = self.client.post(self.listing.get_absolute_url(), {
            'name': 'Sam Buyer',
            'email': 'sam@example.com',
            'message': 'Can I view on Saturday?',
        })

        self.assertRedirects(response, self.listing.get_absolute_url(), fetch_redirect_response=False)
        lead = Lead.objects.get()
        self.assertEqual(lead.tenant, self.tenant)
        self.assertEqual(lead.listing, self.listing)

    def test_enquiry_form_errors_rerender(self):
        response = self.client.post(self.listing.get_absolute_url(), {'name': 'Sam'})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Lead.objects.exists())

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('services.turnstile.requests.post')
    def test_enquiry_form_failed_bot_check(self, mock_post):
        mock_post.return_value.json.return_value = {'success': False}
        response = self.client.post(self.listing.get_absolute_url(), {
            'name': 'Bot', 'email': 'bot@example.com', 'message': 'spam',
            'cf-turnstile-response': 'token',
        })
        self.assertContains(response, 'Bot verification failed')
        self.assertFalse(Lead.objects.exists())

    def test_whatsapp_track_records_click(self):
        response = self.client.get(
            reverse('whatsapp-track'),
            {'number': '447700900123', 'listing': self.listing.pk},
            HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1',
            HTTP_USER_AGENT='Mozilla/5.0',
        )

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response['Location'].startswith('https://wa.me/447700900123?text='))
        click = WhatsAppClick.objects.get()
        self.assertEqual(click.ip_address, '203.0.113.9')
        self.assertEqual(click.listing, self.listing)

    def test_whatsapp_track_requires_number(self):
        response = self.client.get(reverse('whatsapp-track'))
        self.assertEqual(response.status_code, 400)

    def test_whatsapp_track_foreign_listing(self):
        response = self.client.get(reverse('whatsapp-track'), {'number': '1', 'listing': self.foreign.pk})
        self.assertEqual(response.status_code, 404)
        self.assertFalse(WhatsAppClick.objects.exists())

    def test_sitemap(self):
        response = self.client.get('/sitemap.xml')

        self.assertEqual(response['Content-Type'], 'application/xml')
        self.assertContains(response, 'https://acme.example.com/listing/garden-flat/')
        self.assertNotContains(response, '/listing/secret/')
        self.assertNotContains(response, '/listing/foreign/')

    def test_robots(self):
        response = self.client.get('/robots.txt')
        self.assertContains(response, 'Sitemap: https://acme.example.com/sitemap.xml')


# =============================================================================
# BACK OFFICE PAGE TESTS
# =============================================================================

@override_settings(GOOGLE_MAPS_API_KEY='')
class ListingDashboardTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        self.admin = User.objects.create_user(username='admin', email='admin@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Membership.objects.create(user=self.admin, tenant=self.tenant, role=Membership.ROLE_ADMIN)
        self.listing = make_listing(self.tenant, 'garden-flat', lat=Decimal('51.5'), lng=Decimal('-0.1'))
        self.client.force_login(self.agent)

    def _form_data(self, **overrides):
        data = {
            'title': 'Garden flat',
            'slug': 'garden-flat',
            'status': 'active',
            'type': 'sale',
            'price': '250000',
            'currency': 'gbp',
            'address_line1': '1 High St',
            'city': 'London',
            'postcode': 'N1 1AA',
            'lat': '51.5',
            'lng': '-0.1',
            'description': 'A lovely home.',
            'features_text': 'garden, parking',
        }
        data.update(overrides)
        return data

    def test_listing_table(self):
        response = self.client.get(reverse('dashboard:listings'))
        self.assertContains(response, 'Garden Flat')

    def test_create_listing(self):
        response = self.client.post(
            reverse('dashboard:listing-create'),
            self._form_data(slug='New-Home', lat='', lng=''),
        )
        self.assertRedirects(response, reverse('dashboard:listings'), fetch_redirect_response=False)
        listing = Listing.objects.get(slug='new-home')
        self.assertEqual(listing.currency, 'GBP')
        self.assertEqual(listing.features, ['garden', 'parking'])

    def test_create_requires_both_coordinates(self):
        response = self.client.post(reverse('dashboard:listing-create'), self._form_data(slug='x', lng=''))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Listing.objects.filter(slug='x').exists())

    def test_create_duplicate_slug_shows_error(self):
        response = self.client.post(reverse('dashboard:listing-create'), self._form_data())
        self.assertEqual(response.status_code, 200)
        self.assertIn('slug', response.context['form'].errors)

    def test_edit_address_regeocodes(self):
        url = reverse('dashboard:listing-edit', kwargs={'pk': self.listing.pk})
        response = self.client.post(url, self._form_data(address_line1='2 New St'))

        self.assertEqual(response.status_code, 302)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.address_line1, '2 New St')
        self.assertFalse(self.listing.has_coordinates)

    def test_status_change(self):
        url = reverse('dashboard:listing-status', kwargs={'pk': self.listing.pk})
        self.client.post(url, {'status': 'sold'})
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.status, 'sold')

    def test_agent_cannot_delete(self):
        url = reverse('dashboard:listing-delete', kwargs={'pk': self.listing.pk})
        response = self.client.post(url)
        self.assertRedirects(response, reverse('public:home'), fetch_redirect_response=False)
        self.assertTrue(Listing.objects.filter(pk=self.listing.pk).exists())

    def test_admin_deletes(self):
        self.client.force_login(self.admin)
        self.client.post(reverse('dashboard:listing-delete', kwargs={'pk': self.listing.pk}))
        self.assertFalse(Listing.objects.filter(pk=self.listing.pk).exists())

    def test_import_page(self):
        upload = SimpleUploadedFile(
            'listings.csv',
            (CSV_HEADER + 'Loft,loft,sale,400000,1 Mill Rd,Leeds,Open plan,,,,,\n').encode(),
        )
        response = self.client.post(reverse('dashboard:listing-import'), {'file': upload})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['results']['success'], 1)

    def test_convert_redirects_to_property(self):
        response = self.client.post(reverse('dashboard:listing-convert', kwargs={'pk': self.listing.pk}))

        prop = Property.objects.get()
        self.assertRedirects(
            response,
            reverse('dashboard:pm-property-detail', kwargs={'pk': prop.pk}),
            fetch_redirect_response=False,
        )


# =============================================================================
# MANAGEMENT COMMAND TESTS
# =============================================================================

@override_settings(GOOGLE_MAPS_API_KEY='')
class ListingCommandTest(TestCase):

    def setUp(self):
        cache.clear()
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')

    def test_import_listings(self):
        handle, path = tempfile.mkstemp(suffix='.csv')
        with os.fdopen(handle, 'w') as f:
            f.write(CSV_HEADER + 'Loft,loft,sale,400000,1 Mill Rd,Leeds,Open plan,,,,,\n')
        self.addCleanup(os.remove, path)

        out = StringIO()
        call_command('import_listings', path, '--tenant', 'acme', '--no-geocode', stdout=out)

        self.assertIn('1 successful', out.getvalue())
        self.assertTrue(Listing.objects.filter(slug='loft').exists())

    def test_import_listings_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_listings', '/no/such/file.csv', '--tenant', 'acme', stdout=StringIO())

    def test_import_listings_unknown_tenant(self):
        with self.assertRaises(CommandError):
            call_command('import_listings', '/no/such/file.csv', '--tenant', 'nope', stdout=StringIO())

    @patch('listings.management.commands.geocode_listings.geocoding_service.batch_geocode_listings')
    def test_geocode_listings(self, mock_batch):
        make_listing(self.tenant, 'no-coords')
        mock_batch.return_value = {'total': 1, 'success': 1, 'skipped': 0, 'failed': 0, 'errors': []}

        out = StringIO()
        call_command('geocode_listings', '--tenant', 'acme', '--delay', '0', stdout=out)

        self.assertIn('Successfully geocoded: 1', out.getvalue())
        self.assertEqual(mock_batch.call_args.kwargs['delay'], 0)

    def test_geocode_listings_nothing_to_do(self):
        make_listing(self.tenant, 'has-coords', lat=Decimal('51.5'), lng=Decimal('-0.1'))
        out = StringIO()
        call_command('geocode_listings', stdout=out)
        self.assertIn('already have coordinates', out.getvalue())

    def test_rebuild_sitemaps(self):
        make_listing(self.tenant, 'live')
        out = StringIO()
        call_command('rebuild_sitemaps', stdout=out)

        self.assertIn('acme: 3 URL(s)', out.getvalue())
        self.assertEqual(len(cache.get(sitemap_cache_key(self.tenant))), 3)
