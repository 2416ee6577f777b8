# ===== SERVICES LAYER TEST SUITE =====
"""
Test suite for the shared services layer
File: services/tests.py

Test Coverage:
- Geocoding service with Google Maps API integration (mocked)
- Places autocomplete proxy behaviour
- Turnstile bot verification
- Outbound email rendering and delivery
- Lenient value parsers used by importers and filters
- System checks for missing configuration
"""

from datetime import date
from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.core import mail
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings

from leads.models import Lead
from listings.models import Listing
from tenancy.models import Tenant

from .apps import check_required_services
from .geocoding import GeocodingError, GeocodingService, geocode_address, places_cache_key
from .notifications import email_service
from .parsing import parse_bool, parse_date, parse_decimal, parse_float, parse_int, split_list
from .turnstile import verify_turnstile_token


def mock_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


# =============================================================================
# GEOCODING SERVICE TESTS
# =============================================================================

@override_settings(GOOGLE_MAPS_API_KEY='test-key')
class GeocodingServiceTest(TestCase):
    """Test geocoding service functionality"""

    def setUp(self):
        """Set up geocoding test data"""
        cache.clear()
        self.service = GeocodingService()
        self.test_address = "10 Downing Street, London, SW1A 2AA"
        self.mock_geocoding_response = {
            'status': 'OK',
            'results': [{
                'geometry': {'location': {'lat': 51.5033635, 'lng': -0.1276248}},
            }],
        }
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')

    def _listing(self, slug, **kwargs):
        defaults = {
            'tenant': self.tenant,
            'slug': slug,
            'title': slug.title(),
            'type': 'sale',
            'price': Decimal('250000'),
            'address_line1': '10 Downing Street',
            'city': 'London',
            'postcode': 'SW1A 2AA',
            'description': 'A well known address.',
        }
        defaults.update(kwargs)
        return Listing.objects.create(**defaults)

    @patch('services.geocoding.requests.get')
    def test_successful_geocoding(self, mock_get):
        """Test successful address geocoding"""
        mock_get.return_value = mock_response(self.mock_geocoding_response)

        result = self.service.geocode_address(self.test_address)

        self.assertEqual(result, (51.5033635, -0.1276248))
        params = mock_get.call_args.kwargs['params']
        self.assertEqual(params['address'], self.test_address)
        self.assertEqual(params['key'], 'test-key')

    @patch('services.geocoding.requests.get')
    def test_results_are_cached(self, mock_get):
        mock_get.return_value = mock_response(self.mock_geocoding_response)

        self.service.geocode_address(self.test_address)
        self.service.geocode_address(f"  {self.test_address.upper()}  ")

        self.assertEqual(mock_get.call_count, 1)

    def test_cache_key_is_hashed(self):
        key = places_cache_key('geocode', self.test_address)

        self.assertRegex(key, r'^places:geocode:[0-9a-f]{32}$')
        self.assertEqual(key, places_cache_key('geocode', f"  {self.test_address.upper()} "))
        self.assertNotEqual(key, places_cache_key('autocomplete', self.test_address))

    @patch('services.geocoding.requests.get')
    def test_zero_results(self, mock_get):
        mock_get.return_value = mock_response({'status': 'ZERO_RESULTS', 'results': []})

        self.assertIsNone(self.service.geocode_address('Nowhere at all'))
        with self.assertRaisesMessage(GeocodingError, 'No results found'):
            self.service.geocode_or_raise('Nowhere at all')

    @patch('services.geocoding.requests.get')
    def test_network_error(self, mock_get):
        """Test handling of network failures"""
        mock_get.side_effect = requests.ConnectionError('boom')

        with self.assertRaisesMessage(GeocodingError, 'Network error'):
            self.service.geocode_or_raise(self.test_address)

    @patch('services.geocoding.requests.get')
    def test_malformed_response(self, mock_get):
        mock_get.return_value = mock_response({'status': 'OK', 'results': [{'geometry': {}}]})

        with self.assertRaisesMessage(GeocodingError, 'Invalid geocoding response'):
            self.service.geocode_or_raise(self.test_address)

    @override_settings(GOOGLE_MAPS_API_KEY='')
    @patch('services.geocoding.requests.get')
    def test_missing_api_key(self, mock_get):
        self.assertIsNone(geocode_address(self.test_address))
        mock_get.assert_not_called()

    def test_empty_address(self):
        with self.assertRaisesMessage(GeocodingError, 'Empty address'):
            self.service.geocode_or_raise('   ')

    @patch('services.geocoding.requests.get')
    def test_geocode_listing_updates_coordinates(self, mock_get):
        mock_get.return_value = mock_response(self.mock_geocoding_response)
        listing = self._listing('downing-street')

        self.assertTrue(self.service.geocode_listing(listing))

        listing.refresh_from_db()
        self.assertEqual(listing.lat, Decimal('51.5033635'))
        self.assertEqual(listing.lng, Decimal('-0.1276248'))

    @patch('services.geocoding.requests.get')
    def test_geocode_listing_keeps_existing_coordinates(self, mock_get):
        listing = self._listing('has-coords', lat=Decimal('51.5'), lng=Decimal('-0.12'))

        self.assertTrue(self.service.geocode_listing(listing))
        mock_get.assert_not_called()

    @patch('services.geocoding.requests.get')
    def test_batch_geocode_listings(self, mock_get):
        """Test batch geocoding with mixed outcomes"""
        mock_get.side_effect = [
            mock_response(self.mock_geocoding_response),
            mock_response({'status': 'ZERO_RESULTS', 'results': []}),
        ]
        self._listing('first', address_line1='1 High St')
        failing = self._listing('second', address_line1='2 High St')
        self._listing('third', lat=Decimal('51.5'), lng=Decimal('-0.12'))

        results = self.service.batch_geocode_listings(
            Listing.objects.filter(tenant=self.tenant).order_by('slug'), delay=0
        )

        self.assertEqual(results['total'], 3)
        self.assertEqual(results['success'], 1)
        self.assertEqual(results['skipped'], 1)
        self.assertEqual(results['failed'], 1)
        self.assertEqual(results['errors'][0]['id'], failing.id)


@override_settings(GOOGLE_MAPS_API_KEY='test-key')
class PlacesAutocompleteTest(SimpleTestCase):

    def setUp(self):
        cache.clear()
        self.service = GeocodingService()

    @patch('services.geocoding.requests.get')
    def test_predictions_returned(self, mock_get):
        mock_get.return_value = mock_response({
            'status': 'OK',
            'predictions': [
                {'place_id': 'abc', 'description': '10 Downing Street, London', 'terms': []},
            ],
        })

        predictions = self.service.autocomplete('10 Downi', session_token='tok')

        self.assertEqual(predictions, [{'place_id': 'abc', 'description': '10 Downing Street, London'}])
        self.assertEqual(mock_get.call_args.kwargs['params']['sessiontoken'], 'tok')

    @patch('services.geocoding.requests.get')
    def test_blank_input_skips_api(self, mock_get):
        self.assertEqual(self.service.autocomplete('  '), [])
        mock_get.assert_not_called()

    @patch('services.geocoding.requests.get')
    def test_api_error_raises(self, mock_get):
        mock_get.return_value = mock_response({'status': 'REQUEST_DENIED'})

        with self.assertRaisesMessage(GeocodingError, 'REQUEST_DENIED'):
            self.service.autocomplete('10 Downi')


# =============================================================================
# TURNSTILE TESTS
# =============================================================================

class TurnstileTest(SimpleTestCase):

    @override_settings(TURNSTILE_SECRET_KEY='')
    def test_skipped_without_secret(self):
        self.assertTrue(verify_turnstile_token(None))

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    def test_missing_token_fails(self):
        self.assertFalse(verify_turnstile_token(''))

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('services.turnstile.requests.post')
    def test_successful_verification(self, mock_post):
        mock_post.return_value = mock_response({'success': True})

        self.assertTrue(verify_turnstile_token('token', remote_ip='203.0.113.9'))
        payload = mock_post.call_args.kwargs['data']
        self.assertEqual(payload, {'secret': 'secret', 'response': 'token', 'remoteip': '203.0.113.9'})

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('services.turnstile.requests.post')
    def test_rejected_token(self, mock_post):
        mock_post.return_value = mock_response({'success': False, 'error-codes': ['invalid-input-response']})
        self.assertFalse(verify_turnstile_token('token'))

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('services.turnstile.requests.post')
    def test_network_failure_fails_closed(self, mock_post):
        mock_post.side_effect = requests.Timeout('slow')
        self.assertFalse(verify_turnstile_token('token'))


# =============================================================================
# EMAIL TESTS
# =============================================================================

@override_settings(
    EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend',
    DEFAULT_FROM_EMAIL='noreply@example.com',
    LEAD_NOTIFICATION_EMAIL='fallback@example.com',
)
class EmailServiceTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME', contact_email='hello@acme.test')
        self.listing = Listing.objects.create(
            tenant=self.tenant,
            slug='garden-flat',
            title='Garden flat',
            type='rent',
            price=Decimal('1500'),
            address_line1='1 Park Ave',
            city='Bristol',
            description='Ground floor flat with garden.',
        )

    def test_lead_notification_for_listing(self):
        lead = Lead.objects.create(
            tenant=self.tenant,
            listing=self.listing,
            name='Sam Buyer',
            email='sam@example.com',
            message='Is it still available?',
        )

        self.assertTrue(email_service.send_lead_notification(lead))

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.subject, 'New lead for: Garden flat')
        self.assertEqual(message.to, ['hello@acme.test'])
        self.assertEqual(message.reply_to, ['sam@example.com'])
        self.assertIn('Is it still available?', message.body)
        self.assertEqual(message.alternatives[0][1], 'text/html')

    def test_general_lead_goes_to_fallback_address(self):
        self.tenant.contact_email = None
        self.tenant.save()
        lead = Lead.objects.create(tenant=self.tenant, name='Sam', email='sam@example.com', message='Hi')

        email_service.send_lead_notification(lead)

        self.assertEqual(mail.outbox[0].subject, 'New lead from Sam')
        self.assertEqual(mail.outbox[0].to, ['fallback@example.com'])

    def test_no_recipients_is_not_sent(self):
        self.assertFalse(email_service.send('Subject', 'emails/leads_digest', {}, to=['', None]))
        self.assertEqual(len(mail.outbox), 0)

    @patch('services.notifications.EmailMultiAlternatives.send')
    def test_backend_failure_reported_as_false(self, mock_send):
        mock_send.side_effect = OSError('SMTP down')
        lead = Lead.objects.create(tenant=self.tenant, name='Sam', email='sam@example.com', message='Hi')

        self.assertFalse(email_service.send_lead_notification(lead))


# =============================================================================
# PARSING TESTS
# =============================================================================

class ParsingTest(SimpleTestCase):

    def test_parse_int(self):
        self.assertEqual(parse_int('3'), 3)
        self.assertEqual(parse_int('3.0'), 3)
        self.assertEqual(parse_int('1,200'), 1200)
        self.assertIsNone(parse_int('3.5'))
        self.assertIsNone(parse_int(''))
        self.assertIsNone(parse_int('abc'))
        with self.assertRaises(ValueError):
            parse_int('abc', strict=True)

    def test_parse_decimal(self):
        self.assertEqual(parse_decimal('£1,250.00'), Decimal('1250.00'))
        self.assertEqual(parse_decimal('$99'), Decimal('99'))
        self.assertIsNone(parse_decimal('nan'))
        self.assertIsNone(parse_decimal('Infinity'))
        with self.assertRaises(ValueError):
            parse_decimal('ten', strict=True)

    def test_parse_float(self):
        self.assertEqual(parse_float('51.5'), 51.5)
        self.assertIsNone(parse_float(None))

    def test_parse_date(self):
        self.assertEqual(parse_date('2024-03-01'), date(2024, 3, 1))
        self.assertEqual(parse_date('01/03/2024'), date(2024, 3, 1))
        self.assertEqual(parse_date('20240301'), date(2024, 3, 1))
        self.assertIsNone(parse_date('not a date'))
        with self.assertRaises(ValueError):
            parse_date('not a date', strict=True)

    def test_parse_bool(self):
        self.assertTrue(parse_bool('Yes'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('no'))
        self.assertFalse(parse_bool(None))

    def test_split_list(self):
        self.assertEqual(split_list('garden, parking,,pool '), ['garden', 'parking', 'pool'])
        self.assertEqual(split_list(['a ', ' ', 'b']), ['a', 'b'])
        self.assertEqual(split_list(None), [])


# =============================================================================
# SYSTEM CHECK TESTS
# =============================================================================

class SystemCheckTest(SimpleTestCase):

    @override_settings(GOOGLE_MAPS_API_KEY='', TURNSTILE_SECRET_KEY='', DEBUG=False)
    def test_warns_about_missing_keys(self):
        ids = [warning.id for warning in check_required_services(None)]
        self.assertEqual(ids, ['services.W001', 'services.W002'])

    @override_settings(GOOGLE_MAPS_API_KEY='key', TURNSTILE_SECRET_KEY='secret')
    def test_no_warnings_when_configured(self):
        self.assertEqual(check_required_services(None), [])
