# ===== PROJECT-LEVEL TEST SUITE =====
"""
Test suite for the estate_site project package
File: estate_site/tests.py

Test Coverage:
- Health check and API info endpoints
- JSON 404s under /api/
- Django ValidationError conversion for the API
- Rate limiting middleware and client IP detection
- Geocoding and autocomplete proxies
- Back-office home page
"""

from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse
from rest_framework import status

from leads.models import Lead
from tenancy.models import Membership, Tenant
from services.geocoding import GeocodingError

from .exceptions import as_drf_validation_error
from .middleware import RateLimitMiddleware, get_client_ip

User = get_user_model()


# =============================================================================
# MONITORING ENDPOINT TESTS
# =============================================================================

class HealthCheckTest(TestCase):

    def test_healthy(self):
        response = self.client.get(reverse('health-check'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
        self.assertEqual(response.json()['database'], 'connected')
        self.assertIn('no-store', response['Cache-Control'])

    def test_get_only(self):
        self.assertEqual(self.client.post(reverse('health-check')).status_code, 405)


class APIInfoTest(TestCase):

    def test_lists_endpoints_and_tenant(self):
        Tenant.objects.create(slug='acme', name='ACME')

        response = self.client.get(reverse('api-info'), HTTP_X_TENANT='acme')

        data = response.json()
        self.assertEqual(data['version'], '1.0')
        self.assertEqual(data['endpoints']['leads']['export'], '/api/v1/leads/export/')
        self.assertEqual(data['tenant']['slug'], 'acme')
        self.assertTrue(data['tenant']['property_management'])
        self.assertEqual(data['tenants'], 1)

    def test_no_tenants(self):
        response = self.client.get(reverse('api-info'))
        self.assertIsNone(response.json()['tenant'])


class ErrorHandlerTest(TestCase):

    def test_api_404_is_json(self):
        response = self.client.get('/api/v1/does-not-exist/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'API endpoint not found')
        self.assertEqual(response.json()['available_endpoints'], '/api/v1/info/')


class ExceptionConversionTest(TestCase):

    def test_field_errors(self):
        converted = as_drf_validation_error(ValidationError({'price': 'Price must not be negative'}))
        self.assertEqual(converted.detail['price'][0], 'Price must not be negative')

    def test_plain_message(self):
        converted = as_drf_validation_error(ValidationError('Bot verification failed'))
        self.assertEqual(converted.detail['detail'][0], 'Bot verification failed')


# =============================================================================
# RATE LIMIT TESTS
# =============================================================================

@override_settings(
    RATE_LIMIT_ENABLED=True,
    RATE_LIMITS=[
        {'prefix': '/api/v1/health/', 'methods': 'read', 'requests': 2, 'window': 60},
        {'prefix': '/api/v1/leads/', 'methods': 'write', 'requests': 1, 'window': 60},
    ],
)
class RateLimitMiddlewareTest(TestCase):

    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)

    def test_blocks_after_limit(self):
        url = reverse('health-check')
        self.assertEqual(self.client.get(url).status_code, 200)
        self.assertEqual(self.client.get(url).status_code, 200)

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.json()['error'], 'Too many requests')
        self.assertTrue(0 < response.json()['retry_after'] <= 60)

    def test_clients_counted_separately(self):
        url = reverse('health-check')
        for _ in range(2):
            self.client.get(url, REMOTE_ADDR='10.0.0.1')

        self.assertEqual(self.client.get(url, REMOTE_ADDR='10.0.0.1').status_code, 429)
        self.assertEqual(self.client.get(url, REMOTE_ADDR='10.0.0.2').status_code, 200)

    def test_method_class(self):
        middleware = RateLimitMiddleware(lambda request: None)
        factory = RequestFactory()

        self.assertIsNone(middleware._match_rule(factory.get('/api/v1/leads/')))
        self.assertEqual(middleware._match_rule(factory.post('/api/v1/leads/'))['requests'], 1)
        self.assertIsNone(middleware._match_rule(factory.post('/api/v1/health/')))

    @override_settings(RATE_LIMIT_ENABLED=False)
    def test_disabled(self):
        url = reverse('health-check')
        for _ in range(4):
            self.assertEqual(self.client.get(url).status_code, 200)


class ConfiguredRateLimitsTest(TestCase):
    """The shipped RATE_LIMITS rules"""

    def setUp(self):
        self.middleware = RateLimitMiddleware(lambda request: None)
        self.factory = RequestFactory()

    def test_api_writes_use_write_bucket(self):
        for path in ('/api/v1/listings/', '/api/v1/pm/leases/', '/api/v1/leads/'):
            rule = self.middleware._match_rule(self.factory.post(path))
            self.assertEqual((rule['requests'], rule['window']), (10, 60), path)

    def test_api_reads(self):
        rule = self.middleware._match_rule(self.factory.get('/api/v1/listings/'))
        self.assertEqual((rule['requests'], rule['window']), (100, 60))

    def test_auth(self):
        rule = self.middleware._match_rule(self.factory.post('/api/v1/auth/token/'))
        self.assertEqual((rule['requests'], rule['window']), (10, 900))


class ClientIPTest(TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_forwarded_for_first_hop(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1')
        self.assertEqual(get_client_ip(request), '203.0.113.7')

    def test_real_ip(self):
        request = self.factory.get('/', HTTP_X_REAL_IP='198.51.100.4')
        self.assertEqual(get_client_ip(request), '198.51.100.4')

    def test_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='192.0.2.1')
        self.assertEqual(get_client_ip(request), '192.0.2.1')


# =============================================================================
# GOOGLE PROXY TESTS
# =============================================================================

class GeocodeProxyTest(TestCase):

    @patch('estate_site.views.geocoding_service.geocode_or_raise', return_value=(51.5034, -0.1276))
    def test_success(self, mock_geocode):
        response = self.client.post(
            reverse('geocode-proxy'),
            data={'address': ' 10 Downing Street, London '},
            content_type='application/json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'latitude': 51.5034,
            'longitude': -0.1276,
            'address': '10 Downing Street, London',
            'status': 'success',
        })
        mock_geocode.assert_called_once_with('10 Downing Street, London')

    @patch('estate_site.views.geocoding_service.geocode_or_raise', side_effect=GeocodingError('ZERO_RESULTS'))
    def test_not_found(self, mock_geocode):
        response = self.client.post(
            reverse('geocode-proxy'), data={'address': 'Nowhere'}, content_type='application/json'
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['status'], 'not_found')

    def test_bad_input(self):
        url = reverse('geocode-proxy')
        self.assertEqual(self.client.post(url, data='{nope', content_type='application/json').status_code, 400)
        self.assertEqual(self.client.post(url, data={}, content_type='application/json').status_code, 400)
        self.assertEqual(self.client.get(url).status_code, 405)


class PlacesAutocompleteProxyTest(TestCase):

    @patch('estate_site.views.geocoding_service.autocomplete')
    def test_predictions(self, mock_autocomplete):
        mock_autocomplete.return_value = [{'description': '10 Downing Street, London', 'place_id': 'abc'}]

        response = self.client.get(reverse('places-autocomplete'), {'input': '10 Down', 'sessiontoken': 's1'})

        self.assertEqual(response.json()['predictions'][0]['place_id'], 'abc')
        mock_autocomplete.assert_called_once_with('10 Down', 's1')

    @patch('estate_site.views.geocoding_service.autocomplete', side_effect=GeocodingError('REQUEST_DENIED'))
    def test_upstream_error(self, mock_autocomplete):
        response = self.client.get(reverse('places-autocomplete'), {'input': '10 Down'})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()['predictions'], [])


# =============================================================================
# DASHBOARD HOME TESTS
# =============================================================================

class DashboardHomeTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Lead.objects.create(tenant=self.tenant, name='Alice', email='alice@example.com', message='Hi')

    def test_requires_login(self):
        response = self.client.get(reverse('dashboard:home'))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('login'), response.url)

    def test_non_member_is_turned_away(self):
        stranger = User.objects.create_user(username='stranger')
        self.client.force_login(stranger)
        response = self.client.get(reverse('dashboard:home'))
        self.assertRedirects(response, reverse('public:home'), fetch_redirect_response=False)

    def test_home(self):
        self.client.force_login(self.agent)
        response = self.client.get(reverse('dashboard:home'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['lead_metrics']['total'], 1)
        self.assertIn('pm_stats', response.context)
        self.assertContains(response, 'Alice')

    def test_home_without_property_management(self):
        self.tenant.theme = {'features': {'propertyManagement': False}}
        self.tenant.save()
        self.client.force_login(self.agent)

        response = self.client.get(reverse('dashboard:home'))
        self.assertNotIn('pm_stats', response.context)
