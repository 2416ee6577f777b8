# ===== TENANCY APP TEST SUITE =====
"""
Test suite for the tenancy app
File: tenancy/tests.py

Test Coverage:
- Tenant resolution precedence (header, query, cookie, membership, default)
- TenantMiddleware cookie persistence
- Role checks, owner inheritance and superuser bypass
- Property management feature flag
- WhatsApp number normalization and back-office user creation
- Settings page and management commands
"""

from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.http import Http404
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse

from listings.models import Listing

from .features import is_property_management_enabled
from .models import Membership, Tenant
from .permissions import (
    ALL_ROLES,
    MANAGER_ROLES,
    PROPERTY_MANAGEMENT_ROLES,
    get_membership,
    user_has_role,
)
from .resolution import (
    SOURCE_COOKIE,
    SOURCE_DEFAULT,
    SOURCE_HEADER,
    SOURCE_MEMBERSHIP,
    SOURCE_QUERY,
    get_tenant_identifier,
    lookup_tenant,
    require_tenant,
)
from .services import create_tenant_user, normalize_whatsapp_number, update_whatsapp_number

User = get_user_model()


# =============================================================================
# MODEL TESTS
# =============================================================================

class TenantModelTest(TestCase):
    """Test Tenant and Membership model behaviour"""

    def setUp(self):
        self.tenant = Tenant.objects.create(
            slug='acme',
            name='ACME Real Estate',
            theme={'primaryColor': '#3b82f6', 'features': {'propertyManagement': False}},
        )

    def test_string_representation(self):
        self.assertEqual(str(self.tenant), 'ACME Real Estate')
        self.assertEqual(repr(self.tenant), '<Tenant: acme>')

    def test_features_from_theme(self):
        self.assertEqual(self.tenant.features, {'propertyManagement': False})

    def test_features_ignores_malformed_value(self):
        self.tenant.theme = {'features': 'yes'}
        self.assertEqual(self.tenant.features, {})

    @override_settings(LEAD_NOTIFICATION_EMAIL='fallback@example.com')
    def test_notification_email_falls_back_to_setting(self):
        self.assertEqual(self.tenant.notification_email, 'fallback@example.com')

        self.tenant.contact_email = 'hello@acme.test'
        self.assertEqual(self.tenant.notification_email, 'hello@acme.test')

    def test_membership_unique_per_tenant(self):
        """A user holds at most one role per tenant"""
        user = User.objects.create_user(username='jo', email='jo@acme.test')
        Membership.objects.create(user=user, tenant=self.tenant, role=Membership.ROLE_AGENT)
        with self.assertRaises(Exception):  # IntegrityError
            Membership.objects.create(user=user, tenant=self.tenant, role=Membership.ROLE_ADMIN)


# =============================================================================
# RESOLUTION TESTS
# =============================================================================

@override_settings(DEFAULT_TENANT_SLUG='acme')
class TenantResolutionTest(TestCase):
    """Test how a request is mapped onto a tenant"""

    def setUp(self):
        self.factory = RequestFactory()
        self.acme = Tenant.objects.create(slug='acme', name='ACME')
        self.bluebird = Tenant.objects.create(slug='bluebird', name='Bluebird')

    def _request(self, path='/', user=None, **extra):
        request = self.factory.get(path, **extra)
        request.user = user or AnonymousUser()
        return request

    def test_header_wins_over_query_and_cookie(self):
        request = self._request('/?tenant=acme', HTTP_X_TENANT='bluebird')
        request.COOKIES['x-tenant'] = 'acme'
        self.assertEqual(get_tenant_identifier(request), ('bluebird', SOURCE_HEADER))

    def test_query_wins_over_cookie(self):
        request = self._request('/?tenant=bluebird')
        request.COOKIES['x-tenant'] = 'acme'
        self.assertEqual(get_tenant_identifier(request), ('bluebird', SOURCE_QUERY))

    def test_cookie_used_without_header_or_query(self):
        request = self._request()
        request.COOKIES['x-tenant'] = 'bluebird'
        self.assertEqual(get_tenant_identifier(request), ('bluebird', SOURCE_COOKIE))

    def test_membership_used_for_signed_in_user(self):
        user = User.objects.create_user(username='jo', email='jo@bluebird.test')
        Membership.objects.create(user=user, tenant=self.bluebird)
        request = self._request(user=user)
        self.assertEqual(get_tenant_identifier(request), ('bluebird', SOURCE_MEMBERSHIP))

    def test_default_slug_as_last_resort(self):
        self.assertEqual(get_tenant_identifier(self._request()), ('acme', SOURCE_DEFAULT))

    def test_blank_header_is_ignored(self):
        request = self._request('/?tenant=bluebird', HTTP_X_TENANT='   ')
        self.assertEqual(get_tenant_identifier(request), ('bluebird', SOURCE_QUERY))

    def test_lookup_by_slug_and_id(self):
        self.assertEqual(lookup_tenant('bluebird'), self.bluebird)
        self.assertEqual(lookup_tenant(str(self.bluebird.pk)), self.bluebird)

    def test_unknown_identifier_falls_back_to_first_tenant(self):
        self.assertEqual(lookup_tenant('does-not-exist'), self.acme)

    def test_require_tenant_raises_when_no_tenants(self):
        Tenant.objects.all().delete()
        with self.assertRaises(Http404):
            require_tenant(self._request())


class TenantMiddlewareTest(TestCase):
    """Test TenantMiddleware through the test client"""

    def setUp(self):
        self.acme = Tenant.objects.create(slug='acme', name='ACME Real Estate')
        self.bluebird = Tenant.objects.create(slug='bluebird', name='Bluebird Properties')

    def test_query_choice_persisted_in_cookie(self):
        response = self.client.get('/', {'tenant': 'bluebird'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.cookies['x-tenant'].value, 'bluebird')
        self.assertEqual(response.wsgi_request.tenant, self.bluebird)

    def test_cookie_keeps_tenant_on_later_requests(self):
        self.client.cookies['x-tenant'] = 'bluebird'
        response = self.client.get('/')
        self.assertEqual(response.wsgi_request.tenant, self.bluebird)
        self.assertNotIn('x-tenant', response.cookies)

    def test_header_does_not_set_cookie(self):
        response = self.client.get('/', HTTP_X_TENANT='bluebird')
        self.assertEqual(response.wsgi_request.tenant, self.bluebird)
        self.assertNotIn('x-tenant', response.cookies)

    def test_theme_colour_rendered(self):
        self.bluebird.theme = {'primaryColor': '#10b981'}
        self.bluebird.save()
        response = self.client.get('/', HTTP_X_TENANT='bluebird')
        self.assertContains(response, '#10b981')


# =============================================================================
# PERMISSION TESTS
# =============================================================================

class RoleCheckTest(TestCase):
    """Test role checks used by API permission classes and page decorators"""

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        self.owner = User.objects.create_user(username='owner', email='owner@acme.test')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.owner, tenant=self.tenant, role=Membership.ROLE_OWNER)
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)

    def test_owner_inherits_admin_rights(self):
        self.assertTrue(user_has_role(self.owner, self.tenant, MANAGER_ROLES))
        self.assertTrue(user_has_role(self.owner, self.tenant, PROPERTY_MANAGEMENT_ROLES))

    def test_agent_is_not_a_manager(self):
        self.assertTrue(user_has_role(self.agent, self.tenant, ALL_ROLES))
        self.assertFalse(user_has_role(self.agent, self.tenant, MANAGER_ROLES))

    def test_membership_is_scoped_to_tenant(self):
        self.assertFalse(user_has_role(self.owner, self.other, ALL_ROLES))
        self.assertIsNone(get_membership(self.owner, self.other))

    def test_superuser_passes_every_check(self):
        admin = User.objects.create_superuser(username='root', email='root@example.com', password='x')
        self.assertTrue(user_has_role(admin, self.other, MANAGER_ROLES))

    def test_anonymous_user_has_no_role(self):
        self.assertFalse(user_has_role(AnonymousUser(), self.tenant, ALL_ROLES))


class FeatureFlagTest(TestCase):

    def test_property_management_defaults_on(self):
        tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.assertTrue(is_property_management_enabled(tenant))

    def test_property_management_switched_off(self):
        tenant = Tenant.objects.create(
            slug='acme', name='ACME', theme={'features': {'propertyManagement': False}}
        )
        self.assertFalse(is_property_management_enabled(tenant))

    def test_no_tenant_means_disabled(self):
        self.assertFalse(is_property_management_enabled(None))


# =============================================================================
# SERVICE TESTS
# =============================================================================

class TenantServiceTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')

    def test_normalize_whatsapp_number(self):
        self.assertEqual(normalize_whatsapp_number('00 44 7700 900123'), '+447700900123')
        self.assertEqual(normalize_whatsapp_number('+44 (0) 7700-900123'), '+4407700900123')
        self.assertEqual(normalize_whatsapp_number('447700900123'), '+447700900123')
        self.assertIsNone(normalize_whatsapp_number('   '))
        self.assertIsNone(normalize_whatsapp_number(None))

    def test_update_whatsapp_number(self):
        update_whatsapp_number(self.tenant, '07700 900123')
        self.tenant.refresh_from_db()
        self.assertEqual(self.tenant.whatsapp_number, '+07700900123')

        update_whatsapp_number(self.tenant, '')
        self.tenant.refresh_from_db()
        self.assertIsNone(self.tenant.whatsapp_number)

    def test_create_tenant_user(self):
        membership, created = create_tenant_user(
            self.tenant, ' Jo@Acme.Test ', role=Membership.ROLE_AGENT, password='pw12345678', name='Jo Bloggs'
        )
        self.assertTrue(created)
        self.assertEqual(membership.user.email, 'jo@acme.test')
        self.assertEqual(membership.user.first_name, 'Jo')
        self.assertEqual(membership.user.last_name, 'Bloggs')
        self.assertEqual(membership.role, Membership.ROLE_AGENT)

    def test_create_tenant_user_keeps_existing_membership(self):
        create_tenant_user(self.tenant, 'jo@acme.test', role=Membership.ROLE_AGENT)
        membership, created = create_tenant_user(self.tenant, 'jo@acme.test', role=Membership.ROLE_OWNER)
        self.assertFalse(created)
        self.assertEqual(membership.role, Membership.ROLE_AGENT)
        self.assertEqual(User.objects.filter(email='jo@acme.test').count(), 1)


# =============================================================================
# SETTINGS PAGE TESTS
# =============================================================================

class TenantSettingsViewTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.url = reverse('dashboard:settings')
        self.admin = User.objects.create_user(username='admin', email='admin@acme.test', password='pw12345678')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test', password='pw12345678')
        Membership.objects.create(user=self.admin, tenant=self.tenant, role=Membership.ROLE_ADMIN)
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)

    def test_requires_login(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('login'), response['Location'])

    def test_agent_is_redirected_home(self):
        self.client.force_login(self.agent)
        response = self.client.get(self.url)
        self.assertRedirects(response, reverse('public:home'), fetch_redirect_response=False)

    def test_admin_saves_contact_details(self):
        self.client.force_login(self.admin)
        response = self.client.post(self.url, {
            'whatsapp_number': '00 44 7700 900123',
            'contact_email': 'hello@acme.test',
            'contact_phone': '020 7946 0000',
        })
        self.assertRedirects(response, self.url, fetch_redirect_response=False)

        self.tenant.refresh_from_db()
        self.assertEqual(self.tenant.whatsapp_number, '+447700900123')
        self.assertEqual(self.tenant.contact_email, 'hello@acme.test')
        self.assertEqual(self.tenant.contact_phone, '020 7946 0000')


# =============================================================================
# MANAGEMENT COMMAND TESTS
# =============================================================================

class TenancyCommandTest(TestCase):

    def test_seed_demo_is_idempotent(self):
        out = StringIO()
        call_command('seed_demo', '--listings', '3', '--seed', '7', stdout=out)
        call_command('seed_demo', '--listings', '3', '--seed', '7', stdout=out)

        self.assertEqual(Tenant.objects.filter(slug__in=['acme', 'bluebird']).count(), 2)
        self.assertEqual(Listing.objects.filter(tenant__slug='acme').count(), 3)
        self.assertIn('already has listings', out.getvalue())

    def test_create_tenant_user_command(self):
        Tenant.objects.create(slug='acme', name='ACME')
        out = StringIO()
        call_command('create_tenant_user', '--tenant', 'acme', '--email', 'jo@acme.test', '--role', 'agent', stdout=out)

        self.assertIn('✓', out.getvalue())
        self.assertTrue(Membership.objects.filter(user__email='jo@acme.test', role='agent').exists())

    def test_create_tenant_user_unknown_tenant(self):
        with self.assertRaises(CommandError):
            call_command('create_tenant_user', '--tenant', 'nope', '--email', 'jo@acme.test', stdout=StringIO())
