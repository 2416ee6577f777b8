# ===== LEADS APP TEST SUITE =====
"""
Test suite for the leads app
File: leads/tests.py

Test Coverage:
- Lead capture: required fields, bot verification, listing ownership
- Notification email sent after commit
- Back-office updates, assignment and deletion rights
- CSV export and dashboard metrics
- Lead API endpoints and dashboard pages
- Weekly digest command
"""

import csv
import io
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.http import Http404
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from listings.models import Listing, WhatsAppClick
from tenancy.models import Membership, Tenant

from .models import Lead
from .services import EXPORT_HEADERS, LeadService, notify_new_lead

User = get_user_model()


def make_listing(tenant, slug='garden-flat'):
    return Listing.objects.create(
        tenant=tenant,
        slug=slug,
        title='Garden flat',
        status='active',
        type='rent',
        price=Decimal('1500'),
        address_line1='1 Park Ave',
        city='Bristol',
        description='Ground floor flat.',
    )


def make_lead(tenant, **kwargs):
    defaults = {
        'tenant': tenant,
        'name': 'Sam Buyer',
        'email': 'sam@example.com',
        'message': 'Is it available?',
    }
    defaults.update(kwargs)
    return Lead.objects.create(**defaults)


# =============================================================================
# MODEL TESTS
# =============================================================================

class LeadModelTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')

    def test_defaults(self):
        lead = make_lead(self.tenant)
        self.assertEqual(lead.status, Lead.STATUS_NEW)
        self.assertEqual(lead.source, Lead.SOURCE_FORM)
        self.assertEqual(str(lead), 'Sam Buyer <sam@example.com>')

    def test_listing_title(self):
        self.assertEqual(make_lead(self.tenant).listing_title, 'General')
        listing = make_listing(self.tenant)
        self.assertEqual(make_lead(self.tenant, listing=listing).listing_title, 'Garden flat')

    def test_deleting_listing_keeps_lead(self):
        listing = make_listing(self.tenant)
        lead = make_lead(self.tenant, listing=listing)
        listing.delete()
        lead.refresh_from_db()
        self.assertIsNone(lead.listing)


# =============================================================================
# SERVICE TESTS
# =============================================================================

@override_settings(
    TURNSTILE_SECRET_KEY='',
    EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend',
)
class LeadCaptureTest(TestCase):
    """Test public lead capture through LeadService.create"""

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME', contact_email='hello@acme.test')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        self.listing = make_listing(self.tenant)
        self.service = LeadService(self.tenant)
        self.data = {
            'name': '  Sam Buyer ',
            'email': 'sam@example.com',
            'phone': '',
            'message': 'Can I view it?',
        }

    def test_create_general_enquiry(self):
        lead = self.service.create(self.data)

        self.assertEqual(lead.name, 'Sam Buyer')
        self.assertIsNone(lead.phone)
        self.assertIsNone(lead.listing)
        self.assertEqual(lead.source, Lead.SOURCE_FORM)

    def test_create_for_listing_by_id(self):
        lead = self.service.create(dict(self.data, listing=self.listing.pk))
        self.assertEqual(lead.listing, self.listing)

    def test_listing_from_other_tenant_is_not_found(self):
        foreign = make_listing(self.other, 'foreign')
        with self.assertRaises(Http404):
            self.service.create(dict(self.data, listing=foreign.pk))
        self.assertFalse(Lead.objects.exists())

    def test_required_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create({'name': ' ', 'email': '', 'message': 'hi'})
        self.assertEqual(set(ctx.exception.message_dict), {'name', 'email'})

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('leads.services.verify_turnstile_token', return_value=False)
    def test_failed_bot_check(self, mock_verify):
        with self.assertRaisesMessage(ValidationError, 'Bot verification failed'):
            self.service.create(self.data, turnstile_token='bad', remote_ip='203.0.113.9')
        mock_verify.assert_called_once_with('bad', '203.0.113.9')
        self.assertFalse(Lead.objects.exists())

    def test_notification_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.service.create(dict(self.data, listing=self.listing.pk))

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'New lead for: Garden flat')
        self.assertEqual(mail.outbox[0].to, ['hello@acme.test'])

    @patch('leads.services.email_service.send_lead_notification', side_effect=RuntimeError('smtp'))
    def test_notification_not_sent_before_commit(self, mock_send):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            lead = self.service.create(self.data)

        mock_send.assert_not_called()
        self.assertEqual(len(callbacks), 1)
        self.assertTrue(Lead.objects.filter(pk=lead.pk).exists())

    def test_notify_missing_lead(self):
        self.assertFalse(notify_new_lead(999999))


class LeadManagementTest(TestCase):
    """Test back-office updates and reporting"""

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        self.service = LeadService(self.tenant)
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        self.stranger = User.objects.create_user(username='stranger', email='s@bluebird.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Membership.objects.create(user=self.stranger, tenant=self.other, role=Membership.ROLE_AGENT)
        self.listing = make_listing(self.tenant)

    def test_update_status_notes_and_assignee(self):
        lead = make_lead(self.tenant)

        self.service.update(lead, {'status': 'contacted', 'notes': 'Called back', 'assigned_to': self.agent})

        lead.refresh_from_db()
        self.assertEqual(lead.status, 'contacted')
        self.assertEqual(lead.notes, 'Called back')
        self.assertEqual(lead.assigned_to, self.agent)

    def test_update_rejects_unknown_status(self):
        with self.assertRaises(ValidationError):
            self.service.update(make_lead(self.tenant), {'status': 'won'})

    def test_update_rejects_assignee_outside_tenant(self):
        with self.assertRaises(ValidationError):
            self.service.update(make_lead(self.tenant), {'assigned_to': self.stranger})

    def test_list_filters(self):
        make_lead(self.tenant, name='Alice', email='alice@example.com', listing=self.listing)
        make_lead(self.tenant, name='Bob', email='bob@example.com', status='archived')
        make_lead(self.other, name='Alice Elsewhere')

        self.assertEqual(self.service.list().count(), 2)
        self.assertEqual([l.name for l in self.service.list(status='archived')], ['Bob'])
        self.assertEqual([l.name for l in self.service.list(search='ALICE')], ['Alice'])
        self.assertEqual([l.name for l in self.service.list(listing_id=self.listing.pk)], ['Alice'])
        self.assertEqual(self.service.list(listing_id='abc').count(), 2)

    def test_get_is_tenant_scoped(self):
        foreign = make_lead(self.other)
        with self.assertRaises(Http404):
            self.service.get(foreign.pk)

    def test_export_csv(self):
        make_lead(self.tenant, name='Alice', phone='0123', listing=self.listing, message='Line one\nline "two"')
        make_lead(self.tenant, name='Bob')

        content = self.service.export_csv()

        self.assertTrue(content.startswith('"Name","Email","Phone"'))
        rows = list(csv.reader(io.StringIO(content)))
        self.assertEqual(rows[0], EXPORT_HEADERS)
        self.assertEqual(rows[1][0], 'Bob')
        self.assertEqual(rows[2][3], 'Garden flat')
        self.assertEqual(rows[2][4], 'Line one\nline "two"')
        self.assertEqual(rows[1][3], 'General')

    def test_metrics(self):
        now = timezone.now()
        make_lead(self.tenant)
        old = make_lead(self.tenant, status='converted')
        ancient = make_lead(self.tenant, status='archived', source=Lead.SOURCE_WHATSAPP)
        Lead.objects.filter(pk=old.pk).update(created_at=now - timedelta(days=10))
        Lead.objects.filter(pk=ancient.pk).update(created_at=now - timedelta(days=40))
        make_lead(self.other)

        WhatsAppClick.objects.create(tenant=self.tenant, ip_address='1.1.1.1')
        WhatsAppClick.objects.create(tenant=self.tenant, ip_address='1.1.1.1')
        WhatsAppClick.objects.create(tenant=self.tenant, ip_address='2.2.2.2')

        metrics = self.service.metrics(now=now)

        self.assertEqual(metrics['total'], 3)
        self.assertEqual(metrics['last_7_days'], 1)
        self.assertEqual(metrics['last_30_days'], 2)
        self.assertEqual(metrics['by_status']['new'], 1)
        self.assertEqual(metrics['by_status']['qualified'], 0)
        self.assertEqual(metrics['by_source'], {'form': 2, 'whatsapp': 1})
        self.assertEqual(metrics['whatsapp_clicks']['total'], 3)
        self.assertEqual(metrics['whatsapp_clicks']['unique_ips'], 2)

    def test_digest(self):
        now = timezone.now()
        make_lead(self.tenant, name='Recent')
        old = make_lead(self.tenant, name='Old')
        Lead.objects.filter(pk=old.pk).update(created_at=now - timedelta(days=9))

        summary = self.service.digest(days=7, now=now)

        self.assertEqual(summary['total'], 1)
        self.assertEqual(summary['by_status'], {'new': 1})
        self.assertEqual([lead.name for lead in summary['leads']], ['Recent'])


# =============================================================================
# API TESTS
# =============================================================================

@override_settings(TURNSTILE_SECRET_KEY='')
class LeadAPITest(APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.client.credentials(HTTP_X_TENANT='acme')
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')
        self.listing = make_listing(self.tenant)

        self.admin = User.objects.create_user(username='admin', email='admin@acme.test')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.admin, tenant=self.tenant, role=Membership.ROLE_ADMIN)
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)

        self.lead = make_lead(self.tenant, listing=self.listing)
        self.foreign_lead = make_lead(self.other)
        self.list_url = reverse('lead-list')

    def test_public_create(self):
        response = self.client.post(self.list_url, {
            'name': 'Jo',
            'email': 'jo@example.com',
            'message': 'Hello',
            'listing': self.listing.pk,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['listing_title'], 'Garden flat')
        self.assertEqual(response.data['status'], 'new')

    def test_public_create_validation(self):
        response = self.client.post(self.list_url, {'name': 'Jo', 'email': 'not-an-email'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)
        self.assertIn('message', response.data)

    def test_public_create_foreign_listing(self):
        foreign = make_listing(self.other, 'foreign')
        response = self.client.post(self.list_url, {
            'name': 'Jo', 'email': 'jo@example.com', 'message': 'Hi', 'listing': foreign.pk,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @override_settings(TURNSTILE_SECRET_KEY='secret')
    @patch('leads.services.verify_turnstile_token', return_value=False)
    def test_public_create_bot_check(self, mock_verify):
        response = self.client.post(self.list_url, {
            'name': 'Jo', 'email': 'jo@example.com', 'message': 'Hi', 'turnstile_token': 'x',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Bot verification failed', str(response.data))

    def test_list_requires_membership(self):
        self.assertEqual(self.client.get(self.list_url).status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_is_tenant_scoped(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data['results']], [self.lead.pk])

    def test_list_ignores_non_numeric_listing_filter(self):
        make_lead(self.tenant, name='General')
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(self.list_url, {'listing': 'abc'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(self.list_url, {'listing': self.listing.pk})
        self.assertEqual([item['id'] for item in response.data['results']], [self.lead.pk])

    def test_retrieve_foreign_lead(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.get(reverse('lead-detail', kwargs={'pk': self.foreign_lead.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_patch_lead(self):
        self.client.force_authenticate(user=self.agent)
        url = reverse('lead-detail', kwargs={'pk': self.lead.pk})

        response = self.client.patch(url, {'status': 'qualified', 'assigned_to': self.agent.pk}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'qualified')
        self.assertEqual(response.data['assigned_to_email'], 'agent@acme.test')

    def test_patch_invalid_status(self):
        self.client.force_authenticate(user=self.agent)
        url = reverse('lead-detail', kwargs={'pk': self.lead.pk})
        response = self.client.patch(url, {'status': 'won'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_requires_manager(self):
        url = reverse('lead-detail', kwargs={'pk': self.lead.pk})

        self.client.force_authenticate(user=self.agent)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)

    def test_export(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.get(reverse('lead-export'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('attachment; filename="leads.csv"', response['Content-Disposition'])
        self.assertIn('sam@example.com', response.content.decode())

    def test_metrics(self):
        self.client.force_authenticate(user=self.agent)
        response = self.client.get(reverse('lead-metrics'))
        self.assertEqual(response.data['total'], 1)


# =============================================================================
# DASHBOARD PAGE TESTS
# =============================================================================

class LeadDashboardTest(TestCase):

    def setUp(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        self.owner = User.objects.create_user(username='owner', email='owner@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Membership.objects.create(user=self.owner, tenant=self.tenant, role=Membership.ROLE_OWNER)
        self.lead = make_lead(self.tenant, name='Alice')
        self.client.force_login(self.agent)

    def test_lead_list(self):
        response = self.client.get(reverse('dashboard:leads'), {'q': 'ali'})
        self.assertContains(response, 'Alice')
        self.assertEqual(response.context['metrics']['total'], 1)

    def test_lead_detail_update(self):
        url = reverse('dashboard:lead-detail', kwargs={'pk': self.lead.pk})
        response = self.client.post(url, {'status': 'contacted', 'notes': 'Left voicemail', 'assigned_to': self.agent.pk})

        self.assertRedirects(response, url, fetch_redirect_response=False)
        self.lead.refresh_from_db()
        self.assertEqual(self.lead.status, 'contacted')
        self.assertEqual(self.lead.assigned_to, self.agent)

    def test_agent_cannot_delete(self):
        self.client.post(reverse('dashboard:lead-delete', kwargs={'pk': self.lead.pk}))
        self.assertTrue(Lead.objects.filter(pk=self.lead.pk).exists())

    def test_owner_deletes(self):
        self.client.force_login(self.owner)
        response = self.client.post(reverse('dashboard:lead-delete', kwargs={'pk': self.lead.pk}))
        self.assertRedirects(response, reverse('dashboard:leads'), fetch_redirect_response=False)
        self.assertFalse(Lead.objects.filter(pk=self.lead.pk).exists())

    def test_export(self):
        response = self.client.get(reverse('dashboard:lead-export'))
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('Alice', response.content.decode())


# =============================================================================
# DIGEST COMMAND TESTS
# =============================================================================

@override_settings(
    EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend',
    LEAD_NOTIFICATION_EMAIL='fallback@example.com',
)
class LeadsDigestCommandTest(TestCase):

    def test_digest_skips_quiet_tenants(self):
        busy = Tenant.objects.create(slug='acme', name='ACME', contact_email='hello@acme.test')
        Tenant.objects.create(slug='bluebird', name='Bluebird')
        make_lead(busy)
        make_lead(busy, name='Second')

        out = StringIO()
        call_command('send_leads_digest', '--days', '7', stdout=out)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['hello@acme.test'])
        self.assertEqual(mail.outbox[0].subject, 'ACME: 2 new leads in the last 7 days')
        self.assertIn('bluebird: no new leads', out.getvalue())
        self.assertIn('Digests sent: 1, skipped: 1, failed: 0', out.getvalue())
