# ===== PROPERTY MANAGEMENT APP TEST SUITE =====
"""
Test suite for the property management app
File: property_management/tests.py

Test Coverage:
- Date helpers and billing-cycle due dates
- Document storage keys
- Tenant isolation in every service
- Lease lifecycle: unit status, revisions and linked listing status
- Payments: scheduling, part and full payment, outstanding totals
- Maintenance: assignment, status changes and SLA breaches
- API permissions, feature flag and endpoints
- Document uploads scoped to the agency's records
- Dashboard pages
- Scheduled commands
"""

import shutil
import tempfile
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import PermissionDenied, ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.http import Http404
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from listings.models import Listing
from tenancy.models import Membership, Tenant

from .models import (
    Lease,
    LeaseRevision,
    MaintenanceRequest,
    Payment,
    Property,
    PropertyDocument,
    TenantProfile,
    Unit,
    build_document_key,
)
from .services import (
    DocumentService,
    LeaseService,
    MaintenanceService,
    PaymentService,
    PropertyService,
    TenantProfileService,
    UnitService,
    add_months,
    attach_document,
    get_overview_stats,
)

User = get_user_model()


class PropertyManagementFixtures:
    """Builds one agency with a property, a unit and a renter."""

    def create_fixtures(self):
        self.tenant = Tenant.objects.create(slug='acme', name='ACME', contact_email='office@acme.test')
        self.other = Tenant.objects.create(slug='bluebird', name='Bluebird')

        self.property = Property.objects.create(
            tenant=self.tenant, name='Harbour House', address_line1='2 Quay St', city='Bristol'
        )
        self.unit = Unit.objects.create(tenant=self.tenant, property=self.property, label='Flat 1')
        self.profile = TenantProfile.objects.create(
            tenant=self.tenant, first_name='Rita', last_name='Renter', email='rita@example.com'
        )

        self.other_property = Property.objects.create(
            tenant=self.other, name='Elsewhere', address_line1='9 Far Rd', city='Leeds'
        )
        self.other_unit = Unit.objects.create(tenant=self.other, property=self.other_property, label='A')

    def make_lease(self, **kwargs):
        defaults = {
            'tenant': self.tenant,
            'unit': self.unit,
            'tenant_profile': self.profile,
            'start_date': date(2025, 1, 1),
            'rent_amount': Decimal('1000.00'),
            'status': Lease.STATUS_ACTIVE,
        }
        defaults.update(kwargs)
        return Lease.objects.create(**defaults)

    def make_listing(self, **kwargs):
        defaults = {
            'tenant': self.tenant,
            'slug': 'harbour-house-flat',
            'title': 'Harbour House flat',
            'status': 'active',
            'type': 'rent',
            'price': Decimal('1000'),
            'address_line1': '2 Quay St',
            'city': 'Bristol',
            'description': 'Waterside flat.',
            'property': self.property,
        }
        defaults.update(kwargs)
        return Listing.objects.create(**defaults)


# =============================================================================
# HELPER TESTS
# =============================================================================

class AddMonthsTest(TestCase):

    def test_keeps_day(self):
        self.assertEqual(add_months(date(2025, 1, 15), 1), date(2025, 2, 15))

    def test_clamps_month_end(self):
        self.assertEqual(add_months(date(2025, 1, 31), 1), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))

    def test_rolls_year(self):
        self.assertEqual(add_months(date(2025, 11, 30), 3), date(2026, 2, 28))

    def test_zero_months(self):
        self.assertEqual(add_months(date(2025, 5, 5), 0), date(2025, 5, 5))


class DocumentKeyTest(TestCase):

    def test_key_layout(self):
        key = build_document_key('ACME', 'tenant-profile', 12, 'My Lease (final).PDF')

        self.assertTrue(key.startswith('property-management/acme/tenant-profile/12/my-lease-final-'))
        self.assertTrue(key.endswith('.pdf'))

    def test_fallback_name_and_extension(self):
        key = build_document_key('acme', 'lease', 3, '!!!')
        filename = key.rsplit('/', 1)[1]
        self.assertTrue(filename.startswith('document-'))
        self.assertTrue(filename.endswith('.bin'))

    def test_long_names_are_cut(self):
        key = build_document_key('acme', 'property', 1, 'a' * 200 + '.jpg')
        filename = key.rsplit('/', 1)[1]
        self.assertTrue(filename.startswith('a' * 80 + '-'))
        self.assertNotIn('a' * 81, filename)

    def test_unsafe_path_segments(self):
        key = build_document_key('acme', 'unit', '../etc', 'x.txt')
        self.assertIn('/unit/---etc/', key)


# =============================================================================
# SERVICE TESTS
# =============================================================================

class PropertyServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.service = PropertyService(self.tenant)

    def test_list_is_tenant_scoped_with_counts(self):
        self.make_listing()
        results = list(self.service.list())

        self.assertEqual([p.name for p in results], ['Harbour House'])
        self.assertEqual(results[0].unit_count, 1)
        self.assertEqual(results[0].listing_count, 1)

    def test_list_search(self):
        Property.objects.create(tenant=self.tenant, name='Mill Court', address_line1='1 Mill Ln', city='Bath')
        self.assertEqual([p.name for p in self.service.list(search='mill')], ['Mill Court'])
        self.assertEqual([p.name for p in self.service.list(city='bris')], ['Harbour House'])

    def test_get_other_tenant_property(self):
        with self.assertRaises(Http404):
            self.service.get(self.other_property.pk)

    def test_update_rejects_foreign_property(self):
        with self.assertRaises(PermissionDenied):
            self.service.update(self.other_property, {'name': 'Hijacked'})

    def test_delete_blocked_by_leases(self):
        self.make_lease()
        with self.assertRaises(ValidationError):
            self.service.delete(self.property)

    def test_sync_listing_status(self):
        listing = self.make_listing()
        self.make_lease()

        PropertyService.sync_listing_status(listing)
        listing.refresh_from_db()
        self.assertEqual(listing.status, 'let')

    def test_sync_ignores_listing_without_property(self):
        listing = self.make_listing(property=None, status='draft')
        PropertyService.sync_listing_status(listing)
        listing.refresh_from_db()
        self.assertEqual(listing.status, 'draft')


class UnitServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.service = UnitService(self.tenant)

    def test_create_on_foreign_property(self):
        with self.assertRaises(PermissionDenied):
            self.service.create({'property': self.other_property, 'label': 'Sneaky'})

    def test_list_requires_property(self):
        with self.assertRaises(ValidationError):
            self.service.list_by_property(None)

    def test_list_by_property(self):
        Unit.objects.create(tenant=self.tenant, property=self.property, label='Flat 0')
        labels = [u.label for u in self.service.list_by_property(self.property.pk)]
        self.assertEqual(labels, ['Flat 0', 'Flat 1'])

    def test_set_status(self):
        self.service.set_status(self.unit, Unit.STATUS_MAINTENANCE)
        self.unit.refresh_from_db()
        self.assertEqual(self.unit.status, Unit.STATUS_MAINTENANCE)

        with self.assertRaises(ValidationError):
            self.service.set_status(self.unit, 'HAUNTED')

    def test_delete_blocked_by_leases(self):
        self.make_lease()
        with self.assertRaises(ValidationError):
            self.service.delete(self.unit)


class TenantProfileServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_search(self):
        TenantProfile.objects.create(tenant=self.tenant, first_name='Tom', last_name='Lodger')
        TenantProfile.objects.create(tenant=self.other, first_name='Rita', last_name='Other')
        service = TenantProfileService(self.tenant)
        self.assertEqual([p.full_name for p in service.list(search='rita')], ['Rita Renter'])


class LeaseServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.service = LeaseService(self.tenant)
        self.user = User.objects.create_user(username='agent', email='agent@acme.test')

    def lease_data(self, **kwargs):
        data = {
            'unit': self.unit,
            'tenant_profile': self.profile,
            'start_date': date(2025, 1, 31),
            'rent_amount': Decimal('950.00'),
            'status': Lease.STATUS_ACTIVE,
        }
        data.update(kwargs)
        return data

    def test_create_active_lease(self):
        listing = self.make_listing()

        lease = self.service.create(self.lease_data(), generate_months=3)

        self.unit.refresh_from_db()
        listing.refresh_from_db()
        self.assertEqual(self.unit.status, Unit.STATUS_OCCUPIED)
        self.assertEqual(listing.status, 'let')
        due_dates = list(lease.payments.values_list('due_date', flat=True))
        self.assertEqual(due_dates, [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31)])
        self.assertTrue(all(p.amount_due == Decimal('950.00') for p in lease.payments.all()))

    def test_create_draft_lease_leaves_unit_vacant(self):
        self.service.create(self.lease_data(status=Lease.STATUS_DRAFT))
        self.unit.refresh_from_db()
        self.assertEqual(self.unit.status, Unit.STATUS_VACANT)

    def test_create_rejects_foreign_unit(self):
        with self.assertRaises(PermissionDenied):
            self.service.create(self.lease_data(unit=self.other_unit))
        self.assertFalse(Lease.objects.exists())

    def test_create_rejects_end_before_start(self):
        with self.assertRaises(ValidationError):
            self.service.create(self.lease_data(end_date=date(2024, 12, 1)))

    def test_update_records_revision(self):
        lease = self.make_lease()

        self.service.update(lease, {'rent_amount': Decimal('1100.00')}, user=self.user, reason='Annual review')

        revision = lease.revisions.get()
        self.assertEqual(revision.change['rent_amount']['to'], '1100.00')
        self.assertEqual(revision.reason, 'Annual review')
        self.assertEqual(revision.created_by, self.user)

    def test_update_without_changes(self):
        lease = self.make_lease()
        self.service.update(lease, {'rent_amount': lease.rent_amount})
        self.assertFalse(LeaseRevision.objects.exists())

    def test_update_to_terminated_frees_unit(self):
        lease = self.make_lease()
        self.unit.status = Unit.STATUS_OCCUPIED
        self.unit.save()

        self.service.update(lease, {'status': Lease.STATUS_TERMINATED})

        self.unit.refresh_from_db()
        self.assertEqual(self.unit.status, Unit.STATUS_VACANT)

    def test_terminate(self):
        listing = self.make_listing(status='let')
        lease = self.make_lease()

        self.service.terminate(lease, user=self.user, reason='Moved out')

        lease.refresh_from_db()
        self.unit.refresh_from_db()
        listing.refresh_from_db()
        self.assertEqual(lease.status, Lease.STATUS_TERMINATED)
        self.assertIn('terminatedAt', lease.metadata)
        self.assertEqual(self.unit.status, Unit.STATUS_VACANT)
        self.assertEqual(listing.status, 'active')
        revision = lease.revisions.get()
        self.assertEqual(revision.change['status'], {'from': 'ACTIVE', 'to': 'TERMINATED'})
        self.assertEqual(revision.reason, 'Moved out')

    def test_terminate_twice(self):
        lease = self.make_lease()
        self.service.terminate(lease)
        with self.assertRaises(ValidationError):
            self.service.terminate(lease)

    def test_listing_stays_let_while_another_unit_is_leased(self):
        listing = self.make_listing(status='let')
        second_unit = Unit.objects.create(tenant=self.tenant, property=self.property, label='Flat 2')
        self.make_lease(unit=second_unit)
        lease = self.make_lease()

        self.service.terminate(lease)

        listing.refresh_from_db()
        self.assertEqual(listing.status, 'let')


class PaymentServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.service = PaymentService(self.tenant)

    def test_due_dates_monthly(self):
        lease = self.make_lease(start_date=date(2025, 1, 31))
        self.assertEqual(
            self.service.due_dates_for(lease, date(2025, 4, 30)),
            [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)],
        )

    def test_due_dates_quarterly_stop_at_end_date(self):
        lease = self.make_lease(
            start_date=date(2025, 1, 15),
            end_date=date(2025, 6, 30),
            billing_interval=Lease.INTERVAL_QUARTERLY,
        )
        self.assertEqual(
            self.service.due_dates_for(lease, date(2025, 12, 31)),
            [date(2025, 1, 15), date(2025, 4, 15)],
        )

    def test_schedule_missing_skips_existing(self):
        lease = self.make_lease()
        Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, 2, 1), amount_due=Decimal('1000'))

        created = self.service.schedule_missing(lease, date(2025, 3, 1))

        self.assertEqual([p.due_date for p in created], [date(2025, 1, 1), date(2025, 3, 1)])
        self.assertEqual(lease.payments.count(), 3)

    def test_mark_paid_partial_then_full(self):
        lease = self.make_lease()
        payment = Payment.objects.create(
            tenant=self.tenant, lease=lease, due_date=date(2025, 1, 1), amount_due=Decimal('1000')
        )

        self.service.mark_paid(payment, '400', method='card')
        self.assertEqual(payment.status, Payment.STATUS_PARTIAL)
        self.assertEqual(payment.amount_outstanding, Decimal('600'))

        self.service.mark_paid(payment, Decimal('600'), reference='TX-2')
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_PAID)
        self.assertEqual(payment.amount_paid, Decimal('1000'))
        self.assertEqual(payment.method, 'card')
        self.assertEqual(payment.reference, 'TX-2')
        self.assertIsNotNone(payment.paid_at)

    def test_mark_paid_requires_positive_amount(self):
        payment = Payment.objects.create(
            tenant=self.tenant, lease=self.make_lease(), due_date=date(2025, 1, 1), amount_due=Decimal('1000')
        )
        with self.assertRaises(ValidationError):
            self.service.mark_paid(payment, 0)

    def test_list_hides_ended_leases(self):
        active = self.make_lease()
        ended = self.make_lease(status=Lease.STATUS_EXPIRED, start_date=date(2024, 1, 1))
        Payment.objects.create(tenant=self.tenant, lease=active, due_date=date(2025, 1, 1), amount_due=Decimal('1'))
        Payment.objects.create(tenant=self.tenant, lease=ended, due_date=date(2024, 1, 1), amount_due=Decimal('1'))

        self.assertEqual([p.lease_id for p in self.service.list()], [active.pk])

    def test_outstanding_total(self):
        lease = self.make_lease()
        Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, 1, 1),
                               amount_due=Decimal('1000'), amount_paid=Decimal('250'),
                               status=Payment.STATUS_PARTIAL)
        Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, 2, 1),
                               amount_due=Decimal('1000'))
        Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, 3, 1),
                               amount_due=Decimal('1000'), amount_paid=Decimal('1000'),
                               status=Payment.STATUS_PAID)

        self.assertEqual(self.service.outstanding_total(), Decimal('1750'))

    def test_create_rejects_foreign_lease(self):
        foreign_profile = TenantProfile.objects.create(tenant=self.other, first_name='X', last_name='Y')
        foreign_lease = Lease.objects.create(
            tenant=self.other, unit=self.other_unit, tenant_profile=foreign_profile,
            start_date=date(2025, 1, 1), rent_amount=Decimal('1'),
        )
        with self.assertRaises(PermissionDenied):
            self.service.create({'lease': foreign_lease, 'due_date': date(2025, 1, 1), 'amount_due': Decimal('1')})


class MaintenanceServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.service = MaintenanceService(self.tenant)
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)

    def make_ticket(self, **kwargs):
        defaults = {'property': self.property, 'summary': 'Leaking tap'}
        defaults.update(kwargs)
        return self.service.create(defaults)

    def test_create_checks_unit_belongs_to_property(self):
        other_property = Property.objects.create(
            tenant=self.tenant, name='Annex', address_line1='3 Quay St', city='Bristol'
        )
        with self.assertRaises(ValidationError):
            self.make_ticket(property=other_property, unit=self.unit)

    def test_create_rejects_foreign_property(self):
        with self.assertRaises(PermissionDenied):
            self.make_ticket(property=self.other_property)

    def test_assign(self):
        ticket = self.make_ticket()
        ticket = self.service.assign(ticket, self.agent)

        self.assertEqual(ticket.assigned_to, self.agent)
        self.assertEqual(ticket.status, MaintenanceRequest.STATUS_IN_PROGRESS)

    def test_assign_requires_membership(self):
        outsider = User.objects.create_user(username='outsider')
        with self.assertRaises(ValidationError):
            self.service.assign(self.make_ticket(), outsider)

    def test_status_sets_and_clears_resolved_at(self):
        ticket = self.make_ticket()

        self.service.update_status(ticket, MaintenanceRequest.STATUS_RESOLVED)
        self.assertIsNotNone(ticket.resolved_at)

        self.service.update_status(ticket, MaintenanceRequest.STATUS_OPEN)
        self.assertIsNone(ticket.resolved_at)

        with self.assertRaises(ValidationError):
            self.service.update_status(ticket, 'DONE')

    def test_list_filters(self):
        self.make_ticket(priority=MaintenanceRequest.PRIORITY_URGENT)
        self.make_ticket(summary='Broken gate', status=MaintenanceRequest.STATUS_CLOSED)

        urgent = self.service.list(priorities=['URGENT'])
        self.assertEqual([t.summary for t in urgent], ['Leaking tap'])
        closed = self.service.list(statuses=['CLOSED'])
        self.assertEqual([t.summary for t in closed], ['Broken gate'])

    @override_settings(MAINTENANCE_SLA_HOURS={'URGENT': 24, 'HIGH': 72, 'MEDIUM': 168, 'LOW': 336})
    def test_find_sla_breaches(self):
        now = timezone.now()
        late = self.make_ticket(priority='URGENT', requested_at=now - timedelta(hours=30))
        self.make_ticket(priority='LOW', requested_at=now - timedelta(hours=30))
        self.make_ticket(priority='URGENT', requested_at=now - timedelta(hours=30),
                         status=MaintenanceRequest.STATUS_RESOLVED)

        self.assertEqual(list(MaintenanceService.find_sla_breaches(now)), [late])


class DocumentServiceTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)

    def test_attach_document(self):
        upload = SimpleUploadedFile('Tenancy Agreement.pdf', b'%PDF-1.4', content_type='application/pdf')

        with self.settings(MEDIA_ROOT=self.media_root):
            document = attach_document(self.tenant, 'lease', 7, upload)

        self.assertEqual(document.original_name, 'Tenancy Agreement.pdf')
        self.assertTrue(document.file.name.startswith('property-management/acme/lease/7/tenancy-agreement-'))
        self.assertIsNone(document.uploaded_by)

    def test_unknown_entity(self):
        upload = SimpleUploadedFile('a.txt', b'x')
        with self.assertRaises(ValidationError):
            attach_document(self.tenant, 'garage', 1, upload)

    def test_upload_checks_record_owner(self):
        service = DocumentService(self.tenant)
        upload = SimpleUploadedFile('plan.pdf', b'%PDF-1.4', content_type='application/pdf')

        with self.assertRaises(Http404):
            service.upload('property', self.other_property.pk, upload)
        with self.assertRaises(ValidationError):
            service.upload('property', 'abc', upload)
        self.assertFalse(PropertyDocument.objects.exists())

    def test_upload_list_and_delete(self):
        service = DocumentService(self.tenant)
        upload = SimpleUploadedFile('Floor Plan.pdf', b'%PDF-1.4', content_type='application/pdf')

        with self.settings(MEDIA_ROOT=self.media_root):
            document = service.upload('property', str(self.property.pk), upload)
            storage = document.file.storage
            key = document.file.name

            self.assertTrue(key.startswith(f'property-management/acme/property/{self.property.pk}/floor-plan-'))
            self.assertTrue(storage.exists(key))
            self.assertEqual(list(service.list(entity='property', entity_id=self.property.pk)), [document])
            self.assertEqual(list(service.list(entity='lease')), [])

            service.delete(document)

            self.assertFalse(storage.exists(key))
        self.assertFalse(PropertyDocument.objects.exists())


class OverviewStatsTest(PropertyManagementFixtures, TestCase):

    def test_stats(self):
        self.create_fixtures()
        Unit.objects.create(tenant=self.tenant, property=self.property, label='Flat 2',
                            status=Unit.STATUS_OCCUPIED)
        lease = self.make_lease()
        Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, 1, 1),
                               amount_due=Decimal('500'))
        MaintenanceRequest.objects.create(tenant=self.tenant, property=self.property, summary='Boiler')

        stats = get_overview_stats(self.tenant)

        self.assertEqual(stats['properties'], 1)
        self.assertEqual(stats['units'], 2)
        self.assertEqual(stats['occupied_units'], 1)
        self.assertEqual(stats['occupancy_rate'], 50.0)
        self.assertEqual(stats['active_leases'], 1)
        self.assertEqual(stats['outstanding_rent'], Decimal('500'))
        self.assertEqual(stats['open_maintenance'], 1)


# =============================================================================
# API TESTS
# =============================================================================

class PropertyManagementAPITest(PropertyManagementFixtures, APITestCase):

    def setUp(self):
        self.create_fixtures()
        self.client = APIClient()
        self.client.credentials(HTTP_X_TENANT='acme')

        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        self.owner = User.objects.create_user(username='owner', email='owner@acme.test')
        self.outsider = User.objects.create_user(username='outsider', email='x@bluebird.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        Membership.objects.create(user=self.owner, tenant=self.tenant, role=Membership.ROLE_OWNER)
        Membership.objects.create(user=self.outsider, tenant=self.other, role=Membership.ROLE_ADMIN)
        self.client.force_authenticate(user=self.agent)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('pm-property-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_requires_membership_of_request_tenant(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(reverse('pm-property-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_owner_inherits_access(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.get(reverse('pm-property-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_feature_disabled(self):
        self.tenant.theme = {'features': {'propertyManagement': False}}
        self.tenant.save()
        response = self.client.get(reverse('pm-property-list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_property_list_is_unpaginated_and_scoped(self):
        response = self.client.get(reverse('pm-property-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Harbour House'])
        self.assertEqual(response.data[0]['unit_count'], 1)

    def test_property_create(self):
        response = self.client.post(reverse('pm-property-list'), {
            'name': 'Mill Court', 'address_line1': '1 Mill Ln', 'city': 'Bath',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Property.objects.get(pk=response.data['id']).tenant, self.tenant)

    def test_foreign_property_not_found(self):
        url = reverse('pm-property-detail', kwargs={'pk': self.other_property.pk})
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_property_delete_with_leases(self):
        self.make_lease()
        url = reverse('pm-property-detail', kwargs={'pk': self.property.pk})
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_400_BAD_REQUEST)

    def test_units_need_property_id(self):
        response = self.client.get(reverse('pm-unit-list'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('pm-unit-list'), {'propertyId': self.property.pk})
        self.assertEqual([u['label'] for u in response.data], ['Flat 1'])

    def test_unit_create_on_foreign_property(self):
        response = self.client.post(reverse('pm-unit-list'), {
            'property': self.other_property.pk, 'label': 'Sneaky',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unit_status(self):
        url = reverse('pm-unit-set-status', kwargs={'pk': self.unit.pk})
        response = self.client.post(url, {'status': 'MAINTENANCE'}, format='json')
        self.assertEqual(response.data['status'], 'MAINTENANCE')

    def test_lease_create_with_payments(self):
        response = self.client.post(reverse('pm-lease-list'), {
            'unit': self.unit.pk,
            'tenant_profile': self.profile.pk,
            'start_date': '2025-03-01',
            'rent_amount': '900.00',
            'status': 'ACTIVE',
            'generate_months': 2,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tenant_name'], 'Rita Renter')
        self.assertNotIn('generate_months', response.data)
        self.assertEqual(Payment.objects.filter(lease_id=response.data['id']).count(), 2)

    def test_lease_create_validation(self):
        response = self.client.post(reverse('pm-lease-list'), {
            'unit': self.unit.pk,
            'tenant_profile': self.profile.pk,
            'start_date': '2025-03-01',
            'end_date': '2025-02-01',
            'rent_amount': '900.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_lease_create_on_foreign_unit(self):
        response = self.client.post(reverse('pm-lease-list'), {
            'unit': self.other_unit.pk,
            'tenant_profile': self.profile.pk,
            'start_date': '2025-03-01',
            'rent_amount': '900.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_lease_list_status_filter(self):
        self.make_lease()
        self.make_lease(status=Lease.STATUS_DRAFT, start_date=date(2026, 1, 1))
        self.make_lease(status=Lease.STATUS_TERMINATED, start_date=date(2024, 1, 1))

        response = self.client.get(reverse('pm-lease-list'), {'status': 'draft'})
        self.assertEqual([l['status'] for l in response.data], ['DRAFT'])

        response = self.client.get(reverse('pm-lease-list'), {'status': 'active,terminated'})
        self.assertEqual([l['status'] for l in response.data], ['ACTIVE', 'TERMINATED'])

    def test_payment_list_status_filter(self):
        lease = self.make_lease()
        for month, payment_status in ((1, Payment.STATUS_PENDING), (2, Payment.STATUS_PARTIAL),
                                      (3, Payment.STATUS_PAID)):
            Payment.objects.create(tenant=self.tenant, lease=lease, due_date=date(2025, month, 1),
                                   amount_due=Decimal('1000'), status=payment_status)

        response = self.client.get(reverse('pm-payment-list'), {'status': 'pending,partial'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['status'] for p in response.data], ['PENDING', 'PARTIAL'])

    def test_lease_terminate_and_revisions(self):
        lease = self.make_lease()

        response = self.client.post(reverse('pm-lease-terminate', kwargs={'pk': lease.pk}),
                                    {'reason': 'Left early'}, format='json')
        self.assertEqual(response.data['status'], 'TERMINATED')

        response = self.client.get(reverse('pm-lease-revisions', kwargs={'pk': lease.pk}))
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['reason'], 'Left early')
        self.assertEqual(response.data[0]['created_by'], self.agent.pk)

    def test_lease_cannot_be_deleted(self):
        lease = self.make_lease()
        response = self.client.delete(reverse('pm-lease-detail', kwargs={'pk': lease.pk}))
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_payment_mark_paid(self):
        payment = Payment.objects.create(
            tenant=self.tenant, lease=self.make_lease(), due_date=date(2025, 1, 1), amount_due=Decimal('1000')
        )
        url = reverse('pm-payment-mark-paid', kwargs={'pk': payment.pk})

        response = self.client.post(url, {'amount': '1000.00', 'method': 'transfer'}, format='json')
        self.assertEqual(response.data['status'], 'PAID')
        self.assertEqual(response.data['amount_outstanding'], '0.00')

        response = self.client.post(url, {'amount': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_maintenance_flow(self):
        response = self.client.post(reverse('pm-maintenance-list'), {
            'property': self.property.pk,
            'unit': self.unit.pk,
            'summary': 'No hot water',
            'priority': 'URGENT',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        ticket_id = response.data['id']

        response = self.client.get(reverse('pm-maintenance-list'), {'status': 'open', 'priority': 'urgent,high'})
        self.assertEqual([t['id'] for t in response.data], [ticket_id])

        response = self.client.post(reverse('pm-maintenance-assign', kwargs={'pk': ticket_id}),
                                    {'assigned_to': self.agent.pk}, format='json')
        self.assertEqual(response.data['status'], 'IN_PROGRESS')
        self.assertEqual(response.data['assigned_to_name'], 'agent')

        response = self.client.post(reverse('pm-maintenance-set-status', kwargs={'pk': ticket_id}),
                                    {'status': 'RESOLVED'}, format='json')
        self.assertEqual(response.data['status'], 'RESOLVED')
        self.assertIsNotNone(response.data['resolved_at'])


class PropertyDocumentAPITest(PropertyManagementFixtures, APITestCase):
    """Document uploads through /api/v1/pm/documents/"""

    def setUp(self):
        self.create_fixtures()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media_settings = self.settings(MEDIA_ROOT=media_root)
        media_settings.enable()
        self.addCleanup(media_settings.disable)

        self.client = APIClient()
        self.client.credentials(HTTP_X_TENANT='acme')
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        self.client.force_authenticate(user=self.agent)
        self.list_url = reverse('pm-document-list')

    def upload(self, entity='lease', entity_id=None, name='Tenancy Agreement.pdf'):
        if entity_id is None:
            entity_id = self.make_lease().pk
        return self.client.post(self.list_url, {
            'entity': entity,
            'entity_id': entity_id,
            'file': SimpleUploadedFile(name, b'%PDF-1.4', content_type='application/pdf'),
        }, format='multipart')

    def test_upload(self):
        lease = self.make_lease()

        response = self.upload(entity_id=lease.pk)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['original_name'], 'Tenancy Agreement.pdf')
        self.assertEqual(response.data['uploaded_by'], self.agent.pk)
        self.assertTrue(response.data['key'].startswith(f'property-management/acme/lease/{lease.pk}/'))
        self.assertTrue(response.data['url'].startswith('/media/property-management/'))

    def test_upload_for_foreign_record(self):
        response = self.upload(entity='unit', entity_id=self.other_unit.pk)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_upload_validation(self):
        response = self.upload(entity='garage', entity_id=1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('entity', response.data)

        response = self.client.post(self.list_url, {'entity': 'lease', 'entity_id': '1'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('file', response.data)

    @override_settings(MAX_DOCUMENT_UPLOAD_SIZE=4)
    def test_upload_size_limit(self):
        response = self.upload()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('File size must be less than', str(response.data['file']))

    def test_list_filters_and_delete(self):
        lease = self.make_lease()
        self.upload(entity_id=lease.pk)
        self.upload(entity='property', entity_id=self.property.pk, name='Plan.pdf')

        response = self.client.get(self.list_url, {'entity': 'lease', 'entityId': lease.pk})
        self.assertEqual([d['original_name'] for d in response.data], ['Tenancy Agreement.pdf'])

        url = reverse('pm-document-detail', kwargs={'pk': response.data[0]['id']})
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(PropertyDocument.objects.count(), 1)

    def test_feature_disabled(self):
        self.tenant.theme = {'features': {'propertyManagement': False}}
        self.tenant.save()
        self.assertEqual(self.upload(entity_id=1).status_code, status.HTTP_403_FORBIDDEN)


# =============================================================================
# DASHBOARD PAGE TESTS
# =============================================================================

class PropertyManagementPagesTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.agent = User.objects.create_user(username='agent', email='agent@acme.test')
        Membership.objects.create(user=self.agent, tenant=self.tenant, role=Membership.ROLE_AGENT)
        self.client.force_login(self.agent)

    def test_overview(self):
        response = self.client.get(reverse('dashboard:pm-overview'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats']['units'], 1)

    def test_disabled_module_redirects(self):
        self.tenant.theme = {'features': {'propertyManagement': False}}
        self.tenant.save()
        response = self.client.get(reverse('dashboard:pm-overview'))
        self.assertRedirects(response, reverse('dashboard:home'), fetch_redirect_response=False)

    def test_lease_terminate_page(self):
        lease = self.make_lease()
        response = self.client.post(reverse('dashboard:pm-lease-terminate', kwargs={'pk': lease.pk}))

        self.assertRedirects(response, reverse('dashboard:pm-leases'), fetch_redirect_response=False)
        lease.refresh_from_db()
        self.assertEqual(lease.status, Lease.STATUS_TERMINATED)

    def test_mark_paid_page(self):
        payment = Payment.objects.create(
            tenant=self.tenant, lease=self.make_lease(), due_date=date(2025, 1, 1), amount_due=Decimal('800')
        )
        self.client.post(reverse('dashboard:pm-payment-mark-paid', kwargs={'pk': payment.pk}), {'amount': '300'})

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_PARTIAL)


# =============================================================================
# COMMAND TESTS
# =============================================================================

class GenerateRentPaymentsCommandTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_generates_up_to_horizon(self):
        lease = self.make_lease(start_date=date(2025, 1, 1))
        self.make_lease(status=Lease.STATUS_DRAFT, start_date=date(2025, 1, 1))

        out = StringIO()
        call_command('generate_rent_payments', '--date', '2025-03-10', '--months-ahead', '1', stdout=out)

        self.assertEqual(
            list(lease.payments.values_list('due_date', flat=True)),
            [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1), date(2025, 4, 1)],
        )
        self.assertEqual(Payment.objects.count(), 4)
        self.assertIn('Created 4 payment(s) across 1 active lease(s)', out.getvalue())

    def test_rerun_is_idempotent(self):
        self.make_lease(start_date=date(2025, 1, 1))
        call_command('generate_rent_payments', '--date', '2025-02-10', stdout=StringIO())
        out = StringIO()
        call_command('generate_rent_payments', '--date', '2025-02-10', stdout=out)

        self.assertEqual(Payment.objects.count(), 3)
        self.assertIn('Created 0 payment(s)', out.getvalue())

    def test_tenant_filter(self):
        self.make_lease()
        call_command('generate_rent_payments', '--tenant', 'bluebird', '--date', '2025-02-10', stdout=StringIO())
        self.assertFalse(Payment.objects.exists())

    def test_invalid_date(self):
        with self.assertRaises(CommandError):
            call_command('generate_rent_payments', '--date', 'soon', stdout=StringIO())


class SendRentRemindersCommandTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.lease = self.make_lease()
        today = timezone.localdate()
        self.overdue = Payment.objects.create(
            tenant=self.tenant, lease=self.lease, due_date=today - timedelta(days=2), amount_due=Decimal('1000')
        )
        Payment.objects.create(
            tenant=self.tenant, lease=self.lease, due_date=today + timedelta(days=10), amount_due=Decimal('1000')
        )
        Payment.objects.create(
            tenant=self.tenant, lease=self.lease, due_date=today - timedelta(days=40),
            amount_due=Decimal('1000'), amount_paid=Decimal('1000'), status=Payment.STATUS_PAID
        )

    def test_sends_once_per_day(self):
        out = StringIO()
        call_command('send_rent_reminders', stdout=out)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['rita@example.com'])
        self.assertEqual(mail.outbox[0].reply_to, ['office@acme.test'])
        self.assertIn('Sent 1 rent reminder(s)', out.getvalue())
        self.overdue.refresh_from_db()
        self.assertIsNotNone(self.overdue.reminder_sent_at)

        call_command('send_rent_reminders', stdout=StringIO())
        self.assertEqual(len(mail.outbox), 1)

    def test_days_ahead(self):
        call_command('send_rent_reminders', '--days-ahead', '14', stdout=StringIO())
        self.assertEqual(len(mail.outbox), 2)

    def test_skips_profiles_without_email(self):
        self.profile.email = ''
        self.profile.save()
        call_command('send_rent_reminders', stdout=StringIO())
        self.assertEqual(len(mail.outbox), 0)


class CheckMaintenanceSLACommandTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_stamps_and_reports_once(self):
        now = timezone.now()
        late = MaintenanceRequest.objects.create(
            tenant=self.tenant, property=self.property, summary='Flooding',
            priority='URGENT', requested_at=now - timedelta(hours=48),
        )
        MaintenanceRequest.objects.create(
            tenant=self.tenant, property=self.property, summary='Squeaky door',
            priority='LOW', requested_at=now - timedelta(hours=48),
        )

        out = StringIO()
        call_command('check_maintenance_sla', stdout=out)

        late.refresh_from_db()
        self.assertIsNotNone(late.sla_breached_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['office@acme.test'])
        self.assertIn('acme: 1 request(s) past SLA, alert sent', out.getvalue())

        out = StringIO()
        call_command('check_maintenance_sla', stdout=out)
        self.assertIn('No new SLA breaches', out.getvalue())
        self.assertEqual(len(mail.outbox), 1)


class ExpireLeasesCommandTest(PropertyManagementFixtures, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_expires_past_leases(self):
        listing = self.make_listing(status='let')
        self.unit.status = Unit.STATUS_OCCUPIED
        self.unit.save()
        today = timezone.localdate()
        ended = self.make_lease(start_date=today - timedelta(days=365), end_date=today - timedelta(days=1))
        second_unit = Unit.objects.create(tenant=self.tenant, property=self.property, label='Flat 2')
        running = self.make_lease(unit=second_unit, end_date=today + timedelta(days=30))

        out = StringIO()
        call_command('expire_leases', stdout=out)

        ended.refresh_from_db()
        running.refresh_from_db()
        self.unit.refresh_from_db()
        listing.refresh_from_db()
        self.assertEqual(ended.status, Lease.STATUS_EXPIRED)
        self.assertEqual(running.status, Lease.STATUS_ACTIVE)
        self.assertEqual(self.unit.status, Unit.STATUS_VACANT)
        self.assertEqual(listing.status, 'let')
        self.assertEqual(ended.revisions.get().reason, 'Lease end date passed')
        self.assertIn('Expired 1 lease(s)', out.getvalue())
