"""
Property management business logic.

Each service is bound to one agency (tenancy.Tenant) and only ever reads or
writes rows carrying that tenant. Related records handed in from outside
(a unit on a new lease, a property on a new unit) are checked against the
bound tenant and rejected with PermissionDenied when they belong to
another agency.

Lease changes keep three things in step:
- the unit status (OCCUPIED while a lease is active, VACANT after it ends)
- a LeaseRevision row describing what changed
- the status of any marketing listing linked to the property ('let' while
  any unit has an active lease, 'active' otherwise)
"""

import logging
from calendar import monthrange
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from services.parsing import parse_int
from tenancy.models import Membership

from .models import (
    Lease,
    LeaseRevision,
    MaintenanceRequest,
    Payment,
    Property,
    PropertyDocument,
    TenantProfile,
    Unit,
)

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100
PAYMENT_LIST_LIMIT = 200

DEFAULT_SLA_HOURS = {
    MaintenanceRequest.PRIORITY_URGENT: 24,
    MaintenanceRequest.PRIORITY_HIGH: 72,
    MaintenanceRequest.PRIORITY_MEDIUM: 168,
    MaintenanceRequest.PRIORITY_LOW: 336,
}


# =============================================================================
# HELPERS
# =============================================================================

def add_months(start_date, months: int):
    """Return a date shifted forward by ``months`` preserving day when possible."""

    if months <= 0:
        return start_date
    month_index = start_date.month - 1 + months
    year = start_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start_date.day, monthrange(year, month)[1])
    return start_date.replace(year=year, month=month, day=day)


def _json_value(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, 'pk'):
        return value.pk
    return value


def _ensure_same_tenant(tenant, obj, label):
    if obj is not None and obj.tenant_id != tenant.id:
        logger.warning(f"Cross-tenant {label} {obj.pk} rejected for tenant {tenant.slug}")
        raise PermissionDenied(f'{label.capitalize()} does not belong to this agency')


def _apply_changes(instance, data: Dict) -> Dict:
    """Set attributes from data, returning {field: {from, to}} for real changes."""
    changes = {}
    for field, value in data.items():
        old = getattr(instance, field)
        if old != value:
            changes[field] = {'from': _json_value(old), 'to': _json_value(value)}
            setattr(instance, field, value)
    return changes


class TenantBoundService:
    def __init__(self, tenant):
        self.tenant = tenant


# =============================================================================
# PROPERTIES & UNITS
# =============================================================================

class PropertyService(TenantBoundService):

    def list(self, search: Optional[str] = None, city: Optional[str] = None,
             limit: int = DEFAULT_LIST_LIMIT):
        queryset = Property.objects.filter(tenant=self.tenant)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(code__icontains=search) |
                Q(address_line1__icontains=search) |
                Q(city__icontains=search)
            )
        if city:
            queryset = queryset.filter(city__icontains=city)
        queryset = queryset.annotate(
            unit_count=Count('units', distinct=True),
            listing_count=Count('listings', distinct=True),
        )
        return queryset.order_by('-created_at', '-id')[:limit]

    def get(self, pk):
        return get_object_or_404(Property, tenant=self.tenant, pk=pk)

    def create(self, data: Dict) -> Property:
        prop = Property.objects.create(tenant=self.tenant, **data)
        logger.info(f"Created property {prop.pk} ({prop.name}) for {self.tenant.slug}")
        return prop

    def update(self, prop: Property, data: Dict) -> Property:
        _ensure_same_tenant(self.tenant, prop, 'property')
        if _apply_changes(prop, data):
            prop.save()
        return prop

    def delete(self, prop: Property):
        _ensure_same_tenant(self.tenant, prop, 'property')
        if Lease.objects.filter(unit__property=prop).exists():
            raise ValidationError('Property has leases and cannot be deleted')
        logger.info(f"Deleting property {prop.pk} for {self.tenant.slug}")
        prop.delete()

    @staticmethod
    def sync_listing_status(listing):
        """
        Reflect lease occupancy on a linked listing.

        'let' while any unit on the listing's property has an ACTIVE lease,
        'active' otherwise. Listings without a property are left alone.
        """
        from listings.models import STATUS_ACTIVE, STATUS_LET

        if listing is None or listing.property_id is None:
            return listing

        has_active_lease = Lease.objects.filter(
            unit__property_id=listing.property_id,
            status=Lease.STATUS_ACTIVE,
        ).exists()
        new_status = STATUS_LET if has_active_lease else STATUS_ACTIVE

        if listing.status != new_status:
            logger.info(f"Listing {listing.pk} status {listing.status} -> {new_status}")
            listing.status = new_status
            listing.save(update_fields=['status', 'updated_at'])
        return listing

    @classmethod
    def sync_listings_for_property(cls, prop: Optional[Property]):
        if prop is None:
            return []
        return [cls.sync_listing_status(listing) for listing in prop.listings.all()]


class UnitService(TenantBoundService):

    def list_by_property(self, property_id):
        if not property_id:
            raise ValidationError({'propertyId': 'propertyId is required'})
        prop = get_object_or_404(Property, tenant=self.tenant, pk=property_id)
        return Unit.objects.filter(tenant=self.tenant, property=prop).order_by('label')

    def get(self, pk):
        return get_object_or_404(Unit.objects.select_related('property'), tenant=self.tenant, pk=pk)

    def create(self, data: Dict) -> Unit:
        _ensure_same_tenant(self.tenant, data.get('property'), 'property')
        unit = Unit.objects.create(tenant=self.tenant, **data)
        logger.info(f"Created unit {unit.pk} on property {unit.property_id}")
        return unit

    def update(self, unit: Unit, data: Dict) -> Unit:
        _ensure_same_tenant(self.tenant, unit, 'unit')
        _ensure_same_tenant(self.tenant, data.get('property'), 'property')
        if _apply_changes(unit, data):
            unit.save()
        return unit

    def set_status(self, unit: Unit, status: str) -> Unit:
        if status not in dict(Unit.STATUS_CHOICES):
            raise ValidationError({'status': f'Invalid unit status: {status}'})
        if unit.status != status:
            unit.status = status
            unit.save(update_fields=['status', 'updated_at'])
        return unit

    def delete(self, unit: Unit):
        _ensure_same_tenant(self.tenant, unit, 'unit')
        if unit.leases.exists():
            raise ValidationError('Unit has leases and cannot be deleted')
        unit.delete()


class TenantProfileService(TenantBoundService):

    def list(self, search: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT):
        queryset = TenantProfile.objects.filter(tenant=self.tenant)
        if search:
            queryset = queryset.filter(
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(email__icontains=search)
            )
        return queryset.order_by('-created_at', '-id')[:limit]

    def get(self, pk):
        return get_object_or_404(TenantProfile, tenant=self.tenant, pk=pk)

    def create(self, data: Dict) -> TenantProfile:
        return TenantProfile.objects.create(tenant=self.tenant, **data)

    def update(self, profile: TenantProfile, data: Dict) -> TenantProfile:
        _ensure_same_tenant(self.tenant, profile, 'tenant profile')
        if _apply_changes(profile, data):
            profile.save()
        return profile


# =============================================================================
# LEASES
# =============================================================================

class LeaseService(TenantBoundService):

    ENDED_STATUSES = (Lease.STATUS_TERMINATED, Lease.STATUS_EXPIRED)

    def list(self, statuses: Optional[Iterable[str]] = None, tenant_profile=None, unit=None):
        queryset = Lease.objects.filter(tenant=self.tenant).select_related(
            'unit', 'unit__property', 'tenant_profile'
        )
        if statuses:
            queryset = queryset.filter(status__in=list(statuses))
        if tenant_profile:
            queryset = queryset.filter(tenant_profile=tenant_profile)
        if unit:
            queryset = queryset.filter(unit=unit)
        return queryset.order_by('-start_date', '-id')

    def get(self, pk):
        return get_object_or_404(
            Lease.objects.select_related('unit', 'unit__property', 'tenant_profile'),
            tenant=self.tenant,
            pk=pk,
        )

    def get_active_lease_for_unit(self, unit) -> Optional[Lease]:
        return (
            Lease.objects.filter(tenant=self.tenant, unit=unit, status=Lease.STATUS_ACTIVE)
            .order_by('-start_date')
            .first()
        )

    @transaction.atomic
    def create(self, data: Dict, generate_months: int = 0, user=None) -> Lease:
        """
        Create a lease, optionally scheduling its first `generate_months`
        monthly payments.
        """
        unit = data.get('unit')
        profile = data.get('tenant_profile')
        _ensure_same_tenant(self.tenant, unit, 'unit')
        _ensure_same_tenant(self.tenant, profile, 'tenant profile')

        end_date = data.get('end_date')
        if end_date and end_date < data['start_date']:
            raise ValidationError({'end_date': 'End date must be after start date'})

        lease = Lease.objects.create(tenant=self.tenant, **data)
        logger.info(f"Created lease {lease.pk} on unit {unit.pk} ({lease.status})")

        if lease.status == Lease.STATUS_ACTIVE:
            UnitService(self.tenant).set_status(unit, Unit.STATUS_OCCUPIED)

        if generate_months and generate_months > 0:
            PaymentService(self.tenant).bulk_schedule_monthly(
                lease, lease.start_date, generate_months, lease.rent_amount
            )

        PropertyService.sync_listings_for_property(unit.property)
        return lease

    @transaction.atomic
    def update(self, lease: Lease, data: Dict, user=None, reason: str = '') -> Lease:
        _ensure_same_tenant(self.tenant, lease, 'lease')
        _ensure_same_tenant(self.tenant, data.get('unit'), 'unit')
        _ensure_same_tenant(self.tenant, data.get('tenant_profile'), 'tenant profile')

        previous_status = lease.status
        changes = _apply_changes(lease, data)
        if not changes:
            return lease

        if lease.end_date and lease.end_date < lease.start_date:
            raise ValidationError({'end_date': 'End date must be after start date'})

        lease.save()
        self.record_revision(lease, changes, user=user, reason=reason)
        self._apply_status_transition(lease, previous_status)
        PropertyService.sync_listings_for_property(lease.unit.property)
        return lease

    @transaction.atomic
    def terminate(self, lease: Lease, terminated_at=None, user=None, reason: str = '') -> Lease:
        _ensure_same_tenant(self.tenant, lease, 'lease')
        if lease.status in self.ENDED_STATUSES:
            raise ValidationError({'status': f'Lease is already {lease.status.lower()}'})

        terminated_at = terminated_at or timezone.now()
        previous_status = lease.status

        lease.status = Lease.STATUS_TERMINATED
        lease.metadata = {**(lease.metadata or {}), 'terminatedAt': _json_value(terminated_at)}
        lease.save(update_fields=['status', 'metadata', 'updated_at'])

        self.record_revision(
            lease,
            {
                'status': {'from': previous_status, 'to': Lease.STATUS_TERMINATED},
                'terminatedAt': _json_value(terminated_at),
            },
            user=user,
            reason=reason or 'Lease terminated',
        )
        UnitService(self.tenant).set_status(lease.unit, Unit.STATUS_VACANT)
        PropertyService.sync_listings_for_property(lease.unit.property)
        logger.info(f"Terminated lease {lease.pk}")
        return lease

    @transaction.atomic
    def expire(self, lease: Lease) -> Lease:
        previous_status = lease.status
        lease.status = Lease.STATUS_EXPIRED
        lease.save(update_fields=['status', 'updated_at'])
        self.record_revision(
            lease,
            {'status': {'from': previous_status, 'to': Lease.STATUS_EXPIRED}},
            reason='Lease end date passed',
        )
        UnitService(self.tenant).set_status(lease.unit, Unit.STATUS_VACANT)
        PropertyService.sync_listings_for_property(lease.unit.property)
        return lease

    def record_revision(self, lease: Lease, change: Dict, user=None, reason: str = '') -> LeaseRevision:
        if user is not None and not user.is_authenticated:
            user = None
        return LeaseRevision.objects.create(
            tenant=self.tenant,
            lease=lease,
            change=change,
            reason=reason or '',
            created_by=user,
        )

    def _apply_status_transition(self, lease: Lease, previous_status: str):
        if lease.status == previous_status:
            return
        units = UnitService(self.tenant)
        if lease.status == Lease.STATUS_ACTIVE:
            units.set_status(lease.unit, Unit.STATUS_OCCUPIED)
        elif lease.status in self.ENDED_STATUSES:
            units.set_status(lease.unit, Unit.STATUS_VACANT)


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentService(TenantBoundService):

    def list(self, lease=None, statuses: Optional[Iterable[str]] = None, limit: int = PAYMENT_LIST_LIMIT):
        queryset = Payment.objects.filter(
            tenant=self.tenant,
            lease__status__in=[Lease.STATUS_ACTIVE, Lease.STATUS_DRAFT],
        ).select_related('lease', 'lease__tenant_profile', 'lease__unit')
        if lease:
            queryset = queryset.filter(lease=lease)
        if statuses:
            queryset = queryset.filter(status__in=list(statuses))
        return queryset.order_by('due_date', 'id')[:limit]

    def get(self, pk):
        return get_object_or_404(Payment.objects.select_related('lease'), tenant=self.tenant, pk=pk)

    def create(self, data: Dict) -> Payment:
        _ensure_same_tenant(self.tenant, data.get('lease'), 'lease')
        return Payment.objects.create(tenant=self.tenant, **data)

    def bulk_schedule_monthly(self, lease: Lease, start_date: date, months: int,
                              amount: Optional[Decimal] = None) -> List[Payment]:
        """Create `months` PENDING payments one month apart from start_date."""
        amount = lease.rent_amount if amount is None else amount
        due_dates = [add_months(start_date, offset) for offset in range(months)]
        existing = set(
            Payment.objects.filter(lease=lease, due_date__in=due_dates).values_list('due_date', flat=True)
        )
        payments = [
            Payment(tenant=self.tenant, lease=lease, due_date=due_date, amount_due=amount)
            for due_date in due_dates
            if due_date not in existing
        ]
        created = Payment.objects.bulk_create(payments)
        logger.info(f"Scheduled {len(created)} payments for lease {lease.pk}")
        return created

    def due_dates_for(self, lease: Lease, until: date) -> List[date]:
        """Billing-cycle due dates from the lease start up to `until` (and end_date)."""
        step = lease.interval_months
        last = min(until, lease.end_date) if lease.end_date else until
        dates = []
        cycle = 0
        due_date = lease.start_date
        while due_date <= last:
            dates.append(due_date)
            cycle += 1
            # Anchor on the start date so month-end days don't drift
            due_date = add_months(lease.start_date, cycle * step)
        return dates

    def schedule_missing(self, lease: Lease, until: date) -> List[Payment]:
        due_dates = self.due_dates_for(lease, until)
        existing = set(lease.payments.values_list('due_date', flat=True))
        payments = [
            Payment(tenant=self.tenant, lease=lease, due_date=due_date, amount_due=lease.rent_amount)
            for due_date in due_dates
            if due_date not in existing
        ]
        return Payment.objects.bulk_create(payments)

    def mark_paid(self, payment: Payment, amount, paid_at=None, method: str = '',
                  reference: str = '') -> Payment:
        _ensure_same_tenant(self.tenant, payment, 'payment')
        amount = Decimal(str(amount)) if amount is not None else None
        if amount is None or amount <= 0:
            raise ValidationError({'amount': 'Amount must be greater than zero'})

        payment.amount_paid = (payment.amount_paid or Decimal('0')) + amount
        payment.status = (
            Payment.STATUS_PAID if payment.amount_paid >= payment.amount_due
            else Payment.STATUS_PARTIAL
        )
        payment.paid_at = paid_at or timezone.now()
        if method:
            payment.method = method
        if reference:
            payment.reference = reference
        payment.save()
        logger.info(f"Payment {payment.pk} received {amount}, now {payment.status}")
        return payment

    def outstanding_total(self) -> Decimal:
        outstanding = ExpressionWrapper(
            F('amount_due') - F('amount_paid'),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
        total = Payment.objects.filter(
            tenant=self.tenant,
            status__in=Payment.OUTSTANDING_STATUSES,
        ).aggregate(total=Sum(outstanding))['total']
        return total or Decimal('0')


# =============================================================================
# MAINTENANCE
# =============================================================================

def get_sla_hours(priority: str) -> int:
    configured = getattr(settings, 'MAINTENANCE_SLA_HOURS', {}) or {}
    return configured.get(priority, DEFAULT_SLA_HOURS.get(priority, DEFAULT_SLA_HOURS['MEDIUM']))


class MaintenanceService(TenantBoundService):

    def list(self, statuses: Optional[Iterable[str]] = None,
             priorities: Optional[Iterable[str]] = None, limit: int = DEFAULT_LIST_LIMIT):
        queryset = MaintenanceRequest.objects.filter(tenant=self.tenant).select_related(
            'property', 'unit', 'tenant_profile', 'assigned_to'
        )
        if statuses:
            queryset = queryset.filter(status__in=list(statuses))
        if priorities:
            queryset = queryset.filter(priority__in=list(priorities))
        return queryset.order_by('-requested_at', '-id')[:limit]

    def get(self, pk):
        return get_object_or_404(MaintenanceRequest, tenant=self.tenant, pk=pk)

    def _check_relations(self, data: Dict, current: Optional[MaintenanceRequest] = None):
        prop = data.get('property') or (current.property if current else None)
        unit = data.get('unit')
        _ensure_same_tenant(self.tenant, data.get('property'), 'property')
        _ensure_same_tenant(self.tenant, unit, 'unit')
        _ensure_same_tenant(self.tenant, data.get('tenant_profile'), 'tenant profile')
        if unit is not None and prop is not None and unit.property_id != prop.pk:
            raise ValidationError({'unit': 'Unit does not belong to the selected property'})

    def create(self, data: Dict) -> MaintenanceRequest:
        self._check_relations(data)
        ticket = MaintenanceRequest.objects.create(tenant=self.tenant, **data)
        logger.info(f"Maintenance request {ticket.pk} opened ({ticket.priority})")
        return ticket

    def update(self, ticket: MaintenanceRequest, data: Dict) -> MaintenanceRequest:
        _ensure_same_tenant(self.tenant, ticket, 'maintenance request')
        data = dict(data)
        status = data.pop('status', None)
        self._check_relations(data, current=ticket)
        if _apply_changes(ticket, data):
            ticket.save()
        if status is not None and status != ticket.status:
            ticket = self.update_status(ticket, status)
        return ticket

    def assign(self, ticket: MaintenanceRequest, user, scheduled_at=None) -> MaintenanceRequest:
        _ensure_same_tenant(self.tenant, ticket, 'maintenance request')
        if user is not None and not user.is_superuser and not Membership.objects.filter(
                user=user, tenant=self.tenant).exists():
            raise ValidationError({'assigned_to': 'Assignee must be a member of this agency'})

        ticket.assigned_to = user
        ticket.scheduled_at = scheduled_at
        ticket.status = MaintenanceRequest.STATUS_IN_PROGRESS
        ticket.resolved_at = None
        ticket.save()
        logger.info(f"Maintenance request {ticket.pk} assigned to {getattr(user, 'pk', None)}")
        return ticket

    def update_status(self, ticket: MaintenanceRequest, status: str) -> MaintenanceRequest:
        if status not in dict(MaintenanceRequest.STATUS_CHOICES):
            raise ValidationError({'status': f'Invalid maintenance status: {status}'})
        ticket.status = status
        ticket.resolved_at = (
            timezone.now() if status in MaintenanceRequest.DONE_STATUSES else None
        )
        ticket.save(update_fields=['status', 'resolved_at', 'updated_at'])
        return ticket

    @staticmethod
    def find_sla_breaches(now=None):
        """Open requests across all agencies that have outlived their priority's SLA."""
        now = now or timezone.now()
        condition = Q()
        for priority, _label in MaintenanceRequest.PRIORITY_CHOICES:
            cutoff = now - timedelta(hours=get_sla_hours(priority))
            condition |= Q(priority=priority, requested_at__lt=cutoff)
        return MaintenanceRequest.objects.filter(
            condition,
            status__in=MaintenanceRequest.OPEN_STATUSES,
        ).select_related('tenant', 'property')


# =============================================================================
# DOCUMENTS
# =============================================================================

DOCUMENT_ENTITY_MODELS = {
    PropertyDocument.ENTITY_PROPERTY: Property,
    PropertyDocument.ENTITY_UNIT: Unit,
    PropertyDocument.ENTITY_LEASE: Lease,
    PropertyDocument.ENTITY_TENANT_PROFILE: TenantProfile,
    PropertyDocument.ENTITY_MAINTENANCE: MaintenanceRequest,
}


def attach_document(tenant, entity: str, entity_id, uploaded_file, user=None) -> PropertyDocument:
    if entity not in dict(PropertyDocument.ENTITY_CHOICES):
        raise ValidationError({'entity': f'Unknown document entity: {entity}'})
    if user is not None and not user.is_authenticated:
        user = None
    document = PropertyDocument(
        tenant=tenant,
        entity=entity,
        entity_id=str(entity_id),
        original_name=getattr(uploaded_file, 'name', '') or '',
        uploaded_by=user,
    )
    document.file.save(uploaded_file.name, uploaded_file, save=False)
    document.save()
    logger.info(f"Stored document {document.file.name} for {entity} {entity_id}")
    return document


class DocumentService(TenantBoundService):
    """Documents attached to property management records of one agency."""

    def list(self, entity: Optional[str] = None, entity_id=None, limit: int = DEFAULT_LIST_LIMIT):
        queryset = PropertyDocument.objects.filter(tenant=self.tenant).select_related('uploaded_by')
        if entity:
            queryset = queryset.filter(entity=entity)
        if entity_id:
            queryset = queryset.filter(entity_id=str(entity_id))
        return queryset.order_by('-created_at', '-id')[:limit]

    def get(self, pk):
        return get_object_or_404(PropertyDocument, tenant=self.tenant, pk=pk)

    def get_entity(self, entity: str, entity_id):
        """The record a document is attached to; 404 unless it belongs to this agency."""
        model = DOCUMENT_ENTITY_MODELS.get(entity)
        if model is None:
            raise ValidationError({'entity': f'Unknown document entity: {entity}'})
        pk = parse_int(entity_id)
        if pk is None:
            raise ValidationError({'entity_id': f'Invalid id: {entity_id}'})
        return get_object_or_404(model, tenant=self.tenant, pk=pk)

    def upload(self, entity: str, entity_id, uploaded_file, user=None) -> PropertyDocument:
        record = self.get_entity(entity, entity_id)
        return attach_document(self.tenant, entity, record.pk, uploaded_file, user=user)

    def delete(self, document: PropertyDocument):
        _ensure_same_tenant(self.tenant, document, 'document')
        logger.info(f"Deleting document {document.file.name}")
        document.file.delete(save=False)
        document.delete()


# =============================================================================
# OVERVIEW
# =============================================================================

def get_overview_stats(tenant) -> Dict:
    unit_counts = Unit.objects.filter(tenant=tenant).aggregate(
        total=Count('id'),
        occupied=Count('id', filter=Q(status=Unit.STATUS_OCCUPIED)),
    )
    total_units = unit_counts['total'] or 0
    occupied = unit_counts['occupied'] or 0

    return {
        'properties': Property.objects.filter(tenant=tenant).count(),
        'units': total_units,
        'occupied_units': occupied,
        'occupancy_rate': round(occupied / total_units * 100, 1) if total_units else 0.0,
        'active_leases': Lease.objects.filter(tenant=tenant, status=Lease.STATUS_ACTIVE).count(),
        'outstanding_rent': PaymentService(tenant).outstanding_total(),
        'open_maintenance': MaintenanceRequest.objects.filter(
            tenant=tenant,
            status__in=MaintenanceRequest.OPEN_STATUSES,
        ).count(),
    }
