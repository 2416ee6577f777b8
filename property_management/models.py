"""
Property management models.

This module implements the optional back-office entities an agency uses
once it manages the properties it markets:
- Property: a building or site under management
- Unit: a lettable unit within a property
- TenantProfile: a person renting a unit (not to be confused with the
  agency-level tenancy.Tenant every row is scoped to)
- Lease / LeaseRevision: tenancy agreements and their change history
- Payment: a rent invoice due on a lease
- MaintenanceRequest: a repair ticket
- PropertyDocument: an uploaded file attached to any of the above

Every model carries the `tenant` FK; services filter on it for isolation.
"""

import logging
import os
import re
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


class TimestampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# =============================================================================
# PROPERTY & UNIT
# =============================================================================

class Property(TimestampedModel):
    """A managed building or site."""

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='properties'
    )
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)

    address_line1 = models.CharField(max_length=255)
    address_line2 = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100)
    postcode = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=2, default='GB')
    lat = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)
    lng = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)

    owner_name = models.CharField(max_length=255, blank=True)
    owner_email = models.EmailField(blank=True)
    owner_phone = models.CharField(max_length=50, blank=True)

    metadata = models.JSONField(default=dict, blank=True)
    external_id = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        db_table = 'pm_properties'
        verbose_name_plural = 'Properties'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'city'], name='pm_property_tenant_city_idx'),
            models.Index(fields=['tenant', 'name'], name='pm_property_tenant_name_idx'),
        ]

    def __str__(self):
        return self.name

    def get_full_address(self):
        parts = [self.address_line1, self.address_line2, self.city, self.postcode]
        return ", ".join(filter(None, parts))


class Unit(TimestampedModel):
    STATUS_VACANT = 'VACANT'
    STATUS_OCCUPIED = 'OCCUPIED'
    STATUS_MAINTENANCE = 'MAINTENANCE'
    STATUS_RESERVED = 'RESERVED'

    STATUS_CHOICES = [
        (STATUS_VACANT, 'Vacant'),
        (STATUS_OCCUPIED, 'Occupied'),
        (STATUS_MAINTENANCE, 'Under maintenance'),
        (STATUS_RESERVED, 'Reserved'),
    ]

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='units'
    )
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name='units'
    )
    label = models.CharField(max_length=100)
    floor = models.CharField(max_length=20, blank=True)
    bedrooms = models.PositiveSmallIntegerField(blank=True, null=True)
    bathrooms = models.PositiveSmallIntegerField(blank=True, null=True)
    square_feet = models.PositiveIntegerField(blank=True, null=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_VACANT)
    rent_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    deposit = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    available_from = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'pm_units'
        ordering = ['property_id', 'label']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='pm_unit_tenant_status_idx'),
        ]

    def __str__(self):
        return f"{self.property.name} / {self.label}"


# =============================================================================
# TENANT PROFILES & LEASES
# =============================================================================

class TenantProfile(TimestampedModel):
    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='tenant_profiles'
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    date_of_birth = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True)
    external_id = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        db_table = 'pm_tenant_profiles'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'last_name'], name='pm_profile_tenant_name_idx'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Lease(TimestampedModel):
    STATUS_DRAFT = 'DRAFT'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_TERMINATED = 'TERMINATED'
    STATUS_EXPIRED = 'EXPIRED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_TERMINATED, 'Terminated'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    INTERVAL_MONTHLY = 'MONTHLY'
    INTERVAL_QUARTERLY = 'QUARTERLY'
    INTERVAL_ANNUALLY = 'ANNUALLY'

    INTERVAL_CHOICES = [
        (INTERVAL_MONTHLY, 'Monthly'),
        (INTERVAL_QUARTERLY, 'Quarterly'),
        (INTERVAL_ANNUALLY, 'Annually'),
    ]

    # Months between invoices for each billing interval
    INTERVAL_MONTHS = {
        INTERVAL_MONTHLY: 1,
        INTERVAL_QUARTERLY: 3,
        INTERVAL_ANNUALLY: 12,
    }

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='leases'
    )
    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, related_name='leases')
    tenant_profile = models.ForeignKey(
        TenantProfile,
        on_delete=models.PROTECT,
        related_name='leases'
    )
    start_date = models.DateField()
    end_date = models.DateField(blank=True, null=True)
    rent_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))]
    )
    deposit_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    billing_interval = models.CharField(
        max_length=16,
        choices=INTERVAL_CHOICES,
        default=INTERVAL_MONTHLY
    )
    auto_rent_increase = models.BooleanField(default=False)
    notice_period_days = models.PositiveIntegerField(default=30)
    metadata = models.JSONField(default=dict, blank=True)
    external_id = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        db_table = 'pm_leases'
        ordering = ['-start_date']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='pm_lease_tenant_status_idx'),
            models.Index(fields=['status', 'end_date'], name='pm_lease_status_end_idx'),
        ]

    def __str__(self):
        return f"Lease {self.pk}: {self.tenant_profile} @ {self.unit}"

    @property
    def interval_months(self):
        return self.INTERVAL_MONTHS.get(self.billing_interval, 1)


class LeaseRevision(models.Model):
    """A snapshot of the fields changed on a lease."""

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='lease_revisions'
    )
    lease = models.ForeignKey(Lease, on_delete=models.CASCADE, related_name='revisions')
    change = models.JSONField(default=dict)
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='lease_revisions'
    )
    changed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'pm_lease_revisions'
        ordering = ['-changed_at', '-id']

    def __str__(self):
        return f"Revision {self.pk} of lease {self.lease_id}"


# =============================================================================
# PAYMENTS
# =============================================================================

class Payment(TimestampedModel):
    STATUS_PENDING = 'PENDING'
    STATUS_PAID = 'PAID'
    STATUS_PARTIAL = 'PARTIAL'
    STATUS_FAILED = 'FAILED'
    STATUS_WAIVED = 'WAIVED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_PARTIAL, 'Partially paid'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_WAIVED, 'Waived'),
    ]

    OUTSTANDING_STATUSES = (STATUS_PENDING, STATUS_PARTIAL)

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='payments'
    )
    lease = models.ForeignKey(Lease, on_delete=models.CASCADE, related_name='payments')
    due_date = models.DateField(db_index=True)
    amount_due = models.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    paid_at = models.DateTimeField(blank=True, null=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    method = models.CharField(max_length=50, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    reminder_sent_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'pm_payments'
        ordering = ['due_date', 'id']
        indexes = [
            models.Index(fields=['tenant', 'status', 'due_date'], name='pm_payment_tenant_due_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['lease', 'due_date'],
                name='unique_payment_per_lease_due_date'
            )
        ]

    def __str__(self):
        return f"Payment {self.pk}: {self.amount_due} due {self.due_date}"

    @property
    def amount_outstanding(self):
        outstanding = (self.amount_due or Decimal('0')) - (self.amount_paid or Decimal('0'))
        return max(outstanding, Decimal('0'))

    @property
    def is_overdue(self):
        return (
            self.status in self.OUTSTANDING_STATUSES
            and self.due_date < timezone.localdate()
        )


# =============================================================================
# MAINTENANCE
# =============================================================================

class MaintenanceRequest(TimestampedModel):
    PRIORITY_LOW = 'LOW'
    PRIORITY_MEDIUM = 'MEDIUM'
    PRIORITY_HIGH = 'HIGH'
    PRIORITY_URGENT = 'URGENT'

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, 'Low'),
        (PRIORITY_MEDIUM, 'Medium'),
        (PRIORITY_HIGH, 'High'),
        (PRIORITY_URGENT, 'Urgent'),
    ]

    STATUS_OPEN = 'OPEN'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_ON_HOLD = 'ON_HOLD'
    STATUS_RESOLVED = 'RESOLVED'
    STATUS_CLOSED = 'CLOSED'

    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_ON_HOLD, 'On hold'),
        (STATUS_RESOLVED, 'Resolved'),
        (STATUS_CLOSED, 'Closed'),
    ]

    OPEN_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_ON_HOLD)
    DONE_STATUSES = (STATUS_RESOLVED, STATUS_CLOSED)

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='maintenance_requests'
    )
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name='maintenance_requests'
    )
    unit = models.ForeignKey(
        Unit,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='maintenance_requests'
    )
    tenant_profile = models.ForeignKey(
        TenantProfile,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='maintenance_requests'
    )
    summary = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=16, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_OPEN)
    requested_at = models.DateTimeField(default=timezone.now, db_index=True)
    scheduled_at = models.DateTimeField(blank=True, null=True)
    resolved_at = models.DateTimeField(blank=True, null=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='maintenance_requests'
    )
    attachments = models.JSONField(default=list, blank=True)
    sla_breached_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'pm_maintenance_requests'
        ordering = ['-requested_at']
        indexes = [
            models.Index(fields=['tenant', 'status', 'priority'], name='pm_maint_tenant_status_idx'),
        ]

    def __str__(self):
        return f"[{self.priority}] {self.summary}"


# =============================================================================
# DOCUMENTS
# =============================================================================

_SAFE_SEGMENT = re.compile(r'[^a-zA-Z0-9\-_]')
_NAME_RUNS = re.compile(r'[^a-z0-9]+')
_EXTENSION = re.compile(r'[^a-z0-9]')

MAX_DOCUMENT_NAME_LENGTH = 80


def _safe_segment(value):
    return _SAFE_SEGMENT.sub('-', str(value)).lower()


def build_document_key(tenant, entity, entity_id, filename):
    """
    Build the storage key for an uploaded document.

    Format: property-management/<tenant>/<entity>/<id>/<safe-name>-<uuid>.<ext>

    The base name is lower-cased with non-alphanumeric runs collapsed to
    '-', trimmed and cut to 80 characters ('document' when nothing is
    left); the extension keeps only lower-case alphanumerics ('bin' when
    missing).
    """
    base, ext = os.path.splitext(filename or '')
    safe_name = _NAME_RUNS.sub('-', base.lower()).strip('-')[:MAX_DOCUMENT_NAME_LENGTH]
    safe_name = safe_name.strip('-') or 'document'
    safe_ext = _EXTENSION.sub('', ext.lower()) or 'bin'

    return (
        f"property-management/{_safe_segment(tenant)}/{_safe_segment(entity)}/"
        f"{_safe_segment(entity_id)}/{safe_name}-{uuid.uuid4()}.{safe_ext}"
    )


def document_upload_to(instance, filename):
    return build_document_key(
        instance.tenant.slug,
        instance.entity,
        instance.entity_id,
        filename,
    )


class PropertyDocument(TimestampedModel):
    ENTITY_PROPERTY = 'property'
    ENTITY_UNIT = 'unit'
    ENTITY_LEASE = 'lease'
    ENTITY_TENANT_PROFILE = 'tenant-profile'
    ENTITY_MAINTENANCE = 'maintenance'

    ENTITY_CHOICES = [
        (ENTITY_PROPERTY, 'Property'),
        (ENTITY_UNIT, 'Unit'),
        (ENTITY_LEASE, 'Lease'),
        (ENTITY_TENANT_PROFILE, 'Tenant profile'),
        (ENTITY_MAINTENANCE, 'Maintenance request'),
    ]

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='property_documents'
    )
    entity = models.CharField(max_length=32, choices=ENTITY_CHOICES)
    entity_id = models.CharField(max_length=64)
    file = models.FileField(upload_to=document_upload_to, max_length=500)
    original_name = models.CharField(max_length=255, blank=True)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='property_documents'
    )

    class Meta:
        db_table = 'pm_documents'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'entity', 'entity_id'], name='pm_document_entity_idx'),
        ]

    def __str__(self):
        return self.original_name or self.file.name
