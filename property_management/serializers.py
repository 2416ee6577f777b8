"""
API serializers for the property management module.

Serializers validate shape and field-level rules only; tenant ownership of
related records and status side effects are enforced by the service layer
in services.py, which the viewsets call from perform_create/perform_update.
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    Lease,
    MaintenanceRequest,
    Payment,
    Property,
    PropertyDocument,
    TenantProfile,
    Unit,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PROPERTY & UNIT SERIALIZERS
# =============================================================================

class PropertySerializer(serializers.ModelSerializer):
    unit_count = serializers.SerializerMethodField()
    listing_count = serializers.SerializerMethodField()
    full_address = serializers.SerializerMethodField()

    class Meta:
        model = Property
        fields = [
            'id',
            'name',
            'code',
            'description',
            'address_line1',
            'address_line2',
            'city',
            'postcode',
            'country',
            'lat',
            'lng',
            'owner_name',
            'owner_email',
            'owner_phone',
            'metadata',
            'external_id',
            'unit_count',
            'listing_count',
            'full_address',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_unit_count(self, obj):
        count = getattr(obj, 'unit_count', None)
        return count if count is not None else obj.units.count()

    def get_listing_count(self, obj):
        count = getattr(obj, 'listing_count', None)
        return count if count is not None else obj.listings.count()

    def get_full_address(self, obj):
        return obj.get_full_address()


class UnitSerializer(serializers.ModelSerializer):
    property = serializers.PrimaryKeyRelatedField(queryset=Property.objects.all())
    property_name = serializers.CharField(source='property.name', read_only=True)

    class Meta:
        model = Unit
        fields = [
            'id',
            'property',
            'property_name',
            'label',
            'floor',
            'bedrooms',
            'bathrooms',
            'square_feet',
            'status',
            'rent_amount',
            'deposit',
            'available_from',
            'notes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_rent_amount(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Rent cannot be negative")
        return value


class UnitStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Unit.STATUS_CHOICES)


class TenantProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = TenantProfile
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'email',
            'phone',
            'date_of_birth',
            'notes',
            'external_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


# =============================================================================
# LEASE SERIALIZERS
# =============================================================================

class LeaseSerializer(serializers.ModelSerializer):
    """
    Lease read/write serializer.

    Write-only extras:
    - generate_months: on create, schedule this many monthly payments
    - reason: on update, stored on the LeaseRevision
    """

    unit = serializers.PrimaryKeyRelatedField(queryset=Unit.objects.all())
    tenant_profile = serializers.PrimaryKeyRelatedField(queryset=TenantProfile.objects.all())
    unit_label = serializers.CharField(source='unit.label', read_only=True)
    property_name = serializers.CharField(source='unit.property.name', read_only=True)
    tenant_name = serializers.CharField(source='tenant_profile.full_name', read_only=True)

    generate_months = serializers.IntegerField(
        write_only=True, required=False, min_value=0, max_value=120, default=0
    )
    reason = serializers.CharField(write_only=True, required=False, allow_blank=True, default='')

    class Meta:
        model = Lease
        fields = [
            'id',
            'unit',
            'unit_label',
            'property_name',
            'tenant_profile',
            'tenant_name',
            'start_date',
            'end_date',
            'rent_amount',
            'deposit_amount',
            'status',
            'billing_interval',
            'auto_rent_increase',
            'notice_period_days',
            'metadata',
            'external_id',
            'generate_months',
            'reason',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, data):
        errors = {}

        start_date = data.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = data.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            errors['end_date'] = "End date must be after start date"

        rent_amount = data.get('rent_amount')
        if rent_amount is not None and rent_amount < 0:
            errors['rent_amount'] = "Rent cannot be negative"

        if errors:
            raise serializers.ValidationError(errors)
        return data


class LeaseTerminateSerializer(serializers.Serializer):
    terminated_at = serializers.DateTimeField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class LeaseRevisionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    change = serializers.JSONField()
    reason = serializers.CharField()
    created_by = serializers.IntegerField(source='created_by_id', allow_null=True)
    changed_at = serializers.DateTimeField()


# =============================================================================
# PAYMENT SERIALIZERS
# =============================================================================

class PaymentSerializer(serializers.ModelSerializer):
    lease = serializers.PrimaryKeyRelatedField(queryset=Lease.objects.all())
    amount_outstanding = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    tenant_name = serializers.CharField(source='lease.tenant_profile.full_name', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'lease',
            'tenant_name',
            'due_date',
            'amount_due',
            'amount_paid',
            'amount_outstanding',
            'paid_at',
            'status',
            'method',
            'reference',
            'notes',
            'reminder_sent_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'amount_paid', 'paid_at', 'reminder_sent_at', 'created_at', 'updated_at']

    def validate_amount_due(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount due must be greater than zero")
        return value


class MarkPaidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    paid_at = serializers.DateTimeField(required=False)
    method = serializers.CharField(required=False, allow_blank=True, default='')
    reference = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero")
        return value


# =============================================================================
# MAINTENANCE SERIALIZERS
# =============================================================================

class MaintenanceRequestSerializer(serializers.ModelSerializer):
    property = serializers.PrimaryKeyRelatedField(queryset=Property.objects.all())
    unit = serializers.PrimaryKeyRelatedField(
        queryset=Unit.objects.all(), required=False, allow_null=True
    )
    tenant_profile = serializers.PrimaryKeyRelatedField(
        queryset=TenantProfile.objects.all(), required=False, allow_null=True
    )
    property_name = serializers.CharField(source='property.name', read_only=True)
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = MaintenanceRequest
        fields = [
            'id',
            'property',
            'property_name',
            'unit',
            'tenant_profile',
            'summary',
            'description',
            'priority',
            'status',
            'requested_at',
            'scheduled_at',
            'resolved_at',
            'assigned_to',
            'assigned_to_name',
            'attachments',
            'sla_breached_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'id', 'resolved_at', 'assigned_to', 'sla_breached_at', 'created_at', 'updated_at'
        ]

    def get_assigned_to_name(self, obj):
        user = obj.assigned_to
        if user is None:
            return None
        return user.get_full_name() or user.get_username()


class MaintenanceAssignSerializer(serializers.Serializer):
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.all(), allow_null=True
    )
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)


class MaintenanceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MaintenanceRequest.STATUS_CHOICES)


# =============================================================================
# DOCUMENT SERIALIZERS
# =============================================================================

class PropertyDocumentSerializer(serializers.ModelSerializer):
    key = serializers.CharField(source='file.name', read_only=True)
    url = serializers.SerializerMethodField()

    class Meta:
        model = PropertyDocument
        fields = [
            'id',
            'entity',
            'entity_id',
            'original_name',
            'key',
            'url',
            'uploaded_by',
            'created_at',
        ]

    def get_url(self, obj):
        return obj.file.url if obj.file else None


class DocumentUploadSerializer(serializers.Serializer):
    entity = serializers.ChoiceField(choices=PropertyDocument.ENTITY_CHOICES)
    entity_id = serializers.CharField(max_length=64)
    file = serializers.FileField()

    def validate_file(self, value):
        max_size = getattr(settings, 'MAX_DOCUMENT_UPLOAD_SIZE', 20 * 1024 * 1024)
        if value.size > max_size:
            raise serializers.ValidationError(
                f"File size must be less than {max_size // (1024 * 1024)}MB"
            )
        return value
