"""
Property Management Admin

Django admin configuration for managed properties and their tenancies.
"""

from django.contrib import admin

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


# =============================================================================
# INLINE ADMIN CLASSES
# =============================================================================

class UnitInline(admin.TabularInline):
    model = Unit
    extra = 0
    fields = ['label', 'floor', 'bedrooms', 'bathrooms', 'status', 'rent_amount']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ['due_date', 'amount_due', 'amount_paid', 'status', 'paid_at']
    readonly_fields = ['paid_at']


class LeaseRevisionInline(admin.TabularInline):
    model = LeaseRevision
    extra = 0
    fields = ['changed_at', 'change', 'reason', 'created_by']
    readonly_fields = ['changed_at', 'change', 'reason', 'created_by']
    can_delete = False


# =============================================================================
# MAIN ADMIN CLASSES
# =============================================================================

@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'city', 'postcode', 'tenant', 'created_at']
    list_filter = ['tenant', 'city']
    search_fields = ['name', 'code', 'address_line1', 'city', 'postcode']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [UnitInline]

    fieldsets = (
        ('Property', {
            'fields': ('tenant', 'name', 'code', 'description')
        }),
        ('Address', {
            'fields': (
                'address_line1', 'address_line2', 'city', 'postcode', 'country', 'lat', 'lng'
            )
        }),
        ('Owner', {
            'fields': ('owner_name', 'owner_email', 'owner_phone')
        }),
        ('Metadata', {
            'fields': ('metadata', 'external_id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ['label', 'property', 'status', 'bedrooms', 'rent_amount', 'tenant']
    list_filter = ['status', 'tenant']
    search_fields = ['label', 'property__name']


@admin.register(TenantProfile)
class TenantProfileAdmin(admin.ModelAdmin):
    list_display = ['last_name', 'first_name', 'email', 'phone', 'tenant']
    list_filter = ['tenant']
    search_fields = ['first_name', 'last_name', 'email']


@admin.register(Lease)
class LeaseAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'tenant_profile', 'unit', 'status', 'start_date', 'end_date', 'rent_amount'
    ]
    list_filter = ['status', 'billing_interval', 'tenant']
    search_fields = ['tenant_profile__last_name', 'unit__label', 'unit__property__name']
    date_hierarchy = 'start_date'
    inlines = [PaymentInline, LeaseRevisionInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'lease', 'due_date', 'amount_due', 'amount_paid', 'status', 'reminder_sent_at']
    list_filter = ['status', 'tenant']
    date_hierarchy = 'due_date'


@admin.register(MaintenanceRequest)
class MaintenanceRequestAdmin(admin.ModelAdmin):
    list_display = ['summary', 'property', 'priority', 'status', 'requested_at', 'sla_breached_at']
    list_filter = ['priority', 'status', 'tenant']
    search_fields = ['summary', 'description', 'property__name']


@admin.register(PropertyDocument)
class PropertyDocumentAdmin(admin.ModelAdmin):
    list_display = ['original_name', 'entity', 'entity_id', 'tenant', 'created_at']
    list_filter = ['entity', 'tenant']
    readonly_fields = ['created_at', 'updated_at']
