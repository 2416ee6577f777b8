"""
Listings Admin

Django admin configuration for listings and WhatsApp click tracking.
"""

from django.contrib import admin
from django.db.models import Count
from django.utils.html import format_html

from .models import Listing, WhatsAppClick
from .services import invalidate_sitemap


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    """
    Admin interface for listings.

    Features:
    - Filtering by tenant, status and type
    - Geocoding status at a glance
    - Bulk status actions (sitemaps refreshed afterwards)
    """

    list_display = [
        'title',
        'tenant',
        'status',
        'type',
        'price',
        'city',
        'lead_count',
        'has_coordinates',
        'updated_at',
    ]

    list_filter = ['tenant', 'status', 'type', 'property_type', 'city']

    search_fields = ['title', 'slug', 'address_line1', 'city', 'postcode']

    readonly_fields = ['created_at', 'updated_at']

    prepopulated_fields = {'slug': ('title',)}

    fieldsets = (
        ('Identity', {
            'fields': ('tenant', 'title', 'slug', 'status', 'type'),
            'classes': ('wide',)
        }),

        ('Pricing & Details', {
            'fields': ('price', 'currency', 'bedrooms', 'bathrooms', 'property_type'),
        }),

        ('Location', {
            'fields': ('address_line1', 'city', 'postcode', 'lat', 'lng'),
        }),

        ('Content', {
            'fields': ('description', 'features', 'media'),
        }),

        ('Property Management', {
            'fields': ('property',),
            'classes': ('collapse',)
        }),

        ('System Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    raw_id_fields = ['property']
    list_per_page = 25
    actions = ['mark_active', 'mark_draft']

    def lead_count(self, obj):
        return obj.lead_count
    lead_count.short_description = 'Leads'
    lead_count.admin_order_field = 'lead_count'

    def has_coordinates(self, obj):
        """Display geocoding status"""
        if obj.has_coordinates:
            return format_html('<span style="color: green;">✓</span>')
        return format_html('<span style="color: red;">✗</span>')
    has_coordinates.short_description = 'Coords'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('tenant').annotate(
            lead_count=Count('leads')
        )

    def _set_status(self, request, queryset, status):
        listings = list(queryset)
        tenants = {listing.tenant for listing in listings}
        updated = Listing.objects.filter(pk__in=[listing.pk for listing in listings]).update(status=status)
        for tenant in tenants:
            invalidate_sitemap(tenant)
        self.message_user(request, f"{updated} listing(s) marked {status}.")

    @admin.action(description='Mark selected listings active')
    def mark_active(self, request, queryset):
        self._set_status(request, queryset, 'active')

    @admin.action(description='Mark selected listings draft')
    def mark_draft(self, request, queryset):
        self._set_status(request, queryset, 'draft')


@admin.register(WhatsAppClick)
class WhatsAppClickAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'listing', 'ip_address', 'created_at']
    list_filter = ['tenant', 'created_at']
    search_fields = ['ip_address', 'listing__title']
    readonly_fields = ['tenant', 'listing', 'ip_address', 'user_agent', 'created_at']
