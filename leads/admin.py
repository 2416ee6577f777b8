"""
Leads Admin

Django admin configuration for enquiries.
"""

from django.contrib import admin

from .models import Lead


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = [
        'name',
        'email',
        'tenant',
        'listing',
        'source',
        'status',
        'assigned_to',
        'created_at',
    ]
    list_filter = ['tenant', 'status', 'source', 'created_at']
    search_fields = ['name', 'email', 'phone', 'message']
    readonly_fields = ['created_at', 'updated_at']
    raw_id_fields = ['listing', 'assigned_to']

    fieldsets = (
        ('Enquiry', {
            'fields': ('tenant', 'listing', 'source', 'name', 'email', 'phone', 'message')
        }),
        ('Handling', {
            'fields': ('status', 'assigned_to', 'notes')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
