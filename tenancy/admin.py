from django.contrib import admin

from .models import Membership, Tenant


class MembershipInline(admin.TabularInline):
    model = Membership
    extra = 0
    fields = ['user', 'role', 'created_at']
    readonly_fields = ['created_at']
    autocomplete_fields = ['user']


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'contact_email', 'whatsapp_number', 'created_at']
    search_fields = ['name', 'slug', 'contact_email']
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ['created_at', 'updated_at']
    inlines = [MembershipInline]

    fieldsets = (
        ('Agency', {
            'fields': ('name', 'slug', 'theme')
        }),
        ('Contact', {
            'fields': ('contact_email', 'contact_phone', 'whatsapp_number')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'role', 'created_at']
    list_filter = ['role', 'tenant']
    search_fields = ['user__email', 'user__username', 'tenant__slug']
