"""
Lead model for the estate site.

A Lead is a contact-form (or WhatsApp) enquiry sent to an agency, either
about a specific listing or a general enquiry when listing is null.
"""

from django.conf import settings
from django.db import models


class Lead(models.Model):
    STATUS_NEW = 'new'
    STATUS_CONTACTED = 'contacted'
    STATUS_QUALIFIED = 'qualified'
    STATUS_CONVERTED = 'converted'
    STATUS_ARCHIVED = 'archived'

    STATUS_CHOICES = [
        (STATUS_NEW, 'New'),
        (STATUS_CONTACTED, 'Contacted'),
        (STATUS_QUALIFIED, 'Qualified'),
        (STATUS_CONVERTED, 'Converted'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    SOURCE_FORM = 'form'
    SOURCE_WHATSAPP = 'whatsapp'

    SOURCE_CHOICES = [
        (SOURCE_FORM, 'Contact form'),
        (SOURCE_WHATSAPP, 'WhatsApp'),
    ]

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='leads'
    )
    listing = models.ForeignKey(
        'listings.Listing',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='leads'
    )

    # Contact details
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=50, blank=True, null=True)
    message = models.TextField()

    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_FORM)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NEW)

    # Back-office handling
    notes = models.TextField(blank=True, null=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_leads'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'leads'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='leads_tenant_status_idx'),
            models.Index(fields=['tenant', 'created_at'], name='leads_tenant_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} <{self.email}>"

    @property
    def listing_title(self):
        return self.listing.title if self.listing_id else 'General'
