"""
Tenancy models for the estate site.

A Tenant is a customer organization (an estate agency). Every domain row in
the other apps carries a tenant foreign key and every query is scoped by it.
Membership grants a Django user a role inside one tenant.
"""

from django.conf import settings
from django.db import models


class Tenant(models.Model):
    """
    A customer organization whose data is isolated by tenant id.

    `theme` holds presentation settings and feature toggles, e.g.
    {"primaryColor": "#3b82f6", "logo": "/logo.png",
     "features": {"propertyManagement": true}}
    """

    slug = models.SlugField(
        max_length=64,
        unique=True,
        help_text="Identifier used in the X-Tenant header, cookie and ?tenant="
    )
    name = models.CharField(max_length=255)
    theme = models.JSONField(default=dict, blank=True)

    # Contact details shown on the public site
    whatsapp_number = models.CharField(max_length=32, blank=True, null=True)
    contact_email = models.EmailField(blank=True, null=True)
    contact_phone = models.CharField(max_length=32, blank=True, null=True)

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tenants'
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<Tenant: {self.slug}>"

    @property
    def features(self):
        features = (self.theme or {}).get('features')
        return features if isinstance(features, dict) else {}

    @property
    def notification_email(self):
        """Recipient for lead notifications and scheduled digests."""
        return self.contact_email or settings.LEAD_NOTIFICATION_EMAIL


class Membership(models.Model):
    """Role of a user inside a tenant."""

    ROLE_OWNER = 'owner'
    ROLE_ADMIN = 'admin'
    ROLE_AGENT = 'agent'

    ROLE_CHOICES = [
        (ROLE_OWNER, 'Owner'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_AGENT, 'Agent'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_ADMIN)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tenant_memberships'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'tenant'],
                name='unique_user_per_tenant'
            )
        ]

    def __str__(self):
        return f"{self.user} - {self.tenant.slug} ({self.role})"
