"""
Listing models for the estate site.

This module implements the public marketing entities:
- Listing: a property advertised for sale or rent on a tenant's site
- WhatsAppClick: a tracked click-through to an agency's WhatsApp

Listings are scoped by tenant; slugs are unique within a tenant only.
"""

import builtins
import logging
import os
import re
import time
import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

logger = logging.getLogger(__name__)


# =============================================================================
# CHOICES
# =============================================================================

STATUS_DRAFT = 'draft'
STATUS_ACTIVE = 'active'
STATUS_SOLD = 'sold'
STATUS_LET = 'let'

STATUS_CHOICES = [
    (STATUS_DRAFT, 'Draft'),
    (STATUS_ACTIVE, 'Active'),
    (STATUS_SOLD, 'Sold'),
    (STATUS_LET, 'Let'),
]

TYPE_SALE = 'sale'
TYPE_RENT = 'rent'
TYPE_COMMERCIAL = 'commercial'

TYPE_CHOICES = [
    (TYPE_SALE, 'For sale'),
    (TYPE_RENT, 'To rent'),
    (TYPE_COMMERCIAL, 'Commercial'),
]

STATUS_VALUES = [value for value, _label in STATUS_CHOICES]
TYPE_VALUES = [value for value, _label in TYPE_CHOICES]

DEFAULT_CURRENCY = 'GBP'


# =============================================================================
# MEDIA
# =============================================================================

_UNSAFE_SEGMENT = re.compile(r'[^a-z0-9-]')
_UNSAFE_EXTENSION = re.compile(r'[^a-z0-9]')


def build_media_key(tenant, filename):
    """
    Storage key for an uploaded listing image.

    Format: listings/<tenant>/<epoch-ms>-<random>.<ext>, where the extension
    is lower-cased alphanumerics ('jpg' when missing).
    """
    ext = _UNSAFE_EXTENSION.sub('', os.path.splitext(filename or '')[1].lower()) or 'jpg'
    tenant_segment = _UNSAFE_SEGMENT.sub('-', str(tenant).lower())
    return f"listings/{tenant_segment}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}.{ext}"


class ListingQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def active(self):
        return self.filter(status=STATUS_ACTIVE)

    def public(self):
        """Listings that may be shown on the public site."""
        return self.exclude(status=STATUS_DRAFT)

    def missing_coordinates(self):
        return self.filter(models.Q(lat__isnull=True) | models.Q(lng__isnull=True))


class Listing(models.Model):
    """
    A property marketing record shown on a tenant's public site.

    `features` is a list of strings ("garden", "parking"); `media` is a
    list of {"key", "width", "height", "alt"} image descriptors.
    """

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='listings'
    )

    # Identification
    slug = models.SlugField(max_length=200)
    title = models.CharField(max_length=255)
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
        db_index=True
    )
    type = models.CharField(max_length=16, choices=TYPE_CHOICES)

    # Pricing
    price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)

    # Property characteristics
    bedrooms = models.PositiveSmallIntegerField(blank=True, null=True)
    bathrooms = models.PositiveSmallIntegerField(blank=True, null=True)
    property_type = models.CharField(
        max_length=50,
        blank=True,
        help_text="house, apartment, flat, villa, townhouse..."
    )

    # Location
    address_line1 = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    postcode = models.CharField(max_length=20, blank=True)
    lat = models.DecimalField(
        max_digits=10,
        decimal_places=7,
        blank=True,
        null=True,
        help_text="Decimal degrees, populated by geocoding service"
    )
    lng = models.DecimalField(
        max_digits=10,
        decimal_places=7,
        blank=True,
        null=True,
        help_text="Decimal degrees, populated by geocoding service"
    )

    # Content
    description = models.TextField()
    features = models.JSONField(default=list, blank=True)
    media = models.JSONField(default=list, blank=True)
    # Link into property management once the listing is converted.
    # Shadows the builtin for the rest of the class body.
    property = models.ForeignKey(
        'property_management.Property',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='listings'
    )

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ListingQuerySet.as_manager()

    class Meta:
        db_table = 'listings'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'status', '-created_at'], name='listings_tenant_status_idx'),
            models.Index(fields=['tenant', 'city'], name='listings_tenant_city_idx'),
            models.Index(fields=['lat', 'lng'], name='listings_lat_lng_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'slug'],
                name='unique_listing_slug_per_tenant'
            )
        ]

    def __str__(self):
        return self.title

    def __repr__(self):
        return f"<Listing: {self.slug} ({self.status})>"

    def get_full_address(self):
        """
        Returns formatted full address.

        Returns:
            str: Comma-separated full address or empty string if no components
        """
        parts = [self.address_line1, self.city, self.postcode]
        return ", ".join(filter(None, parts))

    @builtins.property
    def has_coordinates(self):
        """Check if listing has been geocoded."""
        return self.lat is not None and self.lng is not None

    def set_coordinates(self, latitude, longitude):
        self.lat = Decimal(str(round(latitude, 7)))
        self.lng = Decimal(str(round(longitude, 7)))

    @builtins.property
    def primary_image(self):
        for item in self.media or []:
            if isinstance(item, dict) and item.get('key'):
                return item
        return None

    def get_absolute_url(self):
        from django.urls import reverse
        return reverse('public:listing-detail', kwargs={'slug': self.slug})


class WhatsAppClick(models.Model):
    """A visitor clicking through to an agency's WhatsApp."""

    tenant = models.ForeignKey(
        'tenancy.Tenant',
        on_delete=models.CASCADE,
        related_name='whatsapp_clicks'
    )
    listing = models.ForeignKey(
        Listing,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='whatsapp_clicks'
    )
    ip_address = models.CharField(max_length=64, default='unknown')
    user_agent = models.TextField(blank=True, default='unknown')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'whatsapp_clicks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', '-created_at'], name='whatsapp_tenant_created_idx'),
        ]

    def __str__(self):
        return f"WhatsApp click {self.pk} ({self.tenant_id})"
