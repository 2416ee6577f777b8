"""
API Serializers for listings.

- ListingListSerializer: summary rows for search results and tables
- ListingDetailSerializer: everything shown on the listing page
- ListingWriteSerializer: create/update input validation
- small action serializers (status change, conversion, CSV and image upload)

Slug uniqueness is checked by ListingService so the API can answer a
clash with 409 instead of a generic 400.
"""

import logging

from django.conf import settings
from rest_framework import serializers

from .models import STATUS_CHOICES, Listing

logger = logging.getLogger(__name__)


# =============================================================================
# READ SERIALIZERS
# =============================================================================

class ListingListSerializer(serializers.ModelSerializer):
    """Summary fields for search results and listing tables."""

    primary_image = serializers.SerializerMethodField()
    url = serializers.SerializerMethodField()

    class Meta:
        model = Listing
        fields = [
            'id',
            'slug',
            'title',
            'status',
            'type',
            'price',
            'currency',
            'bedrooms',
            'bathrooms',
            'property_type',
            'city',
            'postcode',
            'lat',
            'lng',
            'primary_image',
            'url',
            'created_at',
        ]

    def get_primary_image(self, obj):
        return obj.primary_image

    def get_url(self, obj):
        return obj.get_absolute_url()


class ListingDetailSerializer(ListingListSerializer):
    full_address = serializers.SerializerMethodField()

    class Meta(ListingListSerializer.Meta):
        fields = ListingListSerializer.Meta.fields + [
            'address_line1',
            'full_address',
            'description',
            'features',
            'media',
            'property',
            'updated_at',
        ]

    def get_full_address(self, obj):
        return obj.get_full_address()


# =============================================================================
# WRITE SERIALIZERS
# =============================================================================

class ListingWriteSerializer(serializers.ModelSerializer):
    """Create/update input. Tenant comes from the request, never the body."""

    slug = serializers.SlugField(max_length=200)

    class Meta:
        model = Listing
        fields = [
            'slug',
            'title',
            'status',
            'type',
            'price',
            'currency',
            'bedrooms',
            'bathrooms',
            'property_type',
            'address_line1',
            'city',
            'postcode',
            'lat',
            'lng',
            'description',
            'features',
            'media',
        ]
        extra_kwargs = {
            'postcode': {'required': False},
            'property_type': {'required': False},
            'features': {'required': False},
            'media': {'required': False},
        }

    def validate_slug(self, value):
        return value.lower()

    def validate_currency(self, value):
        value = (value or '').upper()
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError("Currency must be a 3-letter ISO code")
        return value

    def validate_features(self, value):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError("Features must be a list of strings")
        return [item.strip() for item in value if item.strip()]

    def validate_media(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Media must be a list")
        for item in value:
            if not isinstance(item, dict) or not item.get('key'):
                raise serializers.ValidationError("Each media item needs a 'key'")
        return value

    def validate(self, data):
        errors = {}

        price = data.get('price')
        if price is not None and price <= 0:
            errors['price'] = "Price must be greater than zero"

        lat = data.get('lat')
        lng = data.get('lng')
        if lat is not None and not -90 <= lat <= 90:
            errors['lat'] = "Latitude must be between -90 and 90"
        if lng is not None and not -180 <= lng <= 180:
            errors['lng'] = "Longitude must be between -180 and 180"

        if errors:
            raise serializers.ValidationError(errors)
        return data


class ListingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES)


class ConvertToPropertySerializer(serializers.Serializer):
    create_unit = serializers.BooleanField(required=False, default=True)


class ListingImportSerializer(serializers.Serializer):
    file = serializers.FileField()

    def validate_file(self, value):
        if not value.name.lower().endswith('.csv'):
            raise serializers.ValidationError("File must be a CSV file")
        return value


class ListingMediaUploadSerializer(serializers.Serializer):
    file = serializers.FileField()

    def validate_file(self, value):
        content_type = getattr(value, 'content_type', '') or ''
        if not content_type.startswith('image/'):
            raise serializers.ValidationError("File must be an image")

        max_size = getattr(settings, 'MAX_IMAGE_UPLOAD_SIZE', 10 * 1024 * 1024)
        if value.size > max_size:
            raise serializers.ValidationError(
                f"File size must be less than {max_size // (1024 * 1024)}MB"
            )
        return value
