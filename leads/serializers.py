"""
API Serializers for leads.

LeadCreateSerializer is the public contact form; LeadUpdateSerializer
covers the back-office fields. Tenant checks (listing ownership, assignee
membership) happen in LeadService.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Lead


class LeadSerializer(serializers.ModelSerializer):
    listing_title = serializers.CharField(read_only=True)
    listing_slug = serializers.SlugRelatedField(source='listing', slug_field='slug', read_only=True)
    assigned_to_email = serializers.EmailField(source='assigned_to.email', read_only=True, default=None)

    class Meta:
        model = Lead
        fields = [
            'id',
            'listing',
            'listing_title',
            'listing_slug',
            'name',
            'email',
            'phone',
            'message',
            'source',
            'status',
            'notes',
            'assigned_to',
            'assigned_to_email',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class LeadCreateSerializer(serializers.Serializer):
    """Public enquiry form."""

    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    message = serializers.CharField()
    listing = serializers.IntegerField(required=False, allow_null=True)
    turnstile_token = serializers.CharField(required=False, allow_blank=True)

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required")
        return value


class LeadUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Lead.STATUS_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.all(),
        required=False,
        allow_null=True
    )
