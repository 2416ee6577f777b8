"""
Listing filters for the back-office listing API.

Public search has its own lenient parser (search.build_filters); this
FilterSet backs GET /api/v1/listings/ for signed-in staff.
"""

from django_filters import CharFilter, ChoiceFilter, NumberFilter
from django_filters import rest_framework as filters

from services.parsing import split_list

from .models import TYPE_CHOICES, Listing


class ListingFilter(filters.FilterSet):
    """
    Filtering for tenant listings.

    status defaults to active in the view; pass status=all for every
    status or a comma list (status=draft,active).
    """

    status = CharFilter(
        method='filter_status',
        help_text='Comma-separated statuses, or "all"'
    )

    type = ChoiceFilter(choices=TYPE_CHOICES)

    city = CharFilter(
        field_name='city',
        lookup_expr='icontains',
        help_text='Filter by city name (partial match)'
    )

    min_price = NumberFilter(field_name='price', lookup_expr='gte')
    max_price = NumberFilter(field_name='price', lookup_expr='lte')

    bedrooms = NumberFilter(
        field_name='bedrooms',
        lookup_expr='gte',
        help_text='Minimum number of bedrooms'
    )

    has_coordinates = CharFilter(method='filter_has_coordinates')

    class Meta:
        model = Listing
        fields = ['status', 'type', 'city', 'property_type']

    def filter_status(self, queryset, name, value):
        if value == 'all':
            return queryset
        statuses = [status.lower() for status in split_list(value)]
        return queryset.filter(status__in=statuses) if statuses else queryset

    def filter_has_coordinates(self, queryset, name, value):
        if value.lower() in ('true', '1', 'yes'):
            return queryset.filter(lat__isnull=False, lng__isnull=False)
        if value.lower() in ('false', '0', 'no'):
            return queryset.missing_coordinates()
        return queryset
