"""
API views for listings.

GET  /api/v1/listings/                    tenant listings (default active)
GET  /api/v1/listings/search/             public keyset search
POST /api/v1/listings/                    create (owner, admin, agent)
POST /api/v1/listings/{id}/status/        change status
POST /api/v1/listings/import/             CSV import
POST /api/v1/listings/geocode-backfill/   geocode listings missing lat/lng
POST /api/v1/listings/{id}/media/         image upload (owner, admin, agent)
POST /api/v1/listings/{id}/convert-to-property/

Reads are public; anonymous callers never see drafts. A slug clash on
create/update answers 409, and an unusable CSV answers 400 with the
column details.
"""

import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from property_management.serializers import PropertySerializer, UnitSerializer
from tenancy.features import is_property_management_enabled
from tenancy.permissions import (
    ALL_ROLES,
    MANAGER_ROLES,
    PROPERTY_MANAGEMENT_ROLES,
    HasTenantRole,
    user_has_role,
)
from tenancy.resolution import require_tenant

from .filters import ListingFilter
from .models import STATUS_ACTIVE, Listing
from .search import build_filters, search_service
from .serializers import (
    ConvertToPropertySerializer,
    ListingDetailSerializer,
    ListingImportSerializer,
    ListingListSerializer,
    ListingMediaUploadSerializer,
    ListingStatusSerializer,
    ListingWriteSerializer,
)
from .services import ImportFileError, ListingImportService, ListingService, SlugConflictError

logger = logging.getLogger(__name__)


class ListingViewSet(viewsets.ModelViewSet):
    """
    API endpoint for tenant listings.

    Supports:
    - List with filtering (status, type, city, price range, bedrooms)
    - Search by title, city, postcode
    - Ordering by price or created_at
    - Public cursor search (search action)
    - Back-office actions: status, import, geocode backfill, convert
    """

    permission_classes = [HasTenantRole]
    allowed_roles = ALL_ROLES
    action_roles = {
        'list': None,
        'retrieve': None,
        'search': None,
        'destroy': MANAGER_ROLES,
        'convert_to_property': PROPERTY_MANAGEMENT_ROLES,
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = ListingFilter
    search_fields = ['title', 'city', 'postcode']
    ordering_fields = ['price', 'created_at', 'bedrooms']
    ordering = ['-created_at', '-id']
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    @property
    def tenant(self):
        return require_tenant(self.request)

    def get_service(self):
        return ListingService(self.tenant)

    def is_member(self):
        return user_has_role(self.request.user, self.tenant, ALL_ROLES)

    def get_queryset(self):
        queryset = Listing.objects.for_tenant(self.tenant)
        if not self.is_member():
            queryset = queryset.public()
        # status=all (or any explicit status) is handled by ListingFilter
        if self.action == 'list' and 'status' not in self.request.query_params:
            queryset = queryset.filter(status=STATUS_ACTIVE)
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return ListingListSerializer
        if self.action in ('create', 'update', 'partial_update'):
            return ListingWriteSerializer
        return ListingDetailSerializer

    def create(self, request, *args, **kwargs):
        serializer = ListingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            listing = self.get_service().create(dict(serializer.validated_data))
        except SlugConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(ListingDetailSerializer(listing).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        listing = self.get_object()
        serializer = ListingWriteSerializer(listing, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        try:
            listing = self.get_service().update(listing, dict(serializer.validated_data))
        except SlugConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(ListingDetailSerializer(listing).data)

    def perform_destroy(self, instance):
        self.get_service().delete(instance)

    # =========================================================================
    # PUBLIC SEARCH
    # =========================================================================

    @action(detail=False, methods=['get'])
    def search(self, request):
        """
        Keyset search over the tenant's public listings.

        GET /api/v1/listings/search/?type=rent&min_price=500&lat=51.5&lng=-0.12&radius=5

        Returns {results, next_cursor, has_more}. A cursor that can't be
        decoded answers 400.
        """
        search_filters = build_filters(request.query_params, public=True)
        result = search_service.search(self.tenant, search_filters)
        return Response({
            'results': ListingListSerializer(result.listings, many=True).data,
            'next_cursor': result.next_cursor,
            'has_more': result.has_more,
        })

    # =========================================================================
    # BACK-OFFICE ACTIONS
    # =========================================================================

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        listing = self.get_object()
        serializer = ListingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        listing = self.get_service().set_status(listing, serializer.validated_data['status'])
        return Response(ListingDetailSerializer(listing).data)

    @action(detail=False, methods=['post'], url_path='import')
    def import_csv(self, request):
        """
        Import listings from an uploaded CSV.

        POST /api/v1/listings/import/ (multipart, field "file")

        Response:
        {
            "success": 12,
            "skipped": 1,
            "errors": [{"row": 5, "error": "Invalid price: abc", "data": {...}}],
            "message": "Import completed: 12 successful, 1 skipped"
        }
        """
        serializer = ListingImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            results = ListingImportService(self.tenant).import_file(
                serializer.validated_data['file']
            )
        except ImportFileError as e:
            logger.warning(f"Listing import rejected for {self.tenant.slug}: {e.message}")
            return Response(
                {'error': e.message, **e.details},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response(results)

    @action(detail=False, methods=['post'], url_path='geocode-backfill')
    def geocode_backfill(self, request):
        results = self.get_service().geocode_backfill()
        return Response(results)

    @action(detail=True, methods=['post'], url_path='media')
    def upload_media(self, request, pk=None):
        """
        Upload an image and append it to the listing's media.

        POST /api/v1/listings/{id}/media/ (multipart, field "file")

        Images only, 10MB at most. Response: {"media": {...}, "listing": {...}}
        """
        listing = self.get_object()
        serializer = ListingMediaUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = self.get_service().upload_media(listing, serializer.validated_data['file'])
        return Response(
            {'media': item, 'listing': ListingDetailSerializer(listing).data},
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'], url_path='convert-to-property')
    def convert_to_property(self, request, pk=None):
        if not is_property_management_enabled(self.tenant):
            raise PermissionDenied('Property management not enabled')

        listing = self.get_object()
        serializer = ConvertToPropertySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        prop, unit = self.get_service().convert_to_property(
            listing, create_unit=serializer.validated_data['create_unit']
        )
        return Response(
            {
                'property': PropertySerializer(prop).data,
                'unit': UnitSerializer(unit).data if unit else None,
            },
            status=status.HTTP_201_CREATED
        )
