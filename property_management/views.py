"""
API views for the property management module.

All routes live under /api/v1/pm/ and require:
- the tenant's property management feature flag (403 otherwise)
- role admin or agent in the request tenant (owners and superusers pass)

Lists are unpaginated and capped by the service layer (100 rows, 200 for
payments). Writes go through the tenant-bound services so ownership checks
and lease/unit/listing side effects happen in one place.
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from services.parsing import parse_int, split_list
from tenancy.permissions import (
    PROPERTY_MANAGEMENT_ROLES,
    HasTenantRole,
    PropertyManagementEnabled,
)
from tenancy.resolution import require_tenant

from .models import Lease, MaintenanceRequest, Payment, Property, PropertyDocument, TenantProfile, Unit
from .serializers import (
    DocumentUploadSerializer,
    LeaseRevisionSerializer,
    LeaseSerializer,
    LeaseTerminateSerializer,
    MaintenanceAssignSerializer,
    MaintenanceRequestSerializer,
    MaintenanceStatusSerializer,
    MarkPaidSerializer,
    PaymentSerializer,
    PropertyDocumentSerializer,
    PropertySerializer,
    TenantProfileSerializer,
    UnitSerializer,
    UnitStatusSerializer,
)
from .services import (
    DocumentService,
    LeaseService,
    MaintenanceService,
    PaymentService,
    PropertyService,
    TenantProfileService,
    UnitService,
)

logger = logging.getLogger(__name__)


def parse_choice_list(value, choices):
    """
    Parse 'open,in_progress' into ['OPEN', 'IN_PROGRESS'].

    Values are upper-cased; anything not in `choices` is dropped.
    """
    valid = {choice for choice, _label in choices}
    return [item.upper() for item in split_list(value) if item.upper() in valid]


# =============================================================================
# BASE VIEWSET
# =============================================================================

class PropertyManagementViewSet(viewsets.ModelViewSet):
    """
    Shared wiring for the property management resources.

    Subclasses set `model`, `serializer_class` and `service_class`, and
    implement `list_queryset()` to apply their query-string filters.
    """

    permission_classes = [HasTenantRole, PropertyManagementEnabled]
    allowed_roles = PROPERTY_MANAGEMENT_ROLES
    pagination_class = None
    filter_backends = []
    model = None
    service_class = None

    @property
    def tenant(self):
        return require_tenant(self.request)

    def get_service(self):
        return self.service_class(self.tenant)

    def get_queryset(self):
        return self.model.objects.filter(tenant=self.tenant)

    def list_queryset(self):
        raise NotImplementedError

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.list_queryset(), many=True)
        return Response(serializer.data)

    def perform_create(self, serializer):
        serializer.instance = self.get_service().create(dict(serializer.validated_data))

    def perform_update(self, serializer):
        serializer.instance = self.get_service().update(
            serializer.instance, dict(serializer.validated_data)
        )

    def perform_destroy(self, instance):
        self.get_service().delete(instance)


# =============================================================================
# PROPERTIES, UNITS, TENANT PROFILES
# =============================================================================

class PropertyViewSet(PropertyManagementViewSet):
    """
    GET /api/v1/pm/properties/?search=&city=
    """
    model = Property
    serializer_class = PropertySerializer
    service_class = PropertyService

    def list_queryset(self):
        params = self.request.query_params
        return self.get_service().list(search=params.get('search'), city=params.get('city'))


class UnitViewSet(PropertyManagementViewSet):
    """
    GET /api/v1/pm/units/?propertyId=<id>   (propertyId required)
    POST /api/v1/pm/units/<id>/status/      {"status": "MAINTENANCE"}
    """
    model = Unit
    serializer_class = UnitSerializer
    service_class = UnitService

    def get_queryset(self):
        return super().get_queryset().select_related('property')

    def list_queryset(self):
        params = self.request.query_params
        property_id = parse_int(params.get('propertyId') or params.get('property'))
        return self.get_service().list_by_property(property_id)

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        unit = self.get_object()
        serializer = UnitStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        unit = self.get_service().set_status(unit, serializer.validated_data['status'])
        return Response(UnitSerializer(unit).data)


class TenantProfileViewSet(PropertyManagementViewSet):
    """
    GET /api/v1/pm/tenant-profiles/?search=
    """
    model = TenantProfile
    serializer_class = TenantProfileSerializer
    service_class = TenantProfileService
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def list_queryset(self):
        return self.get_service().list(search=self.request.query_params.get('search'))


# =============================================================================
# LEASES
# =============================================================================

class LeaseViewSet(PropertyManagementViewSet):
    """
    GET  /api/v1/pm/leases/?status=ACTIVE&tenantProfileId=&unitId=
    POST /api/v1/pm/leases/                  {..., "generate_months": 12}
    POST /api/v1/pm/leases/<id>/terminate/   {"terminated_at": ..., "reason": ...}
    GET  /api/v1/pm/leases/<id>/revisions/
    """
    model = Lease
    serializer_class = LeaseSerializer
    service_class = LeaseService
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        return super().get_queryset().select_related('unit', 'unit__property', 'tenant_profile')

    def list_queryset(self):
        params = self.request.query_params
        return self.get_service().list(
            statuses=parse_choice_list(params.get('status'), Lease.STATUS_CHOICES),
            tenant_profile=parse_int(params.get('tenantProfileId') or params.get('tenant_profile')),
            unit=parse_int(params.get('unitId') or params.get('unit')),
        )

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        generate_months = data.pop('generate_months', 0) or 0
        data.pop('reason', None)
        serializer.instance = self.get_service().create(
            data, generate_months=generate_months, user=self.request.user
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        data.pop('generate_months', None)
        reason = data.pop('reason', '') or ''
        serializer.instance = self.get_service().update(
            serializer.instance, data, user=self.request.user, reason=reason
        )

    @action(detail=True, methods=['post'])
    def terminate(self, request, pk=None):
        lease = self.get_object()
        serializer = LeaseTerminateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lease = self.get_service().terminate(
            lease,
            terminated_at=serializer.validated_data.get('terminated_at'),
            user=request.user,
            reason=serializer.validated_data.get('reason', ''),
        )
        return Response(LeaseSerializer(lease).data)

    @action(detail=True, methods=['get'])
    def revisions(self, request, pk=None):
        lease = self.get_object()
        return Response(LeaseRevisionSerializer(lease.revisions.all(), many=True).data)


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentViewSet(PropertyManagementViewSet):
    """
    GET  /api/v1/pm/payments/?leaseId=&status=PENDING
    POST /api/v1/pm/payments/<id>/mark-paid/  {"amount": "950.00", "method": "card"}
    """
    model = Payment
    serializer_class = PaymentSerializer
    service_class = PaymentService
    http_method_names = ['get', 'post', 'head', 'options']

    def list_queryset(self):
        params = self.request.query_params
        return self.get_service().list(
            lease=parse_int(params.get('leaseId') or params.get('lease')),
            statuses=parse_choice_list(params.get('status'), Payment.STATUS_CHOICES),
        )

    @action(detail=True, methods=['post'], url_path='mark-paid')
    def mark_paid(self, request, pk=None):
        payment = self.get_object()
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = self.get_service().mark_paid(payment, **serializer.validated_data)
        return Response(PaymentSerializer(payment).data)


# =============================================================================
# MAINTENANCE
# =============================================================================

class MaintenanceRequestViewSet(PropertyManagementViewSet):
    """
    GET  /api/v1/pm/maintenance/?status=open,in_progress&priority=high,urgent
    POST /api/v1/pm/maintenance/<id>/assign/  {"assigned_to": 3, "scheduled_at": ...}
    POST /api/v1/pm/maintenance/<id>/status/  {"status": "RESOLVED"}
    """
    model = MaintenanceRequest
    serializer_class = MaintenanceRequestSerializer
    service_class = MaintenanceService
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def list_queryset(self):
        params = self.request.query_params
        return self.get_service().list(
            statuses=parse_choice_list(params.get('status'), MaintenanceRequest.STATUS_CHOICES),
            priorities=parse_choice_list(params.get('priority'), MaintenanceRequest.PRIORITY_CHOICES),
        )

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        ticket = self.get_object()
        serializer = MaintenanceAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = self.get_service().assign(
            ticket,
            serializer.validated_data['assigned_to'],
            scheduled_at=serializer.validated_data.get('scheduled_at'),
        )
        return Response(MaintenanceRequestSerializer(ticket).data)

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        ticket = self.get_object()
        serializer = MaintenanceStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = self.get_service().update_status(ticket, serializer.validated_data['status'])
        return Response(MaintenanceRequestSerializer(ticket).data, status=status.HTTP_200_OK)


# =============================================================================
# DOCUMENTS
# =============================================================================

class PropertyDocumentViewSet(PropertyManagementViewSet):
    """
    GET    /api/v1/pm/documents/?entity=lease&entityId=12
    POST   /api/v1/pm/documents/       multipart: entity, entity_id, file
    GET    /api/v1/pm/documents/<id>/
    DELETE /api/v1/pm/documents/<id>/

    Files are stored under property-management/<tenant>/<entity>/<id>/.
    The record named by entity and entity_id must belong to the agency.
    """
    model = PropertyDocument
    serializer_class = PropertyDocumentSerializer
    service_class = DocumentService
    parser_classes = [MultiPartParser, FormParser]
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def list_queryset(self):
        params = self.request.query_params
        return self.get_service().list(
            entity=params.get('entity'),
            entity_id=params.get('entityId') or params.get('entity_id'),
        )

    def create(self, request, *args, **kwargs):
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        document = self.get_service().upload(
            data['entity'], data['entity_id'], data['file'], user=request.user
        )
        return Response(PropertyDocumentSerializer(document).data, status=status.HTTP_201_CREATED)
