"""
API views for leads.

POST   /api/v1/leads/           public enquiry (rate limited, bot verified)
GET    /api/v1/leads/           tenant leads (owner, admin, agent)
PATCH  /api/v1/leads/{id}/      status, notes, assigned_to
DELETE /api/v1/leads/{id}/      owner or admin
GET    /api/v1/leads/export/    CSV download
GET    /api/v1/leads/metrics/   dashboard counters
"""

import logging

from django.http import HttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from estate_site.middleware import get_client_ip
from tenancy.permissions import ALL_ROLES, MANAGER_ROLES, HasTenantRole
from tenancy.resolution import require_tenant

from .serializers import LeadCreateSerializer, LeadSerializer, LeadUpdateSerializer
from .services import EXPORT_FILENAME, LeadService

logger = logging.getLogger(__name__)


class LeadViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    """
    API endpoint for leads.

    Filtering: ?status=new&listing=12&search=jane
    """

    serializer_class = LeadSerializer
    permission_classes = [HasTenantRole]
    allowed_roles = ALL_ROLES
    action_roles = {
        'create': None,
        'destroy': MANAGER_ROLES,
    }
    filter_backends = []

    @property
    def tenant(self):
        return require_tenant(self.request)

    def get_service(self):
        return LeadService(self.tenant)

    def get_queryset(self):
        if self.action == 'list':
            params = self.request.query_params
            return self.get_service().list(
                status=params.get('status'),
                listing_id=params.get('listing'),
                search=params.get('search'),
            )
        return self.get_service().queryset()

    def create(self, request):
        serializer = LeadCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        token = data.pop('turnstile_token', None)

        lead = self.get_service().create(data, turnstile_token=token, remote_ip=get_client_ip(request))
        return Response(LeadSerializer(lead).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        lead = self.get_object()
        serializer = LeadUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        lead = self.get_service().update(lead, dict(serializer.validated_data))
        return Response(LeadSerializer(lead).data)

    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    def perform_destroy(self, instance):
        self.get_service().delete(instance)

    @action(detail=False, methods=['get'])
    def export(self, request):
        """Download every lead as CSV."""
        content = self.get_service().export_csv()
        response = HttpResponse(content, content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{EXPORT_FILENAME}"'
        return response

    @action(detail=False, methods=['get'])
    def metrics(self, request):
        return Response(self.get_service().metrics())
