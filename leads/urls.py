"""
URL configuration for the leads API.

Included by the project URLs at /api/v1/, giving:

/api/v1/leads/                -> LeadViewSet (POST is public)
/api/v1/leads/{id}/           -> retrieve, update, delete
/api/v1/leads/export/         -> CSV download
/api/v1/leads/metrics/        -> counters for the dashboard
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import LeadViewSet

router = DefaultRouter()
router.register(r'leads', LeadViewSet, basename='lead')

urlpatterns = [
    path('', include(router.urls)),
]
