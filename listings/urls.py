"""
URL configuration for the listings API.

Included by the project URLs at /api/v1/, giving:

/api/v1/listings/                              -> ListingViewSet
/api/v1/listings/search/                       -> public cursor search
/api/v1/listings/import/                       -> CSV import (POST)
/api/v1/listings/geocode-backfill/             -> geocode missing coordinates (POST)
/api/v1/listings/{id}/status/                  -> status change (POST)
/api/v1/listings/{id}/convert-to-property/     -> create managed property (POST)
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ListingViewSet

router = DefaultRouter()
router.register(r'listings', ListingViewSet, basename='listing')

urlpatterns = [
    path('', include(router.urls)),
]
