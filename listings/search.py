"""
Public listing search.

Filters are parsed leniently from query parameters into an immutable
SearchFilters; unparseable values are dropped rather than rejected. The
one exception is the pagination cursor, which must round-trip exactly and
raises ValidationError when it cannot be decoded.

Results are ordered newest first (created_at desc, id desc) and paginated
with a keyset cursor: an opaque url-safe base64 token of
"<created_at iso>,<id>" for the last row returned.

Radius search prefilters a lat/lng bounding box in the database, then
checks the great-circle (haversine) distance in Python. Feature matching
also happens in Python so it works on every database backend.
"""

import base64
import binascii
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db.models import Q

from services.parsing import parse_decimal, parse_float, parse_int, split_list

from .models import STATUS_ACTIVE, STATUS_DRAFT, STATUS_VALUES, TYPE_VALUES, Listing

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
EARTH_RADIUS_KM = 6371
KM_PER_DEGREE = 111


# =============================================================================
# FILTERS
# =============================================================================

@dataclass(frozen=True)
class SearchFilters:
    status: Tuple[str, ...] = (STATUS_ACTIVE,)
    types: Tuple[str, ...] = ()
    property_types: Tuple[str, ...] = ()
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    bedrooms: Optional[int] = None
    city: str = ""
    keywords: str = ""
    features: Tuple[str, ...] = ()
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[float] = None
    cursor: str = ""
    limit: int = DEFAULT_LIMIT

    @property
    def has_geo(self) -> bool:
        return self.lat is not None and self.lng is not None and self.radius is not None

    @property
    def is_filtered(self) -> bool:
        return any([
            self.status != (STATUS_ACTIVE,),
            self.types,
            self.property_types,
            self.min_price is not None,
            self.max_price is not None,
            self.bedrooms is not None,
            self.city,
            self.keywords,
            self.features,
            self.has_geo,
        ])


def _get_list(data, key) -> List[str]:
    if hasattr(data, "getlist"):
        raw_values = data.getlist(key)
    else:
        raw = data.get(key)
        raw_values = raw if isinstance(raw, (list, tuple)) else [raw]
    values = []
    for raw in raw_values:
        values.extend(split_list(raw))
    return values


def build_filters(data, public: bool = True) -> SearchFilters:
    """
    Build SearchFilters from a QueryDict or plain dict.

    Accepts comma lists or repeated keys for status, type, property_type
    and features. With public=True, draft listings can never be requested.
    """
    data = data or {}

    statuses = [value.lower() for value in _get_list(data, "status")]
    statuses = [value for value in statuses if value in STATUS_VALUES]
    if public:
        statuses = [value for value in statuses if value != STATUS_DRAFT]

    types = [value.lower() for value in _get_list(data, "type")]
    types = [value for value in types if value in TYPE_VALUES]

    min_price = parse_decimal(data.get("min_price"))
    max_price = parse_decimal(data.get("max_price"))
    bedrooms = parse_int(data.get("bedrooms"))

    lat = parse_float(data.get("lat"))
    lng = parse_float(data.get("lng"))
    radius = parse_float(data.get("radius"))
    if lat is not None and not -90 <= lat <= 90:
        lat = None
    if lng is not None and not -180 <= lng <= 180:
        lng = None
    if radius is not None and radius <= 0:
        radius = None

    limit = parse_int(data.get("limit")) or DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))

    return SearchFilters(
        status=tuple(statuses) or (STATUS_ACTIVE,),
        types=tuple(types),
        property_types=tuple(value.lower() for value in _get_list(data, "property_type")),
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms if bedrooms is not None and bedrooms >= 0 else None,
        city=(data.get("city") or "").strip(),
        keywords=(data.get("keywords") or data.get("q") or "").strip(),
        features=tuple(value.lower() for value in _get_list(data, "features")),
        lat=lat,
        lng=lng,
        radius=radius,
        cursor=(data.get("cursor") or "").strip(),
        limit=limit,
    )


# =============================================================================
# CURSOR & DISTANCE
# =============================================================================

def encode_cursor(listing: Listing) -> str:
    raw = f"{listing.created_at.isoformat()},{listing.pk}"
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def decode_cursor(cursor: str) -> Tuple[datetime, int]:
    """Inverse of encode_cursor; raises ValidationError for anything else."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
        created_at, listing_id = raw.rsplit(",", 1)
        return datetime.fromisoformat(created_at), int(listing_id)
    except (ValueError, UnicodeDecodeError, binascii.Error):
        raise ValidationError({"cursor": "Invalid cursor"})


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lng: float, radius_km: float) -> Tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lng, max_lng) enclosing the search circle."""
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    lng_delta = radius_km / (KM_PER_DEGREE * cos_lat) if abs(cos_lat) > 1e-6 else 180
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta


# =============================================================================
# SEARCH SERVICE
# =============================================================================

@dataclass
class SearchResult:
    listings: List[Listing] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class ListingSearchService:
    """Tenant-scoped keyset search over listings."""

    def build_queryset(self, tenant, filters: SearchFilters):
        queryset = Listing.objects.filter(tenant=tenant, status__in=filters.status)

        if filters.types:
            queryset = queryset.filter(type__in=filters.types)
        if filters.property_types:
            queryset = queryset.filter(property_type__in=filters.property_types)
        if filters.min_price is not None:
            queryset = queryset.filter(price__gte=filters.min_price)
        if filters.max_price is not None:
            queryset = queryset.filter(price__lte=filters.max_price)
        if filters.bedrooms is not None:
            queryset = queryset.filter(bedrooms__gte=filters.bedrooms)
        if filters.keywords:
            queryset = queryset.filter(
                Q(title__icontains=filters.keywords) |
                Q(description__icontains=filters.keywords) |
                Q(address_line1__icontains=filters.keywords)
            )

        if filters.has_geo:
            min_lat, max_lat, min_lng, max_lng = bounding_box(
                filters.lat, filters.lng, filters.radius
            )
            queryset = queryset.filter(
                lat__isnull=False,
                lng__isnull=False,
                lat__gte=Decimal(str(min_lat)),
                lat__lte=Decimal(str(max_lat)),
                lng__gte=Decimal(str(min_lng)),
                lng__lte=Decimal(str(max_lng)),
            )
        elif filters.city:
            queryset = queryset.filter(city__icontains=filters.city)

        if filters.cursor:
            created_at, listing_id = decode_cursor(filters.cursor)
            queryset = queryset.filter(
                Q(created_at__lt=created_at) |
                Q(created_at=created_at, id__lt=listing_id)
            )

        return queryset.order_by("-created_at", "-id")

    def matches(self, listing: Listing, filters: SearchFilters) -> bool:
        """Checks that can't be expressed portably in SQL."""
        if filters.features:
            listing_features = {str(item).lower() for item in (listing.features or [])}
            if not listing_features.intersection(filters.features):
                return False
        if filters.has_geo:
            if not listing.has_coordinates:
                return False
            distance = haversine_km(
                filters.lat, filters.lng, float(listing.lat), float(listing.lng)
            )
            if distance > filters.radius:
                return False
        return True

    def search(self, tenant, filters: SearchFilters) -> SearchResult:
        queryset = self.build_queryset(tenant, filters)

        # One extra match tells us whether another page exists
        wanted = filters.limit + 1
        matched = []
        needs_python_filter = bool(filters.features) or filters.has_geo
        if needs_python_filter:
            for listing in queryset.iterator(chunk_size=200):
                if self.matches(listing, filters):
                    matched.append(listing)
                    if len(matched) >= wanted:
                        break
        else:
            matched = list(queryset[:wanted])

        has_more = len(matched) > filters.limit
        listings = matched[:filters.limit]
        next_cursor = encode_cursor(listings[-1]) if has_more and listings else None

        logger.debug(
            f"Search for tenant {getattr(tenant, 'slug', None)} returned {len(listings)} "
            f"listings (has_more={has_more})"
        )
        return SearchResult(listings=listings, next_cursor=next_cursor, has_more=has_more)


# Singleton instance
search_service = ListingSearchService()
