"""
Listing business logic.

- ListingService: tenant-scoped create/update/status/delete, geocoding on
  save, geocode backfill and conversion into a managed property
- ListingImportService: bulk CSV import with per-row error reporting
- Sitemap: per-tenant sitemap entries, cached under sitemap:<tenant slug>
- WhatsApp: click tracking and wa.me redirect URLs

Geocoding never blocks a save: a failed lookup is logged and the listing
is stored without coordinates.
"""

import csv
import io
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.urls import reverse

from property_management.models import Property, Unit
from services.geocoding import geocoding_service
from services.parsing import parse_decimal, parse_float, parse_int, split_list

from .models import (
    DEFAULT_CURRENCY,
    STATUS_ACTIVE,
    STATUS_DRAFT,
    STATUS_LET,
    STATUS_SOLD,
    STATUS_VALUES,
    TYPE_RENT,
    TYPE_VALUES,
    Listing,
    WhatsAppClick,
    build_media_key,
)

logger = logging.getLogger(__name__)

DEFAULT_WHATSAPP_MESSAGE = "Hi, I'm interested in this property"

ADDRESS_FIELDS = ('address_line1', 'city', 'postcode')


class SlugConflictError(Exception):
    """A listing with this slug already exists for the tenant."""

    def __init__(self, slug):
        self.slug = slug
        super().__init__(f'A listing with slug "{slug}" already exists')


class ImportFileError(Exception):
    """The uploaded CSV can't be imported at all (as opposed to a bad row)."""

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# LISTING SERVICE
# =============================================================================

class ListingService:

    def __init__(self, tenant):
        self.tenant = tenant

    def queryset(self):
        return Listing.objects.filter(tenant=self.tenant)

    def list(self, status: Optional[Iterable[str]] = None):
        """Tenant listings, newest first. Defaults to active; pass 'all' for every status."""
        queryset = self.queryset()
        if status is None:
            queryset = queryset.filter(status=STATUS_ACTIVE)
        elif status != 'all':
            statuses = [status] if isinstance(status, str) else list(status)
            queryset = queryset.filter(status__in=statuses)
        return queryset.order_by('-created_at', '-id')

    def get(self, pk):
        return get_object_or_404(self.queryset(), pk=pk)

    def get_public(self, slug):
        """Any non-draft listing, as shown on the public detail page."""
        return get_object_or_404(self.queryset().public(), slug=slug)

    def slug_exists(self, slug, exclude_pk=None) -> bool:
        queryset = self.queryset().filter(slug=slug)
        if exclude_pk:
            queryset = queryset.exclude(pk=exclude_pk)
        return queryset.exists()

    def _geocode_if_missing(self, listing: Listing):
        if listing.has_coordinates:
            return
        if not geocoding_service.geocode_listing(listing, save=False):
            logger.info(f"Listing {listing.slug} saved without coordinates")

    def create(self, data: Dict) -> Listing:
        slug = data.get('slug')
        if self.slug_exists(slug):
            raise SlugConflictError(slug)

        listing = Listing(tenant=self.tenant, **data)
        self._geocode_if_missing(listing)
        try:
            with transaction.atomic():
                listing.save()
        except IntegrityError:
            raise SlugConflictError(slug)

        invalidate_sitemap(self.tenant)
        logger.info(f"Created listing {listing.pk} ({listing.slug}) for {self.tenant.slug}")
        return listing

    def update(self, listing: Listing, data: Dict) -> Listing:
        slug = data.get('slug')
        if slug and slug != listing.slug and self.slug_exists(slug, exclude_pk=listing.pk):
            raise SlugConflictError(slug)

        address_changed = any(
            field in data and data[field] != getattr(listing, field) for field in ADDRESS_FIELDS
        )
        for field, value in data.items():
            setattr(listing, field, value)

        # New address without new coordinates: look the address up again
        if address_changed and 'lat' not in data and 'lng' not in data:
            listing.lat = None
            listing.lng = None
        self._geocode_if_missing(listing)

        try:
            with transaction.atomic():
                listing.save()
        except IntegrityError:
            raise SlugConflictError(slug)

        invalidate_sitemap(self.tenant)
        return listing

    def set_status(self, listing: Listing, status: str) -> Listing:
        if status not in STATUS_VALUES:
            raise ValidationError({'status': f'Invalid status: {status}'})
        if listing.status != status:
            listing.status = status
            listing.save(update_fields=['status', 'updated_at'])
            invalidate_sitemap(self.tenant)
        return listing

    def delete(self, listing: Listing):
        logger.info(f"Deleting listing {listing.pk} ({listing.slug}) for {self.tenant.slug}")
        listing.delete()
        invalidate_sitemap(self.tenant)

    # =========================================================================
    # MEDIA
    # =========================================================================

    def upload_media(self, listing: Listing, uploaded_file) -> Dict:
        """
        Store an image and append it to the listing's media.

        Returns the media item: {"key", "url", "width", "height", "alt"}.
        Dimensions are left for the client to fill in.
        """
        key = default_storage.save(build_media_key(self.tenant.slug, uploaded_file.name), uploaded_file)
        item = {
            'key': key,
            'url': default_storage.url(key),
            'width': None,
            'height': None,
            'alt': uploaded_file.name,
        }
        listing.media = list(listing.media or []) + [item]
        listing.save(update_fields=['media', 'updated_at'])
        logger.info(f"Stored image {key} for listing {listing.pk}")
        return item

    # =========================================================================
    # GEOCODING
    # =========================================================================

    def geocode_backfill(self, delay: float = 0) -> Dict:
        """Geocode every tenant listing missing lat or lng."""
        queryset = self.queryset().missing_coordinates().order_by('id')
        results = geocoding_service.batch_geocode_listings(queryset, delay=delay)
        return {
            'total': results['total'],
            'success': results['success'],
            'failed': results['failed'],
            'errors': results['errors'],
        }

    # =========================================================================
    # PROPERTY MANAGEMENT
    # =========================================================================

    @transaction.atomic
    def convert_to_property(self, listing: Listing, create_unit: bool = True) -> Tuple[Property, Optional[Unit]]:
        """
        Create a managed Property (and optionally its first Unit) from a listing.

        Raises:
            ValidationError: the listing is already linked to a property
        """
        if listing.property_id and Property.objects.filter(
                tenant=self.tenant, pk=listing.property_id).exists():
            raise ValidationError('This listing is already linked to a managed property')

        prop = Property.objects.create(
            tenant=self.tenant,
            name=listing.title,
            address_line1=listing.address_line1,
            city=listing.city,
            postcode=listing.postcode or '',
            lat=listing.lat,
            lng=listing.lng,
            description=listing.description,
        )

        unit = None
        if create_unit:
            is_flat = (listing.property_type or '').lower() in ('apartment', 'flat')
            unit = Unit.objects.create(
                tenant=self.tenant,
                property=prop,
                label='Unit 1' if is_flat else 'Main',
                bedrooms=listing.bedrooms,
                bathrooms=listing.bathrooms,
                status=(
                    Unit.STATUS_OCCUPIED if listing.status in (STATUS_LET, STATUS_SOLD)
                    else Unit.STATUS_VACANT
                ),
                rent_amount=listing.price if listing.type == TYPE_RENT else None,
            )

        listing.property = prop
        listing.save(update_fields=['property', 'updated_at'])
        logger.info(f"Converted listing {listing.pk} into property {prop.pk}")
        return prop, unit


# =============================================================================
# CSV IMPORT
# =============================================================================

class ListingImportService:
    """
    Import listings from a CSV file.

    Columns use the camelCase export names (addressLine1, propertyType);
    snake_case equivalents are accepted. Each row is created in its own
    savepoint so one bad row never rolls back the others.
    """

    REQUIRED_COLUMNS = ['title', 'slug', 'type', 'price', 'addressLine1', 'city', 'description']

    COLUMN_ALIASES = {
        'address_line1': 'addressLine1',
        'address_line_1': 'addressLine1',
        'property_type': 'propertyType',
    }

    def __init__(self, tenant, geocode: bool = True):
        self.tenant = tenant
        self.geocode = geocode

    def _normalise_header(self, header: str) -> str:
        header = (header or '').strip().lstrip('\ufeff')
        return self.COLUMN_ALIASES.get(header, self.COLUMN_ALIASES.get(header.lower(), header))

    def read_rows(self, uploaded) -> Tuple[List[str], List[Dict]]:
        """Accepts an uploaded file, a file object, bytes or text."""
        raw = uploaded.read() if hasattr(uploaded, 'read') else uploaded
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8-sig')
            except UnicodeDecodeError:
                raise ImportFileError('File must be UTF-8 encoded CSV')

        reader = csv.DictReader(io.StringIO(raw))
        headers = [self._normalise_header(header) for header in (reader.fieldnames or [])]
        reader.fieldnames = headers

        rows = []
        for row in reader:
            cleaned = {key: (value or '').strip() for key, value in row.items() if key}
            if any(cleaned.values()):
                rows.append(cleaned)
        return headers, rows

    def import_file(self, uploaded) -> Dict:
        headers, rows = self.read_rows(uploaded)
        if not rows:
            raise ImportFileError('CSV file is empty')

        missing = [column for column in self.REQUIRED_COLUMNS if column not in headers]
        if missing:
            raise ImportFileError(
                f"Missing required columns: {', '.join(missing)}",
                {'requiredColumns': self.REQUIRED_COLUMNS, 'foundColumns': headers},
            )

        return self.import_rows(rows)

    def import_rows(self, rows: List[Dict]) -> Dict:
        results = {'success': 0, 'skipped': 0, 'errors': []}

        for index, row in enumerate(rows):
            row_number = index + 2  # header is row 1
            try:
                data = self.build_listing_data(row)
                if self.slug_taken(data['slug']):
                    raise ValueError(f'Slug "{data["slug"]}" already exists')

                listing = Listing(tenant=self.tenant, **data)
                if self.geocode and not listing.has_coordinates:
                    geocoding_service.geocode_listing(listing, save=False)

                with transaction.atomic():
                    listing.save()
                results['success'] += 1

            except (ValueError, IntegrityError) as e:
                results['errors'].append({'row': row_number, 'error': str(e), 'data': row})
                results['skipped'] += 1

        results['message'] = (
            f"Import completed: {results['success']} successful, {results['skipped']} skipped"
        )
        logger.info(f"Listing import for {self.tenant.slug}: {results['message']}")
        if results['success']:
            invalidate_sitemap(self.tenant)
        return results

    def slug_taken(self, slug) -> bool:
        return Listing.objects.filter(tenant=self.tenant, slug=slug).exists()

    def build_listing_data(self, row: Dict) -> Dict:
        """Validate one CSV row; raises ValueError describing the first problem."""
        if any(not row.get(column) for column in self.REQUIRED_COLUMNS):
            raise ValueError('Missing required fields')

        price = parse_decimal(row['price'])
        if price is None or price <= 0:
            raise ValueError(f"Invalid price: {row['price']}")

        bedrooms = self._parse_count(row, 'bedrooms')
        bathrooms = self._parse_count(row, 'bathrooms')

        status = (row.get('status') or STATUS_DRAFT).lower()
        if status not in STATUS_VALUES:
            raise ValueError(f"Invalid status: {row.get('status')}")

        listing_type = row['type'].lower()
        if listing_type not in TYPE_VALUES:
            raise ValueError(f"Invalid type: {row['type']}")

        slug = row['slug'].strip().lower()
        if not re.fullmatch(r'[-a-z0-9_]+', slug):
            raise ValueError(f"Invalid slug: {row['slug']}")

        data = {
            'title': row['title'],
            'slug': slug,
            'status': status,
            'type': listing_type,
            'price': price,
            'currency': (row.get('currency') or DEFAULT_CURRENCY).upper()[:3],
            'bedrooms': bedrooms,
            'bathrooms': bathrooms,
            'property_type': (row.get('propertyType') or '').lower(),
            'address_line1': row['addressLine1'],
            'city': row['city'],
            'postcode': row.get('postcode') or '',
            'description': row['description'],
            'features': split_list(row.get('features')),
            'media': [],
        }

        lat = parse_float(row.get('lat'))
        lng = parse_float(row.get('lng'))
        if lat is not None and lng is not None:
            listing = Listing()
            listing.set_coordinates(lat, lng)
            data['lat'], data['lng'] = listing.lat, listing.lng

        return data

    def _parse_count(self, row: Dict, column: str) -> Optional[int]:
        raw = row.get(column)
        if not raw:
            return None
        value = parse_int(raw)
        if value is None or value < 0:
            raise ValueError(f"Invalid {column}: {raw}")
        return value


# =============================================================================
# SITEMAP
# =============================================================================

def sitemap_cache_key(tenant) -> str:
    return f"sitemap:{tenant.slug}"


def build_sitemap_entries(tenant, base_url: Optional[str] = None) -> List[Dict]:
    """
    Sitemap entries for one tenant's public site.

    Home (daily, 1.0), search (hourly, 0.8) and each active listing
    (weekly, 0.6, lastmod = updated_at).
    """
    base_url = (base_url or settings.APP_URL).rstrip('/')
    entries = [
        {
            'loc': f"{base_url}{reverse('public:home')}",
            'changefreq': 'daily',
            'priority': '1.0',
            'lastmod': None,
        },
        {
            'loc': f"{base_url}{reverse('public:search')}",
            'changefreq': 'hourly',
            'priority': '0.8',
            'lastmod': None,
        },
    ]

    listings = Listing.objects.filter(tenant=tenant, status=STATUS_ACTIVE).order_by('-updated_at')
    for listing in listings.only('slug', 'updated_at'):
        entries.append({
            'loc': f"{base_url}{listing.get_absolute_url()}",
            'changefreq': 'weekly',
            'priority': '0.6',
            'lastmod': listing.updated_at,
        })
    return entries


def rebuild_sitemap(tenant) -> List[Dict]:
    entries = build_sitemap_entries(tenant)
    cache.set(sitemap_cache_key(tenant), entries, settings.SITEMAP_CACHE_TIMEOUT)
    return entries


def get_sitemap_entries(tenant) -> List[Dict]:
    entries = cache.get(sitemap_cache_key(tenant))
    if entries is None:
        entries = rebuild_sitemap(tenant)
    return entries


def invalidate_sitemap(tenant):
    cache.delete(sitemap_cache_key(tenant))


# =============================================================================
# WHATSAPP
# =============================================================================

def build_whatsapp_url(number: str, message: Optional[str] = None) -> str:
    digits = re.sub(r'\D', '', number or '')
    text = message or DEFAULT_WHATSAPP_MESSAGE
    return f"https://wa.me/{digits}?text={quote(text, safe='')}"


def record_whatsapp_click(tenant, listing=None, ip_address: str = 'unknown',
                          user_agent: str = 'unknown') -> WhatsAppClick:
    return WhatsAppClick.objects.create(
        tenant=tenant,
        listing=listing,
        ip_address=(ip_address or 'unknown')[:64],
        user_agent=user_agent or 'unknown',
    )
