# services/geocoding.py
"""
Google Maps Geocoding and Places Service for the estate site.
Converts listing addresses to lat/lng coordinates and proxies address
autocomplete so the server key never reaches the browser.
"""

import hashlib
import logging
import time
from typing import Dict, List, Optional, Tuple

import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

GEOCODE_CACHE_TIMEOUT = 60 * 60  # 1 hour
AUTOCOMPLETE_CACHE_TIMEOUT = 60 * 5  # 5 minutes


class GeocodingError(Exception):
    """Raised by the strict geocoding path when an address cannot be resolved."""


def places_cache_key(kind: str, text: str) -> str:
    """Cache key for a lookup, built from the hash of the normalised text."""
    digest = hashlib.md5(text.strip().lower().encode("utf-8")).hexdigest()
    return f"places:{kind}:{digest}"


class GeocodingService:
    """
    Service for geocoding addresses using Google Maps Geocoding API.
    Handles rate limiting, error handling, caching and coordinate extraction.
    """

    base_url = "https://maps.googleapis.com/maps/api"

    def __init__(self):
        self.rate_limit_delay = 0.2  # 200ms between requests (5 per second max)

    @property
    def api_key(self) -> str:
        return getattr(settings, 'GOOGLE_MAPS_API_KEY', '') or ''

    def geocode_address(self, address: str) -> Optional[Tuple[float, float]]:
        """
        Geocode a single address and return (latitude, longitude).

        Args:
            address: Full address string (e.g., "10 Downing St, London, SW1A 2AA")

        Returns:
            Tuple of (latitude, longitude) or None if geocoding fails
        """
        try:
            return self.geocode_or_raise(address)
        except GeocodingError as e:
            logger.warning(f"Geocoding failed for '{address}': {e}")
            return None

    def geocode_or_raise(self, address: str) -> Tuple[float, float]:
        """Like geocode_address() but raises GeocodingError with the reason."""
        if not self.api_key:
            raise GeocodingError("GOOGLE_MAPS_API_KEY not configured")

        if not address or not address.strip():
            raise GeocodingError("Empty address provided")

        cache_key = places_cache_key("geocode", address)
        cached = cache.get(cache_key)
        if cached:
            return tuple(cached)

        try:
            params = {
                'address': address,
                'key': self.api_key
            }

            response = requests.get(f"{self.base_url}/geocode/json", params=params, timeout=10)
            response.raise_for_status()

            data = response.json()
            status = data.get('status')

            if status == 'OK' and len(data.get('results', [])) > 0:
                location = data['results'][0]['geometry']['location']
                lat = float(location['lat'])
                lng = float(location['lng'])

                cache.set(cache_key, [lat, lng], GEOCODE_CACHE_TIMEOUT)
                logger.info(f"Successfully geocoded: {address} -> ({lat}, {lng})")
                return (lat, lng)

            if status == 'ZERO_RESULTS':
                raise GeocodingError("No results found for address")

            if status == 'OVER_QUERY_LIMIT':
                logger.error("Google Maps API query limit exceeded")
                raise GeocodingError("Geocoding query limit exceeded")

            raise GeocodingError(f"Geocoding failed with status: {status}")

        except requests.RequestException as e:
            logger.error(f"Network error during geocoding: {str(e)}")
            raise GeocodingError(f"Network error: {str(e)}") from e

        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Error parsing geocoding response: {str(e)}")
            raise GeocodingError("Invalid geocoding response") from e

    def geocode_listing(self, listing, save: bool = True) -> bool:
        """
        Geocode a Listing instance and update its lat/lng fields.

        Returns:
            True if the listing has coordinates afterwards, False otherwise
        """
        try:
            self.geocode_listing_or_raise(listing, save=save)
        except GeocodingError as e:
            logger.warning(f"Could not geocode listing {listing.pk or listing.slug}: {e}")
            return False
        return True

    def geocode_listing_or_raise(self, listing, save: bool = True) -> None:
        if listing.has_coordinates:
            return

        address = listing.get_full_address()
        if not address:
            raise GeocodingError("No address information")

        latitude, longitude = self.geocode_or_raise(address)
        listing.set_coordinates(latitude, longitude)
        if save and listing.pk:
            listing.save(update_fields=['lat', 'lng', 'updated_at'])
        logger.info(f"Updated coordinates for listing {listing.slug}")

    def batch_geocode_listings(self, queryset, delay: float = None) -> Dict:
        """
        Geocode multiple listings with rate limiting.

        Args:
            queryset: QuerySet of Listing objects to geocode
            delay: Optional custom delay between requests (seconds)

        Returns:
            {'total', 'success', 'skipped', 'failed', 'errors': [{'id', 'error'}]}
        """
        if delay is None:
            delay = self.rate_limit_delay

        results = {
            'total': queryset.count(),
            'success': 0,
            'skipped': 0,
            'failed': 0,
            'errors': []
        }

        logger.info(f"Starting batch geocoding of {results['total']} listings")

        for listing in queryset:
            if listing.has_coordinates:
                results['skipped'] += 1
                continue

            try:
                self.geocode_listing_or_raise(listing)
                results['success'] += 1
            except GeocodingError as e:
                results['failed'] += 1
                results['errors'].append({'id': listing.id, 'error': str(e)})

            if delay > 0:
                time.sleep(delay)

        logger.info(
            f"Batch geocoding complete: {results['success']} success, "
            f"{results['skipped']} skipped, {results['failed']} failed"
        )

        return results

    def autocomplete(self, text: str, session_token: Optional[str] = None) -> List[Dict]:
        """
        Place autocomplete predictions for an address fragment.

        Raises GeocodingError on API failures so the proxy endpoint can
        report them; ZERO_RESULTS is an empty list.
        """
        if not self.api_key:
            raise GeocodingError("GOOGLE_MAPS_API_KEY not configured")

        text = (text or '').strip()
        if not text:
            return []

        cache_key = places_cache_key("autocomplete", text)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        params = {'input': text, 'key': self.api_key}
        if session_token:
            params['sessiontoken'] = session_token

        try:
            response = requests.get(f"{self.base_url}/place/autocomplete/json", params=params, timeout=10)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Network error during autocomplete: {str(e)}")
            raise GeocodingError(f"Network error: {str(e)}") from e

        status = data.get('status')
        if status not in ('OK', 'ZERO_RESULTS'):
            raise GeocodingError(f"Places API error: {status}")

        predictions = [
            {
                'place_id': prediction.get('place_id'),
                'description': prediction.get('description'),
            }
            for prediction in data.get('predictions', [])
        ]
        cache.set(cache_key, predictions, AUTOCOMPLETE_CACHE_TIMEOUT)
        return predictions


# Singleton instance
geocoding_service = GeocodingService()


def geocode_address(address: str) -> Optional[Tuple[float, float]]:
    """
    Standalone function that uses the singleton geocoding service.

    Args:
        address: Full address string

    Returns:
        Tuple of (latitude, longitude) or None if geocoding fails
    """
    return geocoding_service.geocode_address(address)
