"""
Request rate limiting for the estate site.

Fixed-window counters kept in the Django cache, keyed by client and rule.
Rules come from settings.RATE_LIMITS and are matched by path prefix and
method class (read, write or any), first match wins.
"""

import logging
import time
from typing import Optional, Dict, Any

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse

logger = logging.getLogger(__name__)

READ_METHODS = {'GET', 'HEAD', 'OPTIONS'}


class RateLimitMiddleware:
    """
    Rate limiting middleware for the API and the public lead form.

    Anonymous clients are identified by IP (first X-Forwarded-For hop),
    signed-in users by user id.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if getattr(settings, 'RATE_LIMIT_ENABLED', True):
            rule = self._match_rule(request)
            if rule is not None and not self._check_rate_limit(request, rule):
                return JsonResponse(
                    {
                        'error': 'Too many requests',
                        'message': 'Too many requests. Please try again later.',
                        'retry_after': self._get_retry_after(request, rule),
                    },
                    status=429
                )

        return self.get_response(request)

    def _match_rule(self, request) -> Optional[Dict[str, Any]]:
        """Return the first configured rule covering this request."""
        is_read = request.method in READ_METHODS
        for rule in getattr(settings, 'RATE_LIMITS', []):
            if not request.path.startswith(rule['prefix']):
                continue
            methods = rule.get('methods', 'any')
            if methods == 'any' or (methods == 'read') == is_read:
                return rule
        return None

    def _cache_key(self, request, rule) -> str:
        user_id = self._get_user_identifier(request)
        window_start = int(time.time()) // rule['window']
        return f"rate_limit:{user_id}:{rule['prefix']}:{rule.get('methods', 'any')}:{window_start}"

    def _check_rate_limit(self, request, rule) -> bool:
        """Check if request is within rate limits."""
        cache_key = self._cache_key(request, rule)

        # add() is a no-op when the key already exists
        cache.add(cache_key, 0, rule['window'])
        try:
            current_count = cache.incr(cache_key)
        except ValueError:
            # Key expired between add() and incr()
            cache.set(cache_key, 1, rule['window'])
            current_count = 1

        if current_count > rule['requests']:
            logger.warning(
                f"Rate limit exceeded for {self._get_user_identifier(request)} on {rule['prefix']}"
            )
            return False
        return True

    def _get_user_identifier(self, request) -> str:
        """Get unique identifier for rate limiting."""
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            return f"user_{user.id}"

        return f"ip_{get_client_ip(request)}"

    def _get_retry_after(self, request, rule) -> int:
        """Seconds until the current window closes."""
        window = rule['window']
        return window - (int(time.time()) % window)


def get_client_ip(request) -> str:
    """Get real client IP address."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR', 'unknown')
