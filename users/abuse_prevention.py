"""
Cache-backed rate limiting for unauthenticated entry points
(wallet nonce requests, wallet connection, bank officer login).
"""
from datetime import timedelta
from typing import Optional, Tuple
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


class AbusePreventionService:

    @classmethod
    def get_limits(cls, action: str) -> Optional[dict]:
        return getattr(settings, 'RATE_LIMITS', {}).get(action)

    @classmethod
    def check_rate_limit(cls, identifier: str, action: str) -> Tuple[bool, Optional[int]]:
        """
        Check if an identifier (user id or client IP) exceeded the limit for an action
        Returns: (is_allowed, seconds_until_reset)
        """
        limits = cls.get_limits(action)
        if not limits:
            return True, None

        cache_key = f"rate_limit:{action}:{identifier}"
        current_data = cache.get(cache_key, {'count': 0, 'window_start': timezone.now()})

        window_start = current_data['window_start']
        if timezone.now() - window_start > timedelta(seconds=limits['window']):
            current_data = {'count': 0, 'window_start': timezone.now()}
            window_start = current_data['window_start']

        if current_data['count'] >= limits['max_attempts']:
            seconds_until_reset = limits['window'] - (timezone.now() - window_start).total_seconds()
            logger.warning(f"Rate limit hit for {action} by {identifier}")
            return False, max(int(seconds_until_reset), 1)

        current_data['count'] += 1
        cache.set(cache_key, current_data, limits['window'])
        return True, None


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR') if hasattr(request, 'META') else None
    if forwarded:
        return forwarded.split(',')[0].strip()
    return getattr(request, 'META', {}).get('REMOTE_ADDR', 'unknown')
