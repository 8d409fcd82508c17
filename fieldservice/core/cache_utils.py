"""
Caching utilities for expensive dashboard and report queries
Uses Redis (django-redis) when configured
"""
from django.conf import settings
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

DASHBOARD_PREFIX = 'dashboard_kpis'
REPORTS_PREFIX = 'reports'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def _uses_redis():
    backend = settings.CACHES.get('default', {}).get('BACKEND', '')
    return backend.startswith('django_redis')


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Uses Redis SCAN; other cache backends are cleared entirely
    """
    if not _uses_redis():
        cache.clear()
        logger.debug(f"Cleared local cache for pattern: {pattern}")
        return

    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def get_cached_dashboard_kpis(period, date_from, date_to, engineer=None, include_billing=True):
    """Get cached dashboard KPIs. Returns tuple: (cached_data, cache_key)"""
    cache_key = make_cache_key(DASHBOARD_PREFIX, period, str(date_from), str(date_to), engineer, include_billing)
    return cache.get(cache_key), cache_key


def cache_dashboard_kpis(cache_key, data, ttl=DASHBOARD_KPI_CACHE_TTL):
    """Cache dashboard KPIs data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached dashboard KPIs: {cache_key}")


def get_cached_report(name, **params):
    """Get a cached report payload. Returns tuple: (cached_data, cache_key)"""
    cache_key = make_cache_key(f"{REPORTS_PREFIX}_{name}", **params)
    return cache.get(cache_key), cache_key


def cache_report(cache_key, data, ttl=REPORTS_CACHE_TTL):
    """Cache a report payload"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached report: {cache_key}")


def invalidate_dashboard_cache():
    """Invalidate dashboard KPIs and report caches"""
    invalidate_cache_pattern(DASHBOARD_PREFIX)
    invalidate_cache_pattern(REPORTS_PREFIX)
    logger.info("Invalidated dashboard cache")
