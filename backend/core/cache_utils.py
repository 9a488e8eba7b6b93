"""
Caching helpers for storefront queries
Uses Redis (django-redis) in production, local memory otherwise
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 120  # 2 minutes

PRODUCTS_LIST_PREFIX = 'products_list'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    django-redis exposes delete_pattern (SCAN based); other backends are cleared
    """
    try:
        if hasattr(cache, 'delete_pattern'):
            deleted = cache.delete_pattern(f"*{pattern}*")
            logger.info(f"Invalidated {deleted} cache keys matching pattern: {pattern}")
        else:
            cache.clear()
            logger.debug(f"Cleared local cache for pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def get_cached_products_list(filters_dict):
    """
    Get cached storefront product list
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(PRODUCTS_LIST_PREFIX, **filters_dict)
    return cache.get(cache_key), cache_key


def cache_products_list(cache_key, data, ttl=PRODUCTS_LIST_CACHE_TTL):
    """Cache storefront product list data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached products list: {cache_key}")
