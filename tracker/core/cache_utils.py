"""
Caching utilities for report queries.

Report results are cached under keys that embed a generation number. Bumping
the generation (on any write to a tracked model) makes every previously cached
report unreachable, which works the same on Redis and on the local-memory
backend used in development and tests.
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

REPORTS_GENERATION_KEY = 'reports:generation'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_reports_generation():
    generation = cache.get(REPORTS_GENERATION_KEY)
    if generation is None:
        cache.add(REPORTS_GENERATION_KEY, 1, None)
        generation = cache.get(REPORTS_GENERATION_KEY, 1)
    return generation


def get_report_cache_key(report_name, *args, **kwargs):
    return make_cache_key(f"report:{report_name}:g{get_reports_generation()}", *args, **kwargs)


def cached_report(report_name, ttl=None):
    """
    Decorator caching the return value of a report builder

    Usage:
        @cached_report('dashboard')
        def build_dashboard(as_of):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = get_report_cache_key(report_name, *args, **kwargs)
            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {report_name}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {report_name}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, ttl or settings.REPORTS_CACHE_TTL)
            return result
        return wrapper
    return decorator


def invalidate_reports_cache():
    """Make every cached report stale"""
    try:
        cache.incr(REPORTS_GENERATION_KEY)
    except ValueError:
        # Key expired or was never set
        cache.set(REPORTS_GENERATION_KEY, 2, None)
    logger.debug("Invalidated reports cache")
