"""
Per-company board cache.

``GET /api/stage/`` serves the nested stage/card board from here; every
mutation of a stage or card drops the company's entry so the next read
rebuilds it from the database.
"""
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
import logging

logger = logging.getLogger(__name__)

BOARD_KEY_PREFIX = 'board:'


def get_board_cache_key(company_id) -> str:
    """Get cache key for a company's board"""
    return f"{BOARD_KEY_PREFIX}{company_id}"


def get_cached_board(company_id):
    """Get cached board data, or None on a miss"""
    try:
        data = cache.get(get_board_cache_key(company_id))
    except Exception as e:
        logger.warning(f"Cache unavailable, proceeding without cache: {e}")
        return None
    if data is not None:
        logger.debug(f"Board cache HIT for company {company_id}")
    else:
        logger.debug(f"Board cache MISS for company {company_id}")
    return data


def cache_board(company_id, data, ttl: int = None):
    """Cache serialized board data"""
    ttl = ttl or settings.BOARD_CACHE_TTL
    try:
        cache.set(get_board_cache_key(company_id), data, ttl)
    except Exception as e:
        logger.warning(f"Unable to cache board for company {company_id}: {e}")


def invalidate_board_cache(company_id):
    """Drop the cached board so the next read refetches from the database"""
    if not company_id:
        return
    try:
        cache.delete(get_board_cache_key(company_id))
        logger.debug(f"Invalidated board cache for company {company_id}")
    except Exception as e:
        logger.warning(f"Could not invalidate board cache for company {company_id}: {e}")


def invalidate_board_cache_on_commit(company_id):
    """
    Drop the cached board once the surrounding transaction commits.

    Invalidating earlier lets a concurrent read cache the pre-commit board.
    Outside a transaction the board is dropped immediately.
    """
    if not company_id:
        return
    transaction.on_commit(lambda: invalidate_board_cache(company_id))
