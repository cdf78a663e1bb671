"""
API utilities for consistent response formatting and in-memory caching.
"""
from .formatters import (
    success_response,
    error_response,
    csv_response,
    StandardResponse,
)
from .cache import cache_get, cache_set, cache_clear_expired, make_cache_key

__all__ = [
    "success_response",
    "error_response",
    "csv_response",
    "StandardResponse",
    "cache_get",
    "cache_set",
    "cache_clear_expired",
    "make_cache_key",
]
