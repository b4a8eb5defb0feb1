"""Tenant connection caching."""

from .cache_entry import CacheEntry
from .connection_cache import CacheSnapshot, ConnectionCache

__all__ = ["CacheEntry", "CacheSnapshot", "ConnectionCache"]
