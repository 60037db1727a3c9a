"""Status cache and request quota."""

from .keys import CacheKeys, CacheTTL
from .rate_limit import QuotaLimiter
from .store import CacheStore, InMemoryCache, SafeCache

__all__ = ["CacheKeys", "CacheStore", "CacheTTL", "InMemoryCache", "QuotaLimiter", "SafeCache"]
