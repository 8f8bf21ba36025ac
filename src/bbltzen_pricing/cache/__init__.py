"""Cache module: TTL store, statistics and pricing cache domains."""

from .memory_cache import (
    CacheBulkResult,
    CacheCleanupResult,
    CacheInfo,
    CacheOperationResult,
    CacheStatistics,
    MemoryCache,
)
from .service import CacheDomainTTLs, PricingCacheService

__all__ = [
    "CacheBulkResult",
    "CacheCleanupResult",
    "CacheDomainTTLs",
    "CacheInfo",
    "CacheOperationResult",
    "CacheStatistics",
    "MemoryCache",
    "PricingCacheService",
]
