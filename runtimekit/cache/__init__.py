"""
Dependency cache: key computation, restore/save policy and cache stores.
"""

from .local import LocalCacheService
from .manager import (
    CACHE_SCOPE,
    CacheKeyBuilder,
    CacheRecord,
    DependencyCacheManager,
    DependencyCacheResult,
)
from .service import CacheService, validate_key

__all__ = [
    "CACHE_SCOPE",
    "CacheKeyBuilder",
    "CacheRecord",
    "CacheService",
    "DependencyCacheManager",
    "DependencyCacheResult",
    "LocalCacheService",
    "validate_key",
]
