"""Dependency cache keyed by manifest digest."""

from __future__ import annotations

from kiln_core.cache.models import KILN_CORE_VERSION, CacheEntry
from kiln_core.cache.store import CACHE_DIR_ENV, DependencyCache, default_cache_dir

__all__ = [
    "CACHE_DIR_ENV",
    "KILN_CORE_VERSION",
    "CacheEntry",
    "DependencyCache",
    "default_cache_dir",
]
