"""TTL cache for Kubernetes objects that change rarely, such as ProviderConfigs."""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Optional

_cache: dict[str, tuple[Any, float]] = {}
_cache_ttl: float = float(os.getenv("K8S_CACHE_TTL_SECONDS", "30.0"))
_lock = threading.Lock()


def get_cached_object(key: str) -> Optional[Any]:
    """Get an object from cache if it hasn't expired.

    Args:
        key: Cache key (typically "kind:namespace:name")

    Returns:
        Cached object or None if not found or expired
    """
    with _lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        obj, timestamp = entry
        if time.time() - timestamp > _cache_ttl:
            del _cache[key]
            return None
        return obj


def set_cached_object(key: str, obj: Any) -> None:
    with _lock:
        _cache[key] = (obj, time.time())


def invalidate_cache(pattern: Optional[str] = None) -> None:
    """Drop entries whose key contains ``pattern``, or everything if no pattern is given."""
    with _lock:
        if pattern is None:
            _cache.clear()
            return
        for key in [k for k in _cache if pattern in k]:
            del _cache[key]


def make_cache_key(kind: str, namespace: str, name: str) -> str:
    return f"{kind}:{namespace}:{name}"
