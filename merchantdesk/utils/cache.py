"""Simple in-memory TTL cache for merchant catalogs and other slow upstream reads."""
import time
from typing import Any

_cache: dict[str, tuple[float, Any]] = {}
_MISS = object()


def is_miss(value: Any) -> bool:
    return value is _MISS


def get_cached(key: str):
    """Return cached value if still valid, else _MISS sentinel."""
    now = time.time()
    if key in _cache:
        expires, value = _cache[key]
        if now < expires:
            return value
    return _MISS


def set_cached(key: str, value: Any, seconds: int = 300):
    """Store a value in cache with TTL."""
    _cache[key] = (time.time() + seconds, value)


def delete_cached(key: str) -> bool:
    """Drop a single entry. Returns True if something was removed."""
    return _cache.pop(key, None) is not None


def clear_cache():
    """Clear all cached values."""
    _cache.clear()


def purge_expired() -> int:
    """Remove entries past their TTL. Returns count removed."""
    now = time.time()
    expired = [k for k, (expires, _) in _cache.items() if expires <= now]
    for k in expired:
        del _cache[k]
    return len(expired)
