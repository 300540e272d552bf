"""Per-adapter TTL caching."""

import hashlib
import json
import os
import shutil
from typing import Any

import diskcache

from market_mcp.models import utc_now


def cache_key(namespace: str, params: dict[str, Any]) -> str:
    """
    Canonical cache key for normalized params.

    Keys are sorted and None values dropped so equivalent calls share entries.
    """
    clean = {k: v for k, v in sorted(params.items()) if v is not None}
    payload = json.dumps(clean, sort_keys=True, separators=(",", ":"), default=str)
    return f"{namespace}:{payload}"


class TTLCache:
    """
    Cache owned by a single adapter. Entries expire after `ttl` seconds.

    Backed by diskcache; with no directory configured each instance gets its
    own temporary directory, so state is never shared between adapters. That
    directory is deleted by close().
    """

    def __init__(self, namespace: str, ttl: float, cache_dir: str | None = None):
        self.namespace = namespace
        self.ttl = ttl
        if cache_dir is None:
            cache_dir = os.environ.get("CACHE_DIR")
        directory = os.path.join(cache_dir, namespace) if cache_dir else None
        self.cache: diskcache.Cache = diskcache.Cache(directory)
        self._temporary = directory is None

    def key(self, params: dict[str, Any]) -> str:
        return cache_key(self.namespace, params)

    def get(self, params: dict[str, Any]) -> Any | None:
        """
        Get a cached value.

        Args:
            params: Normalized fetch params

        Returns:
            Cached value or None if absent/expired
        """
        entry = self.cache.get(self.key(params))
        if not entry:
            return None
        return entry["value"]

    def set(self, params: dict[str, Any], value: Any, ttl: float | None = None) -> None:
        """Store a value with expiry (default: the cache's TTL)."""
        entry = {
            "value": value,
            "stored_at": utc_now().isoformat(),
            "hash": hashlib.sha256(self.key(params).encode("utf-8")).hexdigest()[:16],
        }
        self.cache.set(self.key(params), entry, expire=ttl if ttl is not None else self.ttl)

    def get_metadata(self, params: dict[str, Any]) -> dict[str, Any] | None:
        """Get entry metadata without the value."""
        entry = self.cache.get(self.key(params))
        if not entry:
            return None
        return {"stored_at": entry["stored_at"], "hash": entry["hash"], "ttl": self.ttl}

    def exists(self, params: dict[str, Any]) -> bool:
        """Check if params have a live entry."""
        return self.key(params) in self.cache

    def clear(self) -> None:
        """Clear all cached data."""
        self.cache.clear()

    def close(self) -> None:
        self.cache.close()
        if self._temporary and os.path.isdir(self.cache.directory):
            shutil.rmtree(self.cache.directory)
