"""Disk-based response caching.

Uses :mod:`diskcache` to persist parsed API bodies on the filesystem with a
time-to-live. Each provider type gets its own namespace directory so that
:meth:`ResponseCache.clean` only drops that provider's entries.

Values are stored as JSON text rather than pickles, which keeps the cache
portable and inspectable with any sqlite client.

Cache keys are built by :func:`make_key` from the action and the sorted
query parameters, so identical requests resolve to the same entry
regardless of parameter ordering.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

import diskcache

from wunderbox.models import CacheConfig

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")


def sanitize(value: str) -> str:
    """Strip everything but ``[a-zA-Z0-9_]`` from *value*."""
    return _UNSAFE.sub("", value)


def make_key(namespace: str, action: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build an identifier-safe cache key for ``(action, params)``.

    The readable prefix (namespace and sanitised action) keeps entries
    recognisable; the SHA-256 suffix over the canonical JSON form keeps
    keys unique even when sanitising would make two actions collide.

    Example::

        make_key("wunderbox_provider_Provider", "tasks", {"list_id": 42})
        # 'wunderbox_provider_Provider_tasks_3f1c...'
    """
    canonical = json.dumps([action, dict(params or {})], sort_keys=True, default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()
    return f"{sanitize(namespace)}_{sanitize(action.replace('/', '_'))}_{digest}"


class ResponseCache:
    """Namespaced key-value store with lifetime-based expiry.

    Implements the three-call contract the provider relies on:
    :meth:`load`, :meth:`save` and :meth:`clean`.

    Args:
        cache_dir: Root directory for all caches.
        namespace: Provider type identifier; entries live under
            ``<cache_dir>/<namespace>/``.
        config: Cache configuration (``enabled`` flag and lifetime).

    Example::

        cache = ResponseCache("/tmp/wb-cache", "demo", CacheConfig())
        cache.save('{"id": 1}', "k", ttl_seconds=60)
        assert cache.load("k") == '{"id": 1}'
    """

    def __init__(self, cache_dir: str | Path, namespace: str, config: CacheConfig) -> None:
        self._config = config
        self._namespace = sanitize(namespace)
        self._directory = Path(cache_dir) / self._namespace
        self._lock = threading.Lock()
        self._cache: Optional[diskcache.Cache] = None
        if config.enabled:
            self._cache = diskcache.Cache(str(self._directory))

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def load(self, key: str) -> Optional[str]:
        """Return the stored value for *key*, or ``None`` on a miss or when disabled."""
        if self._cache is None:
            return None
        return self._cache.get(key)

    def save(self, value: str, key: str, ttl_seconds: Optional[float] = None) -> None:
        """Store *value* under *key* for *ttl_seconds* (the configured lifetime by default)."""
        if self._cache is None:
            return
        expire = self._config.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            # only an explicit 0 stores without expiry
            self._cache.set(key, value, expire=expire if expire > 0 else None)
        logger.debug("Cached %s for %ss", key, expire)

    def delete(self, key: str) -> None:
        if self._cache is not None:
            self._cache.delete(key)

    def clean(self) -> None:
        """Remove every entry in this namespace."""
        if self._cache is None:
            return
        with self._lock:
            removed = self._cache.clear()
        logger.debug("Cleared %d entries from %s", removed, self._namespace)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            ``{"enabled": False}`` when disabled, otherwise ``enabled``,
            ``namespace``, ``size``, ``directory`` and ``ttl_seconds``.
        """
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "namespace": self._namespace,
            "size": len(self._cache),
            "directory": str(self._directory),
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
