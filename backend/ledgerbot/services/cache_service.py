# /ledgerbot/services/cache_service.py

import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ledgerbot.config.settings import settings
from ledgerbot.utils.metrics import cache_operations

# In-memory TTL cache that bridges an "extract" step and a later "confirm"
# step. Expiry is checked when an entry is read, so no timer is needed;
# sweep_expired() only reclaims memory for keys nobody reads again.

logger = logging.getLogger(__name__)


class CacheNamespaces:
    """A single source of truth for the cache namespaces."""
    CATEGORIZATION = "categorization"
    DOCUMENTS = "documents"


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    created_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ExtractionCache:
    def __init__(
        self,
        namespace: str,
        default_ttl: float,
        clock: Callable[[], float] = time.monotonic,
        store: Optional[Dict[str, CacheEntry]] = None,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[str, CacheEntry] = store if store is not None else {}

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _live_entry(self, key: str, operation: str) -> Optional[CacheEntry]:
        full_key = self._key(key)
        entry = self._store.get(full_key)
        if entry is None:
            cache_operations.labels(namespace=self.namespace, operation=operation, status="miss").inc()
            return None
        if entry.is_expired(self._clock()):
            self._store.pop(full_key, None)
            cache_operations.labels(namespace=self.namespace, operation=operation, status="expired").inc()
            logger.info(f"Cache entry {full_key} expired after {entry.ttl:.0f}s, evicted on read")
            return None
        cache_operations.labels(namespace=self.namespace, operation=operation, status="hit").inc()
        return entry

    def put(self, key: str, payload: Any, ttl_seconds: Optional[float] = None) -> CacheEntry:
        """Stores payload under key, replacing any previous entry wholesale."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        entry = CacheEntry(payload=payload, created_at=self._clock(), ttl=ttl)
        self._store[self._key(key)] = entry
        cache_operations.labels(namespace=self.namespace, operation="put", status="success").inc()
        return entry

    def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key, "get")
        return entry.payload if entry else None

    def pop(self, key: str) -> Optional[Any]:
        """Reads and deletes in one step; used by the committing side of a workflow."""
        entry = self._live_entry(key, "pop")
        if entry is None:
            return None
        self._store.pop(self._key(key), None)
        return entry.payload

    def delete(self, key: str) -> bool:
        removed = self._store.pop(self._key(key), None) is not None
        cache_operations.labels(namespace=self.namespace, operation="delete", status="hit" if removed else "miss").inc()
        return removed

    def age(self, key: str) -> Optional[float]:
        """Seconds since the live entry for key was written, or None when absent/expired."""
        entry = self._live_entry(key, "age")
        if entry is None:
            return None
        return self._clock() - entry.created_at

    def sweep_expired(self) -> int:
        now = self._clock()
        prefix = f"{self.namespace}:"
        expired = [k for k, entry in self._store.items() if k.startswith(prefix) and entry.is_expired(now)]
        for k in expired:
            self._store.pop(k, None)
        if expired:
            logger.info(f"Swept {len(expired)} expired '{self.namespace}' cache entries")
        return len(expired)

    def clear(self) -> None:
        prefix = f"{self.namespace}:"
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]

    def __len__(self) -> int:
        prefix = f"{self.namespace}:"
        return sum(1 for k in self._store if k.startswith(prefix))


class ExtractionCaches:
    """The two working-set namespaces of the bot, sharing one backing map."""

    def __init__(
        self,
        categorization_ttl: float = settings.categorization_cache_ttl,
        document_ttl: float = settings.document_cache_ttl,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: Dict[str, CacheEntry] = {}
        self.categorization = ExtractionCache(CacheNamespaces.CATEGORIZATION, categorization_ttl, clock, self._store)
        self.documents = ExtractionCache(CacheNamespaces.DOCUMENTS, document_ttl, clock, self._store)

    def all(self):
        return [self.categorization, self.documents]

    def clear_user(self, user_key: str) -> int:
        return sum(1 for cache in self.all() if cache.delete(user_key))

    def ages(self, user_key: str) -> Dict[str, Optional[float]]:
        return {cache.namespace: cache.age(user_key) for cache in self.all()}

    def sweep_expired(self) -> int:
        return sum(cache.sweep_expired() for cache in self.all())


def confirm_staged(cache: ExtractionCache, user_key: str) -> Optional[Any]:
    """
    Standalone confirmation entry point of the extract/confirm workflow.
    Needs no flow context: the staged payload is found by user key and
    namespace only, and is consumed so it can be applied exactly once.
    """
    payload = cache.pop(user_key)
    if payload is None:
        logger.info(f"No staged '{cache.namespace}' payload to confirm for {user_key}")
    return payload
