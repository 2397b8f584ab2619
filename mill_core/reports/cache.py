# mill_core/reports/cache.py
"""
Dashboard result cache on top of Django's cache framework.

Keys are ``(tenant_id, query_kind, period_range)`` namespaced by a per-tenant
version number. Invalidating a tenant bumps its version, which orphans every
entry it had at once (the orphans age out through the backend timeout).

Entries carry the time they were computed and are treated as missing once
older than the TTL, judged by the injected clock rather than the backend's
own expiry.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from django.core.cache import caches

from mill_core.common.exceptions import AggregationCancelled

logger = logging.getLogger(__name__)

KEY_PREFIX = "mill:dash"


class DashboardCache:
    def __init__(
        self,
        *,
        ttl_seconds: float = 30,
        backend=None,
        alias: str = "default",
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._backend = backend
        self._alias = alias
        self._clock = clock
        # key -> [lock, number of threads holding or waiting on it]
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @property
    def backend(self):
        return self._backend if self._backend is not None else caches[self._alias]

    # -----------------------------
    # keys
    # -----------------------------

    def _version_key(self, tenant_id) -> str:
        return f"{KEY_PREFIX}:{tenant_id}:ver"

    def version(self, tenant_id) -> int:
        v = self.backend.get(self._version_key(tenant_id))
        if not v:
            v = 1
            # no TTL; bumping controls invalidation
            self.backend.add(self._version_key(tenant_id), v, None)
            v = self.backend.get(self._version_key(tenant_id)) or v
        return int(v)

    def key_for(self, tenant_id, kind: str, range_key: str = "") -> str:
        return f"{KEY_PREFIX}:{tenant_id}:v{self.version(tenant_id)}:{kind}:{range_key or '-'}"

    def invalidate_tenant(self, tenant_id) -> None:
        vkey = self._version_key(tenant_id)
        try:
            try:
                self.backend.incr(vkey)
            except ValueError:
                # missing version key: start past the implicit 1
                self.backend.set(vkey, 2, None)
        except Exception:
            logger.exception("dashboard cache invalidation failed for tenant %s", tenant_id)
            return
        logger.debug("dashboard cache invalidated for tenant %s", tenant_id)

    # -----------------------------
    # read-through
    # -----------------------------

    def _fresh(self, entry) -> bool:
        if not isinstance(entry, dict) or "at" not in entry:
            return False
        return (self._clock() - entry["at"]) < self.ttl_seconds

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = self._locks[key] = [threading.Lock(), 0]
            slot[1] += 1
            return slot[0]

    def _release_lock(self, key: str) -> None:
        # the last user of a key drops its lock; earlier ones leave it for the waiters
        with self._locks_guard:
            slot = self._locks.get(key)
            if slot is None:
                return
            slot[1] -= 1
            if slot[1] <= 0:
                del self._locks[key]

    @staticmethod
    def _compute(compute: Callable[[], Any], cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise AggregationCancelled()
        value = compute()
        # finished after the caller went away: drop it, never cache it
        if cancel_event is not None and cancel_event.is_set():
            raise AggregationCancelled()
        return value

    def get_or_compute(
        self,
        tenant_id,
        kind: str,
        range_key: str,
        compute: Callable[[], Any],
        *,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Cached value for the key, or compute it once per key per process.
        Exceptions from ``compute`` propagate and nothing is stored.
        """
        try:
            key = self.key_for(tenant_id, kind, range_key)
            entry = self.backend.get(key)
        except Exception:
            logger.warning("dashboard cache read failed; computing %s directly", kind, exc_info=True)
            return self._compute(compute, cancel_event)

        if self._fresh(entry):
            return entry["value"]

        lock = self._lock_for(key)
        try:
            with lock:
                # another thread may have filled it while we waited
                try:
                    entry = self.backend.get(key)
                except Exception:
                    logger.warning("dashboard cache read failed for %s", key, exc_info=True)
                    entry = None
                if self._fresh(entry):
                    return entry["value"]

                value = self._compute(compute, cancel_event)

                try:
                    self.backend.set(
                        key,
                        {"at": self._clock(), "value": value},
                        int(self.ttl_seconds) + 1,
                    )
                except Exception:
                    logger.warning("dashboard cache write failed for %s", key, exc_info=True)
                return value
        finally:
            self._release_lock(key)


def get_dashboard_cache() -> DashboardCache:
    """
    The process DashboardCache, built once by ReportsConfig.ready().
    """
    from django.apps import apps

    return apps.get_app_config("reports").dashboard_cache
