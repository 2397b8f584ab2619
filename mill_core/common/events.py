# mill_core/common/events.py
"""
Tenant-scoped change notification.

Two kinds of listeners:
  - server-side handlers registered with ``bus.on("transaction.created")``,
    called synchronously for every matching event (cache invalidation lives here);
  - session subscriptions from ``bus.subscribe(tenant_id)``, each a bounded
    queue drained by a websocket/SSE consumer owned by the web layer.

Delivery is advisory. A failing handler or a full queue is logged and skipped,
never raised back to the publisher: the dashboard cache TTL bounds staleness
on its own.
"""
from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional
from uuid import UUID

from django.utils import timezone

logger = logging.getLogger(__name__)

TRANSACTION_CREATED = "transaction.created"
PRODUCT_UPDATED = "product.updated"


@dataclass(frozen=True)
class Event:
    name: str
    tenant_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: Any = field(default_factory=timezone.now)


Handler = Callable[[Event], None]


class Subscription:
    """
    One session's view of a tenant's event stream.
    """

    def __init__(self, bus: "EventBus", tenant_id: str, maxsize: int):
        self._bus = bus
        self.tenant_id = tenant_id
        self._queue: "queue.Queue[Event]" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def _offer(self, event: Event) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """
        Next event, or None if nothing arrived within ``timeout`` seconds.
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Event]:
        events: List[Event] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[Event]:
        while not self.closed:
            ev = self.get(timeout=1.0)
            if ev is not None:
                yield ev

    def close(self) -> None:
        self.closed = True
        self._bus.unsubscribe(self)


class EventBus:
    def __init__(self, *, queue_size: int = 100):
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    # -----------------------------
    # server-side handlers
    # -----------------------------

    def on(self, event_name: str):
        """
        Decorator to register a handler.
        Usage:
            @bus.on("transaction.created")
            def handler(event): ...
        """
        def _decorator(fn: Handler) -> Handler:
            with self._lock:
                self._handlers[event_name].append(fn)
            return fn
        return _decorator

    # -----------------------------
    # session subscriptions
    # -----------------------------

    def subscribe(self, tenant_id) -> Subscription:
        sub = Subscription(self, str(tenant_id), self._queue_size)
        with self._lock:
            self._subscriptions[sub.tenant_id].append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.tenant_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscriptions.pop(sub.tenant_id, None)

    def subscriber_count(self, tenant_id) -> int:
        with self._lock:
            return len(self._subscriptions.get(str(tenant_id), []))

    # -----------------------------
    # publish
    # -----------------------------

    def publish(self, tenant_id: UUID | str, event_name: str, payload: Optional[Dict[str, Any]] = None) -> Event:
        """
        Fan out to handlers first, then to the tenant's sessions, so a session
        that re-fetches on receipt never sees pre-invalidation cache entries.
        Keep payloads ID-based; listeners re-read what they need.
        """
        event = Event(name=event_name, tenant_id=str(tenant_id), payload=payload or {})

        with self._lock:
            handlers = list(self._handlers.get(event_name, []))
            subs = list(self._subscriptions.get(event.tenant_id, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("event handler failed: event=%s handler=%r", event_name, handler)

        for sub in subs:
            if not sub._offer(event):
                logger.warning(
                    "dropping %s for tenant %s: subscriber queue full",
                    event_name,
                    event.tenant_id,
                )

        return event


def get_event_bus() -> EventBus:
    """
    The process EventBus, built once by CommonConfig.ready().
    """
    from django.apps import apps

    return apps.get_app_config("common").event_bus
