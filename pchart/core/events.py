"""
In-process event bus for real-time notifications.

Events are emitted after the owning transaction commits. Every delivery runs
in its own asyncio task so a slow or failing consumer never blocks or fails
the request that emitted the event.

Optionally forwards every event to an HTTP endpoint (EVENT_WEBHOOK_URL).
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx

from pchart.db_types import utcnow


logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]

# Event names
LOCK_STATE_CHANGED = "lock-state-changed"
OPERATION_STARTED = "operation-started"
OPERATION_COMPLETED = "operation-completed"
DEFECT_EDIT_REQUESTED = "defect-edit-requested"
DEFECT_EDIT_RESOLVED = "defect-edit-resolved"
UPDATE_NOTIFICATION_COUNT = "update-notification-count"

ALL_EVENTS = "*"


class EventBus:
    """Best-effort fan-out of named events to async subscribers."""

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a handler for one event name, or "*" for all events."""
        self._subscribers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        self._subscribers.clear()

    def emit(self, event_name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Schedule delivery of an event to every matching subscriber.

        Returns immediately. Must be called from a running event loop.
        """
        payload = dict(payload or {})
        payload.setdefault("emitted_at", utcnow().isoformat())

        handlers = list(self._subscribers.get(event_name, [])) + list(self._subscribers.get(ALL_EVENTS, []))
        if not handlers:
            logger.debug(f"Event {event_name} has no subscribers")
            return

        for handler in handlers:
            task = asyncio.create_task(self._deliver(handler, event_name, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: EventHandler, event_name: str, payload: Dict[str, Any]) -> None:
        try:
            await handler(event_name, payload)
        except Exception as e:
            # Delivery is best-effort; the emitting transaction is already committed
            logger.warning(f"Event {event_name} delivery to {getattr(handler, '__name__', type(handler).__name__)} failed: {e}")

    async def drain(self) -> None:
        """Wait for all in-flight deliveries. Used at shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class WebhookForwarder:
    """Subscriber that POSTs every event as JSON to a configured URL."""

    def __init__(self, url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def __call__(self, event_name: str, payload: Dict[str, Any]) -> None:
        body = {"event": event_name, "payload": payload}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.post(self.url, json=body)
        if not 200 <= resp.status_code < 300:
            raise RuntimeError(f"HTTP {resp.status_code}: {resp.text[:300]}")


event_bus = EventBus()
