"""Event bus delivery."""
import json
import logging

import httpx

from pchart.core.events import EventBus, WebhookForwarder, ALL_EVENTS


async def test_delivers_to_named_and_wildcard_subscribers():
    bus = EventBus()
    named, wildcard = [], []

    async def on_named(name, payload):
        named.append(payload)

    async def on_any(name, payload):
        wildcard.append(name)

    bus.subscribe("lock-state-changed", on_named)
    bus.subscribe(ALL_EVENTS, on_any)
    bus.emit("lock-state-changed", {"po_number": "PO-1"})
    bus.emit("operation-started", {"po_number": "PO-1"})
    await bus.drain()

    assert [p["po_number"] for p in named] == ["PO-1"]
    assert "emitted_at" in named[0]
    assert wildcard == ["lock-state-changed", "operation-started"]


async def test_failing_subscriber_is_logged_not_raised(caplog):
    bus = EventBus()
    delivered = []

    async def broken(name, payload):
        raise RuntimeError("socket closed")

    async def healthy(name, payload):
        delivered.append(name)

    bus.subscribe("operation-completed", broken)
    bus.subscribe("operation-completed", healthy)

    with caplog.at_level(logging.WARNING, logger="pchart.core.events"):
        bus.emit("operation-completed", {})
        await bus.drain()

    assert delivered == ["operation-completed"]
    assert "socket closed" in caplog.text


async def test_unsubscribe():
    bus = EventBus()
    received = []

    async def handler(name, payload):
        received.append(name)

    bus.subscribe("x", handler)
    bus.unsubscribe("x", handler)
    bus.emit("x")
    await bus.drain()

    assert received == []


async def test_webhook_forwarder_posts_and_reports_failures(caplog):
    posted = []

    def handle(request: httpx.Request) -> httpx.Response:
        posted.append(json.loads(request.content))
        status = 503 if posted[-1]["event"] == "operation-completed" else 200
        return httpx.Response(status, text="down" if status == 503 else "ok")

    bus = EventBus()
    bus.subscribe(ALL_EVENTS, WebhookForwarder("http://hooks.test/events", transport=httpx.MockTransport(handle)))

    with caplog.at_level(logging.WARNING, logger="pchart.core.events"):
        bus.emit("lock-state-changed", {"po_number": "PO-1"})
        bus.emit("operation-completed", {"po_number": "PO-1"})
        await bus.drain()

    assert sorted(body["event"] for body in posted) == ["lock-state-changed", "operation-completed"]
    assert all(body["payload"]["po_number"] == "PO-1" for body in posted)
    assert "delivery to WebhookForwarder failed: HTTP 503" in caplog.text
