"""Integration tests for /sessions/{session_id}/stream endpoint."""

import asyncio
import json
from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.routing import APIRoute

from fetch_agent.config import ServiceConfig
from fetch_agent.registry import SessionRegistry
from fetch_agent.server import get_app
from fetch_agent.store import SessionStore

STREAM_TIMEOUT = 5.0


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def app(registry: SessionRegistry) -> FastAPI:
    return get_app(registry=registry, config=ServiceConfig(heartbeat_interval=30))


def _parse_events(body: str) -> list[tuple[str, dict]]:
    """Parse SSE body into (event_type, data) tuples; comments are skipped."""
    events: list[tuple[str, dict]] = []
    for block in body.split("\n\n"):
        lines = [line for line in block.split("\n") if line and not line.startswith(":")]
        if not lines:
            continue
        fields = dict(line.split(": ", 1) for line in lines)
        events.append((fields["event"], json.loads(fields["data"])))
    return events


async def _stream_while(
    app: FastAPI,
    session_id: str,
    store: SessionStore,
    actions: Callable[[], None],
    delay: float = 0.0,
) -> httpx.Response:
    """Open the stream, run ``actions`` once it is subscribed, and return the finished response."""

    async def drive() -> None:
        while store.observer_count == 0:
            await asyncio.sleep(0.01)
        if delay:
            await asyncio.sleep(delay)
        actions()

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        driver = asyncio.create_task(drive())
        response = await asyncio.wait_for(client.get(f"/sessions/{session_id}/stream"), timeout=STREAM_TIMEOUT)
        await driver
    return response


class TestSessionStreamEndpoint:
    """Tests for the session state stream."""

    @pytest.mark.asyncio
    async def test__stream__emits_state_per_mutation_then_closed(
        self, app: FastAPI, registry: SessionRegistry
    ) -> None:
        session_id, store = registry.create()

        def actions() -> None:
            store.append_log("discovery", "running", "Searching...")
            store.set_running(True)
            registry.close(session_id)

        response = await _stream_while(app, session_id, store, actions)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _parse_events(response.text)
        assert [event for event, _ in events] == ["state", "state", "state", "closed"]
        assert [data["version"] for _, data in events[:3]] == [0, 1, 2]
        assert events[1][1]["logs"][0]["message"] == "Searching..."
        assert events[2][1]["isRunning"] is True
        assert events[3][1] == {"session_id": session_id}

    @pytest.mark.asyncio
    async def test__stream__unsubscribes_when_finished(self, app: FastAPI, registry: SessionRegistry) -> None:
        session_id, store = registry.create()

        await _stream_while(app, session_id, store, lambda: registry.close(session_id))

        assert store.observer_count == 0

    @pytest.mark.asyncio
    async def test__stream__sends_heartbeats(self, registry: SessionRegistry) -> None:
        app = get_app(registry=registry, config=ServiceConfig(heartbeat_interval=0.05))
        session_id, store = registry.create()

        response = await _stream_while(app, session_id, store, lambda: registry.close(session_id), delay=0.3)

        assert ": keepalive\n\n" in response.text
        assert [event for event, _ in _parse_events(response.text)] == ["state", "closed"]

    @pytest.mark.asyncio
    async def test__full_queue__delivers_latest_snapshot(self, registry: SessionRegistry) -> None:
        app = get_app(registry=registry, config=ServiceConfig(max_queue_size=1, heartbeat_interval=30))
        session_id, store = registry.create()

        def actions() -> None:
            store.set_last_query("a")
            store.set_last_query("b")
            store.set_last_query("c")
            registry.close(session_id)

        response = await _stream_while(app, session_id, store, actions)

        assert store.last_query == "c"
        events = _parse_events(response.text)
        assert [event for event, _ in events] == ["state", "state", "closed"]
        assert events[-2][1]["lastQuery"] == "c"
        assert events[-2][1]["version"] == store.version

    @pytest.mark.asyncio
    async def test__session_closed_before_first_read__sends_closed_only(
        self, app: FastAPI, registry: SessionRegistry
    ) -> None:
        session_id, store = registry.create()
        route = next(
            r for r in app.routes if isinstance(r, APIRoute) and r.path == "/sessions/{session_id}/stream"
        )

        response = await route.endpoint(request=MagicMock(), session_id=session_id)
        registry.close(session_id)
        body = "".join([chunk async for chunk in response.body_iterator])

        assert _parse_events(body) == [("closed", {"session_id": session_id})]
        assert store.observer_count == 0

    @pytest.mark.asyncio
    async def test__unknown_session__returns_404(self, app: FastAPI) -> None:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/sessions/missing/stream")

        assert response.status_code == 404
        assert response.json()["error"] == "SessionNotFoundError"
