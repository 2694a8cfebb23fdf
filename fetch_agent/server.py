"""FastAPI application exposing fetch agent sessions to the rendering layer."""

import asyncio
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from fetch_agent import __version__
from fetch_agent.config import ServiceConfig
from fetch_agent.demo import DemoOrchestrator, is_demo_mode_allowed
from fetch_agent.events import HeartbeatEvent, SessionClosedEvent, SSEEvent, StateEvent
from fetch_agent.exceptions import (
    OrchestratorUnavailableError,
    SessionNotFoundError,
    SessionServiceError,
    WorkflowError,
)
from fetch_agent.logging import bind_session, clear_context_fields, configure_structlog, get_logger
from fetch_agent.models import (
    AgentSettings,
    FetchResult,
    SearchResult,
    SessionSnapshot,
    WorkflowStatus,
)
from fetch_agent.registry import SessionRegistry
from fetch_agent.store import SessionStore
from fetch_agent.workflow import Orchestrator, run_search, run_selection

log = get_logger("fetch_agent.server")

# Poll interval for stream loop (disconnect and close detection)
STREAM_POLL_INTERVAL = 0.1


# --- Request/Response schemas ---


class LogEntryRequest(BaseModel):
    """Workflow log entry reported by the orchestrator."""

    step: str = Field(description="Workflow stage label", examples=["acquisition"])
    status: WorkflowStatus = Field(description="pending, running, complete or error", examples=["running"])
    message: str = Field(description="Human-readable detail", examples=["Fetching: https://example.com..."])


class RunningRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_running: bool = Field(description="Whether a workflow is in progress")


class QueryRequest(BaseModel):
    query: str = Field(description="Most recent search or fetch query", examples=["fastapi lifespan events"])


class SearchRequest(BaseModel):
    """Search to run through the orchestrator."""

    query: str = Field(
        min_length=1,
        max_length=1000,
        description="Search query (1-1000 characters)",
        examples=["fastapi lifespan events"],
    )


class FetchRequest(BaseModel):
    """Search candidate to fetch, summarize and save."""

    query: str = Field(min_length=1, max_length=1000, examples=["fastapi lifespan events"])
    url: str = Field(min_length=1, examples=["https://fastapi.tiangolo.com/advanced/events/"])
    title: str = Field(default="", examples=["Lifespan Events - FastAPI"])


class SessionCreatedResponse(BaseModel):
    session_id: str = Field(description="Identifier used in all /sessions/{session_id} routes")
    state: SessionSnapshot = Field(description="Initial session state")


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str = Field(
        description="Error type (SessionNotFoundError, WorkflowError, OrchestratorUnavailableError, ValidationError, InternalServerError)",
        examples=["SessionNotFoundError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["Session 'abc' does not exist or has been closed"],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status", examples=["ok"])
    version: str = Field(default="", description="Service version (only included in /health endpoint)")
    sessions: int | None = Field(default=None, description="Active sessions (only included in /health endpoint)")


# --- Exception handlers ---

_ERROR_STATUS: dict[type[SessionServiceError], int] = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    WorkflowError: 422,
    OrchestratorUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def _handle_service_error(request: Request, exc: SessionServiceError) -> JSONResponse:
    error_type = type(exc).__name__
    log.warning("request.service_error", error_type=error_type, detail=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        content=ErrorResponse(error=error_type, detail=str(exc)).model_dump(),
    )


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.warning("request.validation_error", detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="ValidationError", detail=str(exc)).model_dump(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="InternalServerError", detail="An unexpected error occurred.").model_dump(),
    )


# --- App factory ---


def get_app(
    registry: SessionRegistry | None = None,
    orchestrator: Orchestrator | None = None,
    config: ServiceConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        registry: Session registry to serve (a fresh one by default).
        orchestrator: Orchestrator used by /search and /fetch when demo mode is off.
        config: Service settings (read from the environment by default).
    """
    sessions = registry if registry is not None else SessionRegistry()
    settings = config or ServiceConfig.from_env()

    application = FastAPI(
        title="Fetch Agent Session Service",
        description="""
In-memory session state for a content-fetching agent.

Each session holds the workflow log, the latest fetch result, the current
search candidates and the agent settings. Mutations replace or append and
return the new state; `/sessions/{session_id}/stream` pushes a snapshot
after every mutation.
        """,
        version=__version__,
    )
    application.state.registry = sessions
    application.state.orchestrator = orchestrator
    application.state.config = settings

    application.add_exception_handler(SessionServiceError, _handle_service_error)  # type: ignore[arg-type]
    application.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    def _store(session_id: str) -> SessionStore:
        store = sessions.get(session_id)
        clear_context_fields()
        bind_session(session_id)
        return store

    def _orchestrator(demo: bool) -> Orchestrator:
        if demo:
            if not is_demo_mode_allowed(settings.environment):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Demo mode not available in this environment",
                )
            log.warning("demo_mode_active")
            return DemoOrchestrator()
        if orchestrator is None:
            raise OrchestratorUnavailableError()
        return orchestrator

    # --- Session lifecycle ---

    @application.post(
        "/sessions",
        response_model=SessionCreatedResponse,
        status_code=status.HTTP_201_CREATED,
        summary="Start Session",
        tags=["Sessions"],
    )
    async def create_session() -> SessionCreatedResponse:
        session_id, store = sessions.create()
        return SessionCreatedResponse(session_id=session_id, state=store.snapshot())

    @application.get("/sessions/{session_id}", response_model=SessionSnapshot, summary="Read Session", tags=["Sessions"])
    async def read_session(session_id: str) -> SessionSnapshot:
        return _store(session_id).snapshot()

    @application.delete(
        "/sessions/{session_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        summary="End Session",
        tags=["Sessions"],
    )
    async def close_session(session_id: str) -> Response:
        sessions.close(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # --- Mutations ---

    @application.post("/sessions/{session_id}/logs", response_model=SessionSnapshot, tags=["State"])
    async def append_log(session_id: str, body: LogEntryRequest) -> SessionSnapshot:
        store = _store(session_id)
        store.append_log(body.step, body.status, body.message)
        return store.snapshot()

    @application.post(
        "/sessions/{session_id}/clear",
        response_model=SessionSnapshot,
        tags=["State"],
        description="Empty the log, drop the last result and the search results. Running flag, last query and settings are kept.",
    )
    async def clear_session(session_id: str) -> SessionSnapshot:
        store = _store(session_id)
        store.clear_session()
        return store.snapshot()

    @application.put("/sessions/{session_id}/running", response_model=SessionSnapshot, tags=["State"])
    async def set_running(session_id: str, body: RunningRequest) -> SessionSnapshot:
        store = _store(session_id)
        store.set_running(body.is_running)
        return store.snapshot()

    @application.put("/sessions/{session_id}/query", response_model=SessionSnapshot, tags=["State"])
    async def set_last_query(session_id: str, body: QueryRequest) -> SessionSnapshot:
        store = _store(session_id)
        store.set_last_query(body.query)
        return store.snapshot()

    @application.put("/sessions/{session_id}/result", response_model=SessionSnapshot, tags=["State"])
    async def set_result(session_id: str, body: FetchResult) -> SessionSnapshot:
        store = _store(session_id)
        store.set_result(body)
        return store.snapshot()

    @application.put("/sessions/{session_id}/search-results", response_model=SessionSnapshot, tags=["State"])
    async def set_search_results(session_id: str, body: list[SearchResult]) -> SessionSnapshot:
        store = _store(session_id)
        store.set_search_results(body)
        return store.snapshot()

    @application.put(
        "/sessions/{session_id}/settings",
        response_model=SessionSnapshot,
        tags=["State"],
        description="Replace the whole settings record. Omitted fields fall back to their defaults.",
    )
    async def update_settings(session_id: str, body: AgentSettings) -> SessionSnapshot:
        store = _store(session_id)
        store.update_settings(body)
        return store.snapshot()

    # --- Workflows ---

    @application.post(
        "/sessions/{session_id}/search",
        response_model=SessionSnapshot,
        tags=["Workflow"],
        responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    async def search(
        session_id: str,
        body: SearchRequest,
        demo: bool = Query(default=False, description="Use canned demo data instead of the configured orchestrator"),
    ) -> SessionSnapshot:
        store = _store(session_id)
        await run_search(store, _orchestrator(demo), body.query)
        return store.snapshot()

    @application.post(
        "/sessions/{session_id}/fetch",
        response_model=SessionSnapshot,
        tags=["Workflow"],
        responses={503: {"model": ErrorResponse}},
    )
    async def fetch(
        session_id: str,
        body: FetchRequest,
        demo: bool = Query(default=False, description="Use canned demo data instead of the configured orchestrator"),
    ) -> SessionSnapshot:
        store = _store(session_id)
        await run_selection(store, _orchestrator(demo), body.query, SearchResult(url=body.url, title=body.title))
        return store.snapshot()

    # --- Observation ---

    @application.get(
        "/sessions/{session_id}/stream",
        response_class=StreamingResponse,
        responses={
            200: {
                "description": "Server-Sent Events stream of session snapshots",
                "content": {"text/event-stream": {"example": "event: state\ndata: {...}\n\n"}},
            },
            404: {"model": ErrorResponse},
        },
        summary="Stream session state",
        description="""
Push the session state to the client after every mutation.

**Event Types:**
- `state`: full session snapshot (sent once on connect, then per mutation)
- `heartbeat`: keep-alive comment (`: keepalive`)
- `closed`: the session was ended; the stream closes after it
        """,
        tags=["Sessions"],
    )
    async def stream_session(request: Request, session_id: str) -> StreamingResponse:
        store = _store(session_id)

        async def event_generator() -> AsyncIterator[str]:
            event_queue: asyncio.Queue[SSEEvent] = asyncio.Queue(maxsize=settings.max_queue_size)
            session_closed = asyncio.Event()

            def on_snapshot(snapshot: SessionSnapshot) -> None:
                event = StateEvent.from_snapshot(snapshot)
                if event_queue.full():
                    # Snapshots are whole states; the newest supersedes anything still queued.
                    superseded = event_queue.get_nowait()
                    log.warning(
                        "stream.queue_full",
                        session_id=session_id,
                        dropped_version=superseded.data.get("version"),
                        version=snapshot.version,
                    )
                event_queue.put_nowait(event)

            try:
                remove_close_callback = sessions.on_close(session_id, session_closed.set)
            except SessionNotFoundError:
                log.info("stream.session_already_closed", session_id=session_id)
                yield SessionClosedEvent(data={"session_id": session_id}).format()
                return

            unsubscribe = store.subscribe(on_snapshot)
            loop = asyncio.get_running_loop()
            next_heartbeat = loop.time() + settings.heartbeat_interval
            try:
                log.info("stream.opened", session_id=session_id, subscribers=store.observer_count)
                yield StateEvent.from_snapshot(store.snapshot()).format()

                while not session_closed.is_set():
                    if await request.is_disconnected():
                        log.info("stream.client_disconnected", session_id=session_id)
                        break

                    if loop.time() >= next_heartbeat:
                        yield HeartbeatEvent().format()
                        next_heartbeat += settings.heartbeat_interval

                    try:
                        event = await asyncio.wait_for(event_queue.get(), timeout=STREAM_POLL_INTERVAL)
                        yield event.format()
                    except asyncio.TimeoutError:
                        continue

                while not event_queue.empty():
                    yield event_queue.get_nowait().format()

                if session_closed.is_set():
                    yield SessionClosedEvent(data={"session_id": session_id}).format()
            finally:
                unsubscribe()
                remove_close_callback()
                log.info("stream.closed", session_id=session_id)

        return StreamingResponse(
            event_generator(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    # --- Health ---

    @application.get("/health", response_model=HealthResponse, summary="Health Check", tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__, sessions=len(sessions))

    @application.get("/health/liveness", response_model=HealthResponse, summary="Liveness Probe", tags=["Health"])
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get("/health/readiness", response_model=HealthResponse, summary="Readiness Probe", tags=["Health"])
    async def readiness() -> HealthResponse:
        return HealthResponse(status="ready")

    return application


configure_structlog(testing=ServiceConfig.from_env().log_format_testing)
app = get_app()
