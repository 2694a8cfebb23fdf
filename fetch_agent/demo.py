"""Demo orchestrator for exercising the session API without search, LLM or vault services."""

import os
import re

from fetch_agent.models import FetchResult, SearchResult, WorkflowOptions, WorkflowStatus
from fetch_agent.workflow import (
    ACQUISITION_STEP,
    DISCOVERY_STEP,
    PERSISTENCE_STEP,
    SYNTHESIS_STEP,
    EmitLog,
)

SUMMARY_PREVIEW_CHARS = 200

DEMO_SEARCH_RESULTS: tuple[SearchResult, ...] = (
    SearchResult(
        url="https://fastapi.tiangolo.com/advanced/events/",
        title="Lifespan Events - FastAPI",
    ),
    SearchResult(
        url="https://www.structlog.org/en/stable/contextvars.html",
        title="Context Variables - structlog documentation",
    ),
    SearchResult(
        url="https://docs.pydantic.dev/latest/concepts/models/",
        title="Models - Pydantic",
    ),
)

DEMO_PAGE_CONTENT = (
    "You can define logic (code) that should be executed before the application starts up. "
    "This means that this code will be executed once, before the application starts receiving "
    "requests. The same way, you can define logic that should be executed when the application "
    "is shutting down. In this case, this code will be executed once, after having handled "
    "possibly many requests."
)

DEMO_SUMMARY = (
    "The page explains application lifespan handling: startup logic runs once before the first "
    "request and shutdown logic runs once after the last one, typically via an async context manager."
)


def is_demo_mode_allowed(environment: str | None = None) -> bool:
    """Check if demo mode is allowed in the given (or current) environment.

    Demo mode is only available in development and staging.

    Args:
        environment: Environment name; read from ENVIRONMENT when omitted.
    """
    if environment is None:
        environment = os.getenv("ENVIRONMENT", "development")
    return environment in ("development", "staging")


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "untitled"


class DemoOrchestrator:
    """Orchestrator returning canned data while reporting the usual steps."""

    async def search(self, query: str, *, emit_log: EmitLog) -> list[SearchResult]:
        emit_log(DISCOVERY_STEP, WorkflowStatus.RUNNING, f"Searching: {query}...")
        results = list(DEMO_SEARCH_RESULTS)
        emit_log(DISCOVERY_STEP, WorkflowStatus.COMPLETE, f"Found {len(results)} results")
        return results

    async def process_selection(
        self,
        query: str,
        url: str,
        title: str,
        options: WorkflowOptions,
        *,
        emit_log: EmitLog,
    ) -> FetchResult:
        emit_log(ACQUISITION_STEP, WorkflowStatus.RUNNING, f"Fetching: {url}...")
        emit_log(ACQUISITION_STEP, WorkflowStatus.COMPLETE, f"Retrieved {len(DEMO_PAGE_CONTENT)} chars")

        if options.use_ai:
            emit_log(SYNTHESIS_STEP, WorkflowStatus.RUNNING, f"Summarizing with {options.model_name}...")
            summary = DEMO_SUMMARY
            emit_log(SYNTHESIS_STEP, WorkflowStatus.COMPLETE, "Summary generated")
        else:
            summary = DEMO_PAGE_CONTENT
            emit_log(SYNTHESIS_STEP, WorkflowStatus.COMPLETE, "Using raw content")

        emit_log(PERSISTENCE_STEP, WorkflowStatus.RUNNING, "Saving to Obsidian vault...")
        file_path = f"Research/{slugify(query)}.md"
        emit_log(PERSISTENCE_STEP, WorkflowStatus.COMPLETE, f"Saved: {file_path}")

        return FetchResult(
            success=True,
            title=title,
            summary=summary[:SUMMARY_PREVIEW_CHARS],
            file_path=file_path,
        )
