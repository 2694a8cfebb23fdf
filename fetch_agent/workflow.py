"""Drivers that run orchestrator steps against a session store."""

import asyncio
from collections.abc import Callable
from typing import Protocol

from fetch_agent.exceptions import WorkflowError
from fetch_agent.logging import get_logger
from fetch_agent.models import (
    FetchResult,
    SearchResult,
    WorkflowOptions,
    WorkflowStatus,
)
from fetch_agent.store import SessionStore

log = get_logger("fetch_agent.workflow")

DISCOVERY_STEP = "discovery"
ACQUISITION_STEP = "acquisition"
SYNTHESIS_STEP = "synthesis"
PERSISTENCE_STEP = "persistence"

EmitLog = Callable[[str, WorkflowStatus, str], None]


class Orchestrator(Protocol):
    """External component that performs searches, fetches and summarization.

    Progress is reported through ``emit_log`` as the work happens; the
    return value is the step's outcome.
    """

    async def search(self, query: str, *, emit_log: EmitLog) -> list[SearchResult]: ...

    async def process_selection(
        self,
        query: str,
        url: str,
        title: str,
        options: WorkflowOptions,
        *,
        emit_log: EmitLog,
    ) -> FetchResult: ...


async def run_search(store: SessionStore, orchestrator: Orchestrator, query: str) -> list[SearchResult]:
    """Search for ``query`` and replace the session's candidates with the results.

    Raises:
        WorkflowError: When the orchestrator's search fails. The failure is
            also appended to the session log and previous candidates are kept.
    """
    store.set_last_query(query)
    store.set_running(True)
    log.info("workflow.search.started", query=query)
    try:
        results = await orchestrator.search(query, emit_log=store.append_log)
        store.set_search_results(results)
    except asyncio.CancelledError:
        store.append_log(DISCOVERY_STEP, WorkflowStatus.ERROR, "Search cancelled")
        log.info("workflow.search.cancelled", query=query)
        raise
    except Exception as e:
        store.append_log(DISCOVERY_STEP, WorkflowStatus.ERROR, str(e))
        log.error("workflow.search.failed", query=query, error=str(e))
        raise WorkflowError(step=DISCOVERY_STEP, reason=str(e)) from e
    finally:
        store.set_running(False)

    log.info("workflow.search.completed", query=query, result_count=len(results))
    return results


async def run_selection(
    store: SessionStore,
    orchestrator: Orchestrator,
    query: str,
    selection: SearchResult,
) -> FetchResult:
    """Fetch, summarize and save ``selection`` using the session's current settings.

    A failed fetch is not raised: it is recorded as an ``error`` log entry
    and an unsuccessful FetchResult, which is also returned.
    """
    options = store.settings.to_workflow_options()
    store.set_running(True)
    log.info("workflow.selection.started", url=selection.url, use_ai=options.use_ai, model=options.model_name)
    try:
        result = await orchestrator.process_selection(
            query,
            selection.url,
            selection.title,
            options,
            emit_log=store.append_log,
        )
        store.set_result(result)
    except asyncio.CancelledError:
        store.append_log(ACQUISITION_STEP, WorkflowStatus.ERROR, "Fetch cancelled")
        log.info("workflow.selection.cancelled", url=selection.url)
        raise
    except Exception as e:
        log.error("workflow.selection.failed", url=selection.url, error=str(e))
        store.append_log(ACQUISITION_STEP, WorkflowStatus.ERROR, str(e))
        result = FetchResult(success=False, title=selection.title, error=str(e))
        store.set_result(result)
    finally:
        store.set_running(False)

    log.info("workflow.selection.completed", url=selection.url, success=result.success)
    return result
