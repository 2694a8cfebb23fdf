"""Fetch Agent - in-memory session state for an automated content-fetching agent"""

__version__ = "0.1.0"

from fetch_agent.exceptions import (
    OrchestratorUnavailableError,
    SessionNotFoundError,
    SessionServiceError,
    WorkflowError,
)
from fetch_agent.models import (
    AgentSettings,
    FetchResult,
    SearchResult,
    SessionSnapshot,
    WorkflowLogEntry,
    WorkflowOptions,
    WorkflowStatus,
)
from fetch_agent.registry import SessionRegistry
from fetch_agent.store import SessionStore
from fetch_agent.workflow import Orchestrator, run_search, run_selection

__all__ = [
    # Models
    "WorkflowStatus",
    "WorkflowLogEntry",
    "FetchResult",
    "SearchResult",
    "AgentSettings",
    "WorkflowOptions",
    "SessionSnapshot",
    # State
    "SessionStore",
    "SessionRegistry",
    # Workflow
    "Orchestrator",
    "run_search",
    "run_selection",
    # Exceptions
    "SessionServiceError",
    "SessionNotFoundError",
    "OrchestratorUnavailableError",
    "WorkflowError",
]
