"""Pydantic models for fetch agent session state."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WorkflowStatus(str, Enum):
    """Progress tag of a single workflow step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class WorkflowLogEntry(BaseModel):
    """One record of a step the orchestrator executed."""

    model_config = ConfigDict(frozen=True)

    step: str = Field(
        description="Workflow stage label",
        examples=["discovery", "acquisition", "synthesis", "persistence"],
    )
    status: WorkflowStatus = Field(
        description="Step progress: pending, running, complete or error",
        examples=["running"],
    )
    message: str = Field(
        description="Human-readable detail for the step",
        examples=["Searching: fastapi lifespan events..."],
    )
    timestamp: datetime = Field(
        description="Time the entry was appended to the session log",
    )


class FetchResult(BaseModel):
    """Outcome of the most recently completed fetch."""

    model_config = ConfigDict(frozen=True)

    success: bool = Field(
        description="Whether the fetch succeeded",
        examples=[True],
    )
    title: str = Field(
        default="",
        description="Title of the fetched page",
        examples=["Lifespan Events - FastAPI"],
    )
    summary: str = Field(
        default="",
        description="Summary (or leading raw content) of the fetched page",
        examples=["You can define logic that should be executed before the application starts up..."],
    )
    file_path: str = Field(
        default="",
        description="Vault path the note was saved to",
        examples=["Research/fastapi-lifespan-events.md"],
    )
    error: str | None = Field(
        default=None,
        description="Explanation of the failure, typically set when success is false",
        examples=["timeout"],
    )


class SearchResult(BaseModel):
    """One search candidate."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(examples=["https://fastapi.tiangolo.com/advanced/events/"])
    title: str = Field(examples=["Lifespan Events - FastAPI"])


class WorkflowOptions(BaseModel):
    """Options the orchestrator receives when processing a selection."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    use_ai: bool = Field(description="Run AI summarization on the fetched content")
    headless: bool = Field(description="Hide the browser during the fetch")
    model_name: str = Field(description="Model used for summarization", examples=["llama3.2:1b"])
    obsidian_api_key: str = Field(description="Credential for the note vault integration")


class AgentSettings(BaseModel):
    """User-configurable agent behaviour. Always replaced as a whole record."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    ai_summarization: bool = Field(
        default=True,
        description="Invoke AI summarization during fetch",
    )
    headless_mode: bool = Field(
        default=False,
        description="Hide the browser window during fetch",
    )
    selected_model: str = Field(
        default="llama3.2:1b",
        description="Identifier of the AI model to use",
        examples=["llama3.2:1b", "qwen2.5:7b"],
    )
    obsidian_api_key: str = Field(
        default="",
        description="Credential for the note vault integration",
    )

    def to_workflow_options(self) -> WorkflowOptions:
        return WorkflowOptions(
            use_ai=self.ai_summarization,
            headless=self.headless_mode,
            model_name=self.selected_model,
            obsidian_api_key=self.obsidian_api_key,
        )


class SessionSnapshot(BaseModel):
    """Fully-formed read view of a session, as observed by the rendering layer."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    logs: list[WorkflowLogEntry] = Field(
        default_factory=list,
        description="Workflow log in insertion order",
    )
    is_running: bool = Field(
        default=False,
        description="Whether a workflow is currently in progress",
    )
    last_result: FetchResult | None = Field(
        default=None,
        description="Latest fetch outcome, if any",
    )
    last_query: str = Field(
        default="",
        description="Most recent search or fetch query",
    )
    search_results: list[SearchResult] = Field(
        default_factory=list,
        description="Candidates from the latest search",
    )
    settings: AgentSettings = Field(
        default_factory=AgentSettings,
        description="Current agent settings",
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Number of mutations applied to the session",
    )
