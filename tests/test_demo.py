"""Unit tests for the demo orchestrator."""

import pytest

from fetch_agent.demo import (
    DEMO_SEARCH_RESULTS,
    SUMMARY_PREVIEW_CHARS,
    DemoOrchestrator,
    is_demo_mode_allowed,
    slugify,
)
from fetch_agent.models import AgentSettings, WorkflowStatus
from fetch_agent.store import SessionStore
from fetch_agent.workflow import run_search, run_selection


class TestDemoOrchestrator:
    """Tests for DemoOrchestrator through the workflow drivers."""

    @pytest.mark.asyncio
    async def test__search__returns_canned_results(self) -> None:
        store = SessionStore()

        results = await run_search(store, DemoOrchestrator(), "fastapi lifespan")

        assert results == list(DEMO_SEARCH_RESULTS)
        assert [e.status for e in store.logs] == [WorkflowStatus.RUNNING, WorkflowStatus.COMPLETE]
        assert store.logs[1].message == f"Found {len(DEMO_SEARCH_RESULTS)} results"

    @pytest.mark.asyncio
    async def test__process_selection__reports_each_step(self) -> None:
        store = SessionStore()

        await run_selection(store, DemoOrchestrator(), "fastapi lifespan", DEMO_SEARCH_RESULTS[0])

        steps = [(e.step, e.status.value) for e in store.logs]
        assert steps == [
            ("acquisition", "running"),
            ("acquisition", "complete"),
            ("synthesis", "running"),
            ("synthesis", "complete"),
            ("persistence", "running"),
            ("persistence", "complete"),
        ]

    @pytest.mark.asyncio
    async def test__process_selection__returns_saved_note(self) -> None:
        store = SessionStore()

        result = await run_selection(store, DemoOrchestrator(), "FastAPI Lifespan Events", DEMO_SEARCH_RESULTS[0])

        assert result.success is True
        assert result.title == DEMO_SEARCH_RESULTS[0].title
        assert result.file_path == "Research/fastapi-lifespan-events.md"
        assert len(result.summary) <= SUMMARY_PREVIEW_CHARS

    @pytest.mark.asyncio
    async def test__ai_disabled__uses_raw_content(self) -> None:
        store = SessionStore()
        store.update_settings(AgentSettings(ai_summarization=False))

        result = await run_selection(store, DemoOrchestrator(), "q", DEMO_SEARCH_RESULTS[0])

        synthesis = [e for e in store.logs if e.step == "synthesis"]
        assert len(synthesis) == 1
        assert synthesis[0].message == "Using raw content"
        assert result.summary.startswith("You can define logic")
        assert len(result.summary) == SUMMARY_PREVIEW_CHARS


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("FastAPI Lifespan Events", "fastapi-lifespan-events"),
            ("  what's new in 3.13?  ", "what-s-new-in-3-13"),
            ("!!!", "untitled"),
        ],
    )
    def test__slugify__produces_file_safe_names(self, text: str, expected: str) -> None:
        assert slugify(text) == expected


class TestIsDemoModeAllowed:
    """Tests for is_demo_mode_allowed function."""

    def test__is_demo_mode_allowed__allows_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "development")
        assert is_demo_mode_allowed() is True

    def test__is_demo_mode_allowed__allows_staging(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "staging")
        assert is_demo_mode_allowed() is True

    def test__is_demo_mode_allowed__blocks_production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert is_demo_mode_allowed() is False

    def test__is_demo_mode_allowed__defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        assert is_demo_mode_allowed() is True

    def test__explicit_environment__overrides_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "development")
        assert is_demo_mode_allowed("production") is False
