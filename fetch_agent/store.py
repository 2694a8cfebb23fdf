"""In-memory state container for one fetch agent session."""

from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from fetch_agent.logging import get_logger
from fetch_agent.models import (
    AgentSettings,
    FetchResult,
    SearchResult,
    SessionSnapshot,
    WorkflowLogEntry,
    WorkflowStatus,
)

log = get_logger("fetch_agent.store")

Observer = Callable[[SessionSnapshot], None]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Workflow log, latest results and settings of a single session.

    Every mutation is total: it replaces or appends, bumps ``version`` and
    then hands a fresh snapshot to each observer. Step sequencing
    (pending -> running -> complete/error) is left to the caller; entries
    are never rejected, merged or reordered.

    Observers see snapshots in version order. A mutation made from inside an
    observer is delivered to everyone once the current round finishes, so
    intermediate versions may be skipped but never arrive out of order.
    """

    def __init__(self, *, clock: Clock = _utcnow) -> None:
        self._clock = clock
        self._logs: list[WorkflowLogEntry] = []
        self._is_running = False
        self._last_result: FetchResult | None = None
        self._last_query = ""
        self._search_results: tuple[SearchResult, ...] = ()
        self._settings = AgentSettings()
        self._version = 0
        self._observers: list[Observer] = []
        self._notifying = False
        self._renotify = False

    # --- Read access ---

    @property
    def logs(self) -> tuple[WorkflowLogEntry, ...]:
        return tuple(self._logs)

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def last_result(self) -> FetchResult | None:
        return self._last_result

    @property
    def last_query(self) -> str:
        return self._last_query

    @property
    def search_results(self) -> tuple[SearchResult, ...]:
        return self._search_results

    @property
    def settings(self) -> AgentSettings:
        return self._settings

    @property
    def version(self) -> int:
        return self._version

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            logs=list(self._logs),
            is_running=self._is_running,
            last_result=self._last_result,
            last_query=self._last_query,
            search_results=list(self._search_results),
            settings=self._settings,
            version=self._version,
        )

    # --- Mutations ---

    def append_log(self, step: str, status: WorkflowStatus | str, message: str) -> None:
        entry = WorkflowLogEntry(step=step, status=status, message=message, timestamp=self._clock())
        self._logs.append(entry)
        log.debug("session.log_appended", step=step, status=entry.status.value, count=len(self._logs))
        self._changed()

    def clear_session(self) -> None:
        # is_running, last_query and settings survive a clear
        self._logs = []
        self._last_result = None
        self._search_results = ()
        log.debug("session.cleared")
        self._changed()

    def set_running(self, flag: bool) -> None:
        self._is_running = flag
        log.debug("session.running_set", is_running=flag)
        self._changed()

    def set_last_query(self, query: str) -> None:
        self._last_query = query
        self._changed()

    def set_result(self, result: FetchResult) -> None:
        self._last_result = result
        log.debug("session.result_set", success=result.success)
        self._changed()

    def set_search_results(self, results: Sequence[SearchResult]) -> None:
        self._search_results = tuple(results)
        log.debug("session.search_results_set", count=len(self._search_results))
        self._changed()

    def update_settings(self, settings: AgentSettings) -> None:
        self._settings = settings
        log.debug("session.settings_updated", selected_model=settings.selected_model)
        self._changed()

    # --- Observation ---

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for post-mutation snapshots. Returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _changed(self) -> None:
        self._version += 1
        if self._notifying:
            # Mutation from inside an observer: the running loop delivers the newer state.
            self._renotify = True
            return

        self._notifying = True
        try:
            while self._observers:
                self._renotify = False
                snapshot = self.snapshot()
                for observer in list(self._observers):
                    try:
                        observer(snapshot)
                    except Exception as e:
                        log.exception("session.observer_failed", version=snapshot.version, error=str(e))
                if not self._renotify:
                    break
        finally:
            self._notifying = False
            self._renotify = False
