"""Registry holding one SessionStore per client session."""

from collections.abc import Callable
from uuid import uuid4

from fetch_agent.exceptions import SessionNotFoundError
from fetch_agent.logging import get_logger
from fetch_agent.store import SessionStore

log = get_logger("fetch_agent.registry")


class SessionRegistry:
    """Owns session lifetimes: creation is session start, ``close`` is teardown."""

    def __init__(self, store_factory: Callable[[], SessionStore] = SessionStore) -> None:
        self._store_factory = store_factory
        self._sessions: dict[str, SessionStore] = {}
        self._close_callbacks: dict[str, list[Callable[[], None]]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self) -> tuple[str, SessionStore]:
        session_id = uuid4().hex
        store = self._store_factory()
        self._sessions[session_id] = store
        self._close_callbacks[session_id] = []
        log.info("session.created", session_id=session_id, active=len(self._sessions))
        return session_id, store

    def get(self, session_id: str) -> SessionStore:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def on_close(self, session_id: str, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` once when the session closes. Returns a deregistration callable."""
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        callbacks = self._close_callbacks[session_id]
        callbacks.append(callback)

        def remove() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return remove

    def close(self, session_id: str) -> None:
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        del self._sessions[session_id]
        callbacks = self._close_callbacks.pop(session_id, [])
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                log.exception("session.close_callback_failed", session_id=session_id, error=str(e))
        log.info("session.closed", session_id=session_id, active=len(self._sessions))
