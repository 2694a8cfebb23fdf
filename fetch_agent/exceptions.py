"""Domain-specific exceptions for the session service layer."""


class SessionServiceError(Exception):
    """Base exception for session service errors."""


class SessionNotFoundError(SessionServiceError):
    """Raised when a session id is not registered."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' does not exist or has been closed")


class OrchestratorUnavailableError(SessionServiceError):
    """Raised when a workflow is requested but no orchestrator is configured."""

    def __init__(self) -> None:
        super().__init__("No orchestrator is configured for this service")


class WorkflowError(SessionServiceError):
    """Raised when a workflow step fails and the caller has nothing to fall back on."""

    def __init__(self, step: str, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"Workflow step '{step}' failed: {reason}")
