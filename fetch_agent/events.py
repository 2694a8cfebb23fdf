"""SSE event models for session state streaming."""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from fetch_agent.models import SessionSnapshot


class SSEEventType(str, Enum):
    """SSE event types for session streams."""

    STATE = "state"
    HEARTBEAT = "heartbeat"
    CLOSED = "closed"


class SSEEvent(BaseModel):
    """Base SSE event model."""

    event: SSEEventType = Field(description="Event type identifier")
    data: dict[str, Any] = Field(description="Event payload data")

    def format(self) -> str:
        """Format as SSE message: 'event: type\\ndata: json\\n\\n'."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"


class StateEvent(SSEEvent):
    """Event carrying a full session snapshot after a mutation."""

    event: SSEEventType = SSEEventType.STATE
    data: dict[str, Any] = Field(
        description="Session snapshot serialized with camelCase keys",
        examples=[
            {
                "logs": [
                    {
                        "step": "discovery",
                        "status": "running",
                        "message": "Searching: fastapi lifespan...",
                        "timestamp": "2026-10-19T09:30:00Z",
                    }
                ],
                "isRunning": True,
                "lastResult": None,
                "lastQuery": "fastapi lifespan",
                "searchResults": [],
                "settings": {
                    "aiSummarization": True,
                    "headlessMode": False,
                    "selectedModel": "llama3.2:1b",
                    "obsidianApiKey": "",
                },
                "version": 3,
            }
        ],
    )

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "StateEvent":
        return cls(data=snapshot.model_dump(mode="json", by_alias=True))


class HeartbeatEvent(SSEEvent):
    """Keep-alive sent as an SSE comment so clients need no handler for it."""

    event: SSEEventType = SSEEventType.HEARTBEAT
    data: dict[str, Any] = Field(default_factory=dict)

    def format(self) -> str:
        return ": keepalive\n\n"


class SessionClosedEvent(SSEEvent):
    """Final event sent when the session is torn down."""

    event: SSEEventType = SSEEventType.CLOSED
    data: dict[str, str] = Field(
        description="Identifier of the closed session",
        examples=[{"session_id": "5f0c2b9e4d7a4e4f9f3a1d2c6b8e7a10"}],
    )
