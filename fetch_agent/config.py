"""Service configuration loaded from environment variables."""

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ServiceConfig(BaseModel):
    """Runtime settings for the session service, read from the environment or .env."""

    environment: str = Field(default="development")
    heartbeat_interval: float = Field(default=30.0, gt=0, description="Seconds between SSE keep-alives")
    max_queue_size: int = Field(default=100, gt=0, description="Pending snapshots buffered per SSE client")
    log_format_testing: bool = Field(default=False, description="Readable log lines instead of JSON")

    @classmethod
    def _collect_env_overrides(cls) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for field_name in cls.model_fields:
            env_key = field_name.upper()
            if os.environ.get(env_key, "") != "":
                overrides[field_name] = os.environ[env_key]
        return overrides

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        load_dotenv()
        return cls(**cls._collect_env_overrides())
