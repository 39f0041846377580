"""Configuration for the task discovery service.

Provides strongly-typed settings using Pydantic and a loader from environment
variables with defaults suitable for local development. The settings object is
built once at startup and handed to the finder and monitors explicitly.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class Settings(BaseModel):
    """Pydantic settings for the task discovery service."""
    cluster: str = "default"
    region: str = "us-east-1"
    # Services to keep a TaskMonitor running for
    services: list[str] = Field(default_factory=list)
    poll_interval_s: float = Field(10.0, gt=0)
    volatile_poll_interval_s: float = Field(1.0, gt=0)
    # Unset means a hanging remote call blocks the poll loop
    resolve_timeout_s: Optional[float] = Field(None, gt=0)
    bind_host: str = "0.0.0.0"
    bind_port: int = 7000

    @field_validator("services", mode="before")
    @classmethod
    def _split_services(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


def load_settings() -> Settings:
    """Load settings from environment variables and return a Settings object."""
    timeout = os.getenv("RESOLVE_TIMEOUT_S")
    try:
        return Settings(
            cluster=os.getenv("CLUSTER", "default"),
            region=os.getenv("AWS_REGION", "us-east-1"),
            services=os.getenv("SERVICES", ""),
            poll_interval_s=float(os.getenv("POLL_INTERVAL_S", "10")),
            volatile_poll_interval_s=float(os.getenv("VOLATILE_POLL_INTERVAL_S", "1")),
            resolve_timeout_s=float(timeout) if timeout else None,
            bind_host=os.getenv("BIND_HOST", "0.0.0.0"),
            bind_port=int(os.getenv("BIND_PORT", "7000")),
        )
    except (ValidationError, ValueError) as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
