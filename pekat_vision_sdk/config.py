"""Validated settings for starting or reaching an analysis server."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .results import ResultType


class AnalyzerConfig(BaseModel):
    """Validates and stores settings used to start or reach a server."""

    host: str = Field(
        default="localhost",
        description="Host name a locally spawned server binds to.",
    )
    port_range_start: int = Field(
        default=10000,
        ge=1,
        le=65535,
        description="First port scanned when looking for a free port pair.",
    )
    port_range_end: int = Field(
        default=30000,
        ge=1,
        le=65535,
        description="Port at which scanning stops (exclusive).",
    )
    ping_interval: float = Field(
        default=0.1,
        gt=0.0,
        le=10.0,
        description="Delay (seconds) between readiness pings while the server starts.",
    )
    startup_timeout: float | None = Field(
        default=None,
        gt=0.0,
        description="Give up waiting for a local server after this many seconds. None waits forever.",
    )
    request_timeout: float | None = Field(
        default=None,
        gt=0.0,
        description="Timeout (seconds) applied to every HTTP call.",
    )
    stop_timeout: float | None = Field(
        default=None,
        gt=0.0,
        description="Terminate the server if it has not exited this long after a stop request.",
    )
    context_in_body: bool = Field(
        default=False,
        description="Ask the server to append the context to the returned image bytes.",
    )
    result_type: ResultType = Field(
        default=ResultType.CONTEXT,
        description="Default result type requested by the command line tool.",
    )
    distribution_path: Path | None = Field(
        default=None,
        description="Server installation directory. None triggers the Windows lookup.",
    )
    project_path: Path | None = Field(
        default=None,
        description="Project directory passed to a locally spawned server.",
    )
    api_key: str | None = Field(
        default=None,
        description="Optional API key required by the server.",
    )
    server_options: str | None = Field(
        default=None,
        description="Extra command line options appended verbatim when spawning the server.",
    )
    remote_host: str | None = Field(
        default=None,
        description="Host of an already running server to attach to.",
    )
    remote_port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Port of an already running server to attach to.",
    )
    recursive: bool = Field(
        default=False,
        description="Look for images in sub-directories of directory inputs.",
    )

    @model_validator(mode="after")
    def _validate_port_range(self) -> AnalyzerConfig:
        if self.port_range_end - self.port_range_start < 2:
            raise ValueError("The port range must contain at least two ports.")
        return self

    @model_validator(mode="after")
    def _normalise_hosts(self) -> AnalyzerConfig:
        host = self.host.strip()
        if not host:
            raise ValueError("Host must not be empty.")
        self.host = host
        if self.remote_host is not None:
            self.remote_host = self.remote_host.strip() or None
        if (self.remote_host is None) != (self.remote_port is None):
            raise ValueError("Remote host and remote port must be configured together.")
        return self

    @property
    def is_remote(self) -> bool:
        return self.remote_host is not None

    def as_dict(self) -> dict[str, Any]:
        """Serialize the configuration to primitive Python types."""
        return self.model_dump(mode="json")
