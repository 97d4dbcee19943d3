"""Exception hierarchy raised by the analyzer client."""

from __future__ import annotations


class AnalyzerError(RuntimeError):
    """Base class for every error raised by this package."""


class ConfigurationError(AnalyzerError):
    """Raised when required paths or settings are missing or inconsistent."""


class PortExhaustionError(AnalyzerError):
    """Raised when no pair of consecutive free ports exists in the scanned range."""


class ProcessStartupError(AnalyzerError):
    """Raised when the server process exits before it starts answering requests."""

    def __init__(self, exit_code: int | None, message: str | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(
            message or f"Server process terminated before becoming ready (exit code {exit_code})"
        )


class ServerConnectionError(AnalyzerError):
    """Raised when the server cannot be reached."""


class ProtocolError(AnalyzerError):
    """Raised when the server answers with an error status or a malformed response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
