"""Launching and supervising a local server process."""

from __future__ import annotations

import logging
import os
import secrets
import shlex
import subprocess
import threading
from collections.abc import Sequence
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

from ..errors import ConfigurationError, ProcessStartupError

logger = logging.getLogger(__name__)

_EXECUTABLE_NAME = "pekat_vision"


def server_executable(distribution_path: Path) -> Path:
    """Return the server binary inside a distribution directory."""
    executable = Path(distribution_path) / _EXECUTABLE_NAME / _EXECUTABLE_NAME
    if os.name == "nt":
        executable = executable.with_name(executable.name + ".exe")
    return executable


def generate_stop_key() -> int:
    return secrets.randbelow(2**31)


def build_server_arguments(
    project_path: Path | str,
    host: str,
    port: int,
    stop_key: int,
    *,
    api_key: str | None = None,
    options: str | None = None,
) -> list[str]:
    """Assemble the command line flags understood by the server."""
    arguments = ["-data", str(project_path), "-host", host, "-port", str(port)]
    if api_key and api_key.strip():
        arguments += ["-api_key", api_key]
    arguments += ["-stop_key", str(stop_key)]
    if options and options.strip():
        arguments += shlex.split(options, posix=os.name != "nt")
    return arguments


class ServerProcess:
    """A running server subprocess and a future resolved with its exit code."""

    def __init__(self, process: subprocess.Popen) -> None:
        self._process = process
        self.exited: Future[int] = Future()
        self._watcher = threading.Thread(
            target=self._watch,
            name=f"pekat-server-{process.pid}",
            daemon=True,
        )
        self._watcher.start()

    @classmethod
    def spawn(cls, executable: Path | str, arguments: Sequence[str]) -> ServerProcess:
        """Start ``executable`` without a console window and return immediately."""
        command = [str(executable), *arguments]
        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if os.name == "nt" else 0
        logger.debug("Launching server: %s", command)
        try:
            process = subprocess.Popen(command, creationflags=creationflags)
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Server executable not found: {executable}") from exc
        except OSError as exc:
            raise ProcessStartupError(None, f"Unable to launch {executable}: {exc}") from exc
        logger.info("Started server process %d", process.pid)
        return cls(process)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def is_running(self) -> bool:
        return not self.exited.done()

    def wait(self, timeout: float | None = None) -> int:
        """Block until the process exits; raises ``concurrent.futures.TimeoutError`` on timeout."""
        return self.exited.result(timeout=timeout)

    def terminate(self, grace_period: float = 5.0) -> int:
        """Terminate the process, killing it if it ignores the request."""
        if self.exited.done():
            return self.exited.result()
        logger.info("Terminating server process %d", self.pid)
        self._process.terminate()
        try:
            return self.wait(grace_period)
        except FutureTimeoutError:
            logger.warning("Server process %d ignored terminate; killing it", self.pid)
            self._process.kill()
            return self.wait()

    def _watch(self) -> None:
        code = self._process.wait()
        logger.info("Server process %d exited with code %d", self._process.pid, code)
        self.exited.set_result(code)
