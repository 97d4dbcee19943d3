"""Polling a server until it answers on its health endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

import requests
from requests import Response, Session

from ..errors import ProcessStartupError, ServerConnectionError
from ..protocol import PING_PATH, ensure_success

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 0.1


def wait_until_ready(
    session: Session,
    base_url: str,
    exited: Future[int] | None = None,
    *,
    interval: float = DEFAULT_PING_INTERVAL,
    timeout: float | None = None,
    request_timeout: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Block until ``GET /ping`` succeeds or the server process exits.

    Each ping races against ``exited``; whichever finishes first decides the
    outcome and the other is abandoned. Failed pings are retried every
    ``interval`` seconds for as long as the process is alive, or until
    ``timeout`` elapses when one is given. Without ``exited`` there is nothing
    to supervise and the function returns immediately.
    """
    if exited is None:
        return

    url = f"{base_url}{PING_PATH}"
    deadline = None if timeout is None else clock() + timeout
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pekat-ping")
    attempt = 0
    try:
        while True:
            attempt += 1
            ping = executor.submit(session.get, url, timeout=request_timeout)
            remaining = None if deadline is None else max(0.0, deadline - clock())
            wait([ping, exited], timeout=remaining, return_when=FIRST_COMPLETED)

            if exited.done():
                raise ProcessStartupError(exited.result())
            if ping.done() and _ping_succeeded(ping, attempt):
                logger.info("Server at %s is ready after %d attempt(s)", base_url, attempt)
                return
            if deadline is not None and clock() >= deadline:
                raise ProcessStartupError(
                    None, f"Server at {base_url} did not become ready within {timeout}s"
                )
            sleep(interval)
    finally:
        executor.shutdown(wait=False)


def _ping_succeeded(ping: Future[Response], attempt: int) -> bool:
    try:
        response = ping.result()
    except requests.RequestException as exc:
        logger.debug("Ping attempt %d failed: %s", attempt, exc)
        return False
    if 200 <= response.status_code < 300:
        return True
    logger.debug("Ping attempt %d returned HTTP %d", attempt, response.status_code)
    return False


def ping_once(session: Session, base_url: str, *, timeout: float | None = None) -> None:
    """Ping the server once, surfacing the first failure."""
    url = f"{base_url}{PING_PATH}"
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise ServerConnectionError(f"Unable to reach server at {base_url}: {exc}") from exc
    ensure_success(response)
