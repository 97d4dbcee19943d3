"""Local TCP port discovery for spawned servers."""

from __future__ import annotations

import logging
import socket

from ..errors import PortExhaustionError

logger = logging.getLogger(__name__)

FIRST_PORT = 10000
LAST_PORT = 30000
LOOPBACK = "127.0.0.1"


def _can_bind(host: str, port: int) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
    except OSError:
        return False
    finally:
        sock.close()
    return True


def find_free_port_pair(
    start: int = FIRST_PORT,
    end: int = LAST_PORT,
    *,
    host: str = LOOPBACK,
) -> int:
    """Return the first port of two consecutive bindable ports in ``[start, end)``.

    The server listens on the returned port and silently claims the next one
    as well, so both have to be free.
    """
    pending: int | None = None
    for port in range(start, end):
        if not _can_bind(host, port):
            pending = None
            continue
        if pending is None:
            pending = port
            continue
        logger.debug("Found free port pair %d/%d", pending, port)
        return pending
    raise PortExhaustionError(f"Unable to find two consecutive free TCP ports in {start}-{end - 1}")
