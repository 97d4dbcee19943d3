"""Helpers for running and probing a local analysis server."""

from .ports import find_free_port_pair
from .process import ServerProcess, build_server_arguments, generate_stop_key, server_executable
from .readiness import ping_once, wait_until_ready

__all__ = [
    "ServerProcess",
    "build_server_arguments",
    "find_free_port_pair",
    "generate_stop_key",
    "ping_once",
    "server_executable",
    "wait_until_ready",
]
