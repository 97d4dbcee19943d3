"""Tests for free port pair discovery."""

from __future__ import annotations

import socket

import pytest
from pekat_vision_sdk.errors import PortExhaustionError
from pekat_vision_sdk.server import ports


def _fake_bind(free: set[int]):
    attempts: list[int] = []

    def can_bind(host: str, port: int) -> bool:
        attempts.append(port)
        return port in free

    return can_bind, attempts


def test_returns_first_port_of_consecutive_pair(monkeypatch):
    can_bind, attempts = _fake_bind({10000, 10002, 10003, 10004})
    monkeypatch.setattr(ports, "_can_bind", can_bind)

    assert ports.find_free_port_pair(10000, 10010) == 10002
    assert attempts == [10000, 10001, 10002, 10003]


def test_isolated_free_ports_exhaust_range(monkeypatch):
    can_bind, _ = _fake_bind({10000, 10002, 10004})
    monkeypatch.setattr(ports, "_can_bind", can_bind)

    with pytest.raises(PortExhaustionError):
        ports.find_free_port_pair(10000, 10006)


def test_pair_must_fit_inside_range(monkeypatch):
    can_bind, _ = _fake_bind({10004, 10005})
    monkeypatch.setattr(ports, "_can_bind", can_bind)

    with pytest.raises(PortExhaustionError):
        ports.find_free_port_pair(10000, 10005)
    assert ports.find_free_port_pair(10000, 10006) == 10004


def test_can_bind_detects_port_in_use():
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.bind((ports.LOOPBACK, 0))
        listener.listen(1)
        port = listener.getsockname()[1]
        assert ports._can_bind(ports.LOOPBACK, port) is False
    finally:
        listener.close()
