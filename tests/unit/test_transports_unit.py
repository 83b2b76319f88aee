from __future__ import annotations

import json
import os
import socket
import sys
from typing import TYPE_CHECKING

import pytest

from deeplink.errors import IpcError
from deeplink.ipc.transports import (
    DefaultTransport,
    TCPLoopbackTransport,
    UnixSocketTransport,
    probe_connect,
    transport_for,
)

if TYPE_CHECKING:
    from pathlib import Path


class _FailingTransport:
    transport_type = "fake"
    address = "fake://channel"

    def __init__(self, error: BaseException) -> None:
        self._error = error

    def connect(self, timeout: float) -> socket.socket:
        del timeout
        raise self._error


@pytest.mark.parametrize(
    "error",
    [FileNotFoundError("gone"), ConnectionRefusedError("refused")],
)
def test_probe_reports_absent_only_for_affirmative_absence(error: OSError) -> None:
    assert probe_connect(_FailingTransport(error), 0.1) is False


@pytest.mark.parametrize(
    "error",
    [TimeoutError("busy"), BlockingIOError("backlog full")],
)
def test_probe_treats_busy_listener_as_occupied(error: OSError) -> None:
    assert probe_connect(_FailingTransport(error), 0.1) is True


@pytest.mark.parametrize(
    "error",
    [PermissionError("denied"), OSError("something else")],
)
def test_probe_surfaces_other_failures(error: OSError) -> None:
    with pytest.raises(IpcError, match="Failed to probe channel") as exc_info:
        probe_connect(_FailingTransport(error), 0.1)

    assert exc_info.value.address == "fake://channel"
    assert exc_info.value.__cause__ is error


def test_transport_for_respects_preference(tmp_path: Path) -> None:
    tcp = transport_for("deeplink-myapp", tmp_path, "tcp")
    assert isinstance(tcp, TCPLoopbackTransport)
    assert tcp.address == str(tmp_path / "deeplink-myapp.endpoint.json")

    assert isinstance(transport_for("deeplink-myapp", tmp_path), DefaultTransport)

    with pytest.raises(ValueError, match="Unknown transport preference"):
        transport_for("deeplink-myapp", tmp_path, "carrier-pigeon")


@pytest.mark.skipif(sys.platform == "win32", reason="Unix sockets are POSIX-only")
def test_transport_for_socket_preference(tmp_path: Path) -> None:
    transport = transport_for("deeplink-myapp", tmp_path, "socket")

    assert isinstance(transport, UnixSocketTransport)
    assert transport.transport_type == "socket"


def test_tcp_endpoint_missing_is_absent(tmp_path: Path) -> None:
    transport = TCPLoopbackTransport(tmp_path / "deeplink-myapp.endpoint.json")

    assert transport.probe(0.1) is False
    with pytest.raises(FileNotFoundError):
        transport.connect(0.1)


def test_tcp_endpoint_of_dead_process_is_absent(monkeypatch, tmp_path: Path) -> None:
    endpoint = tmp_path / "deeplink-myapp.endpoint.json"
    endpoint.write_text(json.dumps({"port": 4242, "pid": 999999}), encoding="utf-8")
    monkeypatch.setattr("deeplink.ipc.transports.pid_exists", lambda _pid: False)

    assert TCPLoopbackTransport(endpoint).probe(0.1) is False


@pytest.mark.parametrize(
    "content",
    ["not json", json.dumps([1, 2]), json.dumps({"port": "x"}), json.dumps({"port": -1})],
)
def test_tcp_malformed_endpoint_is_absent(tmp_path: Path, content: str) -> None:
    endpoint = tmp_path / "deeplink-myapp.endpoint.json"
    endpoint.write_text(content, encoding="utf-8")

    assert TCPLoopbackTransport(endpoint).probe(0.1) is False


def test_tcp_bind_publishes_endpoint_and_cleanup_removes_it(tmp_path: Path) -> None:
    endpoint = tmp_path / "deeplink-myapp.endpoint.json"
    transport = TCPLoopbackTransport(endpoint)

    listener = transport.bind()
    try:
        data = json.loads(endpoint.read_text(encoding="utf-8"))
        assert data == {"port": listener.getsockname()[1], "pid": os.getpid()}
        assert transport.probe(0.5) is True
    finally:
        transport.cleanup(listener)

    assert not endpoint.exists()
    assert transport.probe(0.1) is False


def test_tcp_cleanup_leaves_successor_endpoint(tmp_path: Path) -> None:
    endpoint = tmp_path / "deeplink-myapp.endpoint.json"
    transport = TCPLoopbackTransport(endpoint)
    listener = transport.bind()
    endpoint.write_text(json.dumps({"port": 1, "pid": os.getpid()}), encoding="utf-8")

    transport.cleanup(listener)

    assert endpoint.exists()


def test_tcp_bind_refuses_served_channel(tmp_path: Path) -> None:
    endpoint = tmp_path / "deeplink-myapp.endpoint.json"
    owner = TCPLoopbackTransport(endpoint)
    listener = owner.bind()
    try:
        with pytest.raises(IpcError, match="already being served"):
            TCPLoopbackTransport(endpoint).bind()
    finally:
        owner.cleanup(listener)


@pytest.mark.skipif(sys.platform == "win32", reason="Unix sockets are POSIX-only")
class TestUnixSocketTransport:
    def test_bind_reclaims_stale_socket_file(self, runtime_dir: Path) -> None:
        path = runtime_dir / "deeplink-myapp.sock"
        stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        stale.bind(str(path))
        stale.close()
        assert path.exists()

        transport = UnixSocketTransport(path)
        assert transport.probe(0.1) is False

        listener = transport.bind()
        try:
            assert transport.probe(0.5) is True
            assert (path.stat().st_mode & 0o777) == 0o600
        finally:
            transport.cleanup(listener)
        assert not path.exists()

    def test_bind_refuses_served_channel(self, runtime_dir: Path) -> None:
        path = runtime_dir / "deeplink-myapp.sock"
        owner = UnixSocketTransport(path)
        listener = owner.bind()
        try:
            with pytest.raises(IpcError, match="already being served"):
                UnixSocketTransport(path).bind()
            assert path.exists()
        finally:
            owner.cleanup(listener)

    def test_missing_socket_is_absent(self, runtime_dir: Path) -> None:
        transport = UnixSocketTransport(runtime_dir / "deeplink-nothing.sock")

        assert transport.probe(0.1) is False
