"""Shared fixtures: in-process stand-ins for the pymodbus and nats-py clients."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

# =============================================================================
# Modbus fakes
# =============================================================================


class FakeResult:
    """Minimal pymodbus response."""

    def __init__(self, registers: list[int] | None = None, error: bool = False) -> None:
        self.registers = registers or []
        self.error = error

    def isError(self) -> bool:  # noqa: N802
        return self.error

    def __str__(self) -> str:
        return "ExceptionResponse(dev_id=1, function_code=131, exception_code=2)"


class FakeModbusTcpClient:
    """Records every request; serves registers from a shared table."""

    instances: list[FakeModbusTcpClient] = []
    registers: dict[int, int] = {}
    refuse_connection = False
    fail_requests = False
    on_read: Callable[[FakeModbusTcpClient], None] | None = None

    def __init__(self, host: str, port: int = 502, timeout: float = 3.0) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.connected = False
        self.closed = False
        self.calls: list[tuple[Any, ...]] = []
        FakeModbusTcpClient.instances.append(self)

    async def connect(self) -> bool:
        self.connected = not self.refuse_connection
        return self.connected

    def close(self) -> None:
        self.connected = False
        self.closed = True

    def _read(self, name: str, address: int, count: int, device_id: int) -> FakeResult:
        self.calls.append((name, address, count, device_id))
        if FakeModbusTcpClient.on_read is not None:
            FakeModbusTcpClient.on_read(self)
        if self.fail_requests:
            return FakeResult(error=True)
        return FakeResult([self.registers.get(address + i, 0) for i in range(count)])

    async def read_holding_registers(
        self, address: int, *, count: int = 1, device_id: int = 1
    ) -> FakeResult:
        return self._read("read_holding_registers", address, count, device_id)

    async def read_input_registers(
        self, address: int, *, count: int = 1, device_id: int = 1
    ) -> FakeResult:
        return self._read("read_input_registers", address, count, device_id)

    async def write_register(
        self, address: int, value: int, *, device_id: int = 1
    ) -> FakeResult:
        self.calls.append(("write_register", address, value, device_id))
        if self.fail_requests:
            return FakeResult(error=True)
        self.registers[address] = value
        return FakeResult()


@pytest.fixture
def fake_modbus(monkeypatch):
    """Replace pymodbus's TCP client with FakeModbusTcpClient."""
    monkeypatch.setattr(FakeModbusTcpClient, "instances", [])
    monkeypatch.setattr(FakeModbusTcpClient, "registers", {})
    monkeypatch.setattr(FakeModbusTcpClient, "refuse_connection", False)
    monkeypatch.setattr(FakeModbusTcpClient, "fail_requests", False)
    monkeypatch.setattr(FakeModbusTcpClient, "on_read", None)
    monkeypatch.setattr(
        "busprobe.modbus_client.AsyncModbusTcpClient", FakeModbusTcpClient
    )
    return FakeModbusTcpClient


# =============================================================================
# NATS fakes
# =============================================================================


@dataclass
class FakeMsg:
    subject: str
    data: bytes
    headers: dict[str, str] | None = None


class FakeSubscription:
    """Replays the queued messages through ``messages``."""

    def __init__(self, subject: str, queued: list[FakeMsg]) -> None:
        self.subject = subject
        self._queued = list(queued)
        self.delivered = 0
        self.unsubscribed = False

    @property
    async def messages(self):
        for msg in self._queued:
            self.delivered += 1
            yield msg

    async def unsubscribe(self) -> None:
        self.unsubscribed = True


class FakeNatsConnection:
    def __init__(self, options: dict[str, Any], inbound: list[FakeMsg]) -> None:
        self.options = options
        self.inbound = inbound
        self.subscriptions: list[FakeSubscription] = []
        self.published: list[tuple[str, bytes]] = []
        self.flushed = False
        self.is_closed = False

    async def subscribe(self, subject: str) -> FakeSubscription:
        sub = FakeSubscription(subject, self.inbound)
        self.subscriptions.append(sub)
        return sub

    async def publish(self, subject: str, payload: bytes = b"") -> None:
        self.published.append((subject, payload))

    async def flush(self) -> None:
        self.flushed = True

    async def drain(self) -> None:
        self.is_closed = True


@dataclass
class FakeNatsServer:
    """Controls what ``nats.connect`` returns."""

    inbound: list[FakeMsg] = field(default_factory=list)
    connections: list[FakeNatsConnection] = field(default_factory=list)
    refuse_connection: bool = False
    hang: bool = False

    def queue(self, subject: str, data: bytes, headers: dict[str, str] | None = None) -> None:
        self.inbound.append(FakeMsg(subject, data, headers))

    async def connect(self, **options: Any) -> FakeNatsConnection:
        if self.refuse_connection:
            raise OSError("Connection refused")
        if self.hang:
            await asyncio.sleep(3600)
        conn = FakeNatsConnection(options, self.inbound)
        self.connections.append(conn)
        return conn


@pytest.fixture
def fake_nats(monkeypatch):
    """Replace ``nats.connect`` with an in-process fake server."""
    server = FakeNatsServer()
    monkeypatch.setattr("busprobe.nats_client.nats.connect", server.connect)
    return server
