"""Core Modbus TCP client wrapper for register reads and writes."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException

from busprobe.options import DEFAULT_TIMEOUT, DEFAULT_UNIT_ID, ReadRegisterOptions

logger = logging.getLogger(__name__)


def format_value(value: int, presentation: str) -> str:
    """Format a single 16-bit register value.

    Args:
        value: Raw register value
        presentation: 'dec' or 'hex'

    Returns:
        Decimal text (``255``) or hexadecimal text (``0xff``)
    """
    if presentation == "hex":
        return hex(value)
    return str(value)


def format_registers(values: list[int], presentation: str = "dec") -> str:
    """Format register values as a single output line.

    Each value is rendered as a string and the whole result as a list, e.g.
    ``["0xff", "0x1"]``.
    """
    return json.dumps([format_value(v, presentation) for v in values])


class ModbusClient:
    """Modbus TCP client bound to a single unit id."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 502,
        unit_id: int = DEFAULT_UNIT_ID,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize Modbus client.

        Args:
            host: TCP host address
            port: TCP port
            unit_id: Modbus slave/unit ID bound to every request
            timeout: Request timeout in seconds
        """
        self.host = host
        self.port = port
        self.unit_id = unit_id
        self.timeout = timeout

        self._client: AsyncModbusTcpClient | None = None
        self._running = False
        self._connected = False

    def _create_client(self) -> AsyncModbusTcpClient:
        """Create the underlying pymodbus client."""
        return AsyncModbusTcpClient(
            host=self.host,
            port=self.port,
            timeout=self.timeout,
        )

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def _connection_str(self) -> str:
        """Get connection string for logging."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    async def connect(self) -> None:
        """Connect to the Modbus device.

        Raises:
            ConnectionException: If the TCP connection cannot be established
        """
        self._client = self._create_client()
        await self._client.connect()
        self._connected = self._client.connected
        if not self._connected:
            raise ConnectionException(f"Failed to connect to {self._connection_str}")
        logger.info(f"Connected to Modbus tcp://{self._connection_str}")

    async def disconnect(self) -> None:
        """Disconnect from Modbus device."""
        if self._client:
            self._client.close()
            self._connected = False
            logger.debug("Disconnected from Modbus device")

    def _require_client(self) -> AsyncModbusTcpClient:
        if not self._client or not self._connected:
            raise ConnectionException(f"Not connected to {self._connection_str}")
        return self._client

    async def read_holding_registers(self, address: int, count: int = 1) -> list[int]:
        """Read holding registers.

        Args:
            address: Starting register address
            count: Number of registers to read

        Returns:
            List of register values in address order

        Raises:
            ModbusException: On an exception response or transport error
        """
        client = self._require_client()
        result = await client.read_holding_registers(
            address, count=count, device_id=self.unit_id
        )
        if result.isError():
            raise ModbusException(f"Read error at address {address}: {result}")
        return list(result.registers[:count])

    async def read_input_registers(self, address: int, count: int = 1) -> list[int]:
        """Read input registers.

        Args:
            address: Starting register address
            count: Number of registers to read

        Returns:
            List of register values in address order

        Raises:
            ModbusException: On an exception response or transport error
        """
        client = self._require_client()
        result = await client.read_input_registers(
            address, count=count, device_id=self.unit_id
        )
        if result.isError():
            raise ModbusException(f"Read error at address {address}: {result}")
        return list(result.registers[:count])

    async def read_registers(self, kind: str, address: int, count: int = 1) -> list[int]:
        """Read registers of the given kind ('holding' or 'input')."""
        if kind == "holding":
            return await self.read_holding_registers(address, count)
        elif kind == "input":
            return await self.read_input_registers(address, count)
        raise ValueError(f"Invalid register kind '{kind}'")

    async def write_register(self, address: int, value: int) -> None:
        """Write single holding register.

        Args:
            address: Register address
            value: Value to write

        Raises:
            ModbusException: On an exception response or transport error
        """
        client = self._require_client()
        result = await client.write_register(address, value, device_id=self.unit_id)
        if result.isError():
            raise ModbusException(f"Write error at address {address}: {result}")
        logger.info(f"Wrote {value} to register {address} on unit {self.unit_id}")

    async def poll(self, options: ReadRegisterOptions) -> AsyncIterator[list[int]]:
        """Read registers repeatedly on the open connection.

        Yields one result per read. Without ``options.watch`` exactly one read
        is issued; with it, reads continue until :meth:`stop` is called.
        """
        self._running = True
        while self._running:
            values = await self.read_registers(options.kind, options.address, options.count)
            yield values

            if not options.watch:
                break
            await asyncio.sleep(options.interval)

    def stop(self) -> None:
        """Stop any running poll loop."""
        self._running = False
        logger.info("ModbusClient stopped")
