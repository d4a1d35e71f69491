"""busprobe - Command-line probes for Modbus TCP devices and NATS servers."""

from busprobe.modbus_client import ModbusClient
from busprobe.nats_client import NatsClient

__version__ = "0.1.0"

__all__ = ["ModbusClient", "NatsClient", "__version__"]
