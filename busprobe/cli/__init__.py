"""CLI module for busprobe."""

from busprobe.cli.modbus_tool import modbus_tool
from busprobe.cli.nats_tool import nats_tool

__all__ = ["modbus_tool", "nats_tool"]
