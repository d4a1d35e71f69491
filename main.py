#!/usr/bin/env python3
"""busprobe - CLI entry point.

Runs either of the two probes from a checkout. Installed distributions also
expose them directly as ``modbus-tool`` and ``nats-tool``.

Examples:
    # Write then read back a holding register
    uv run main.py modbus 127.0.0.1:5502 write-register --address 420 --value 2
    uv run main.py modbus 127.0.0.1:5502 read-register --address 420 --kind holding -p hex

    # Watch a NATS subject
    uv run main.py nats 127.0.0.1:4222 subscribe --subject sensors.temp --watch true
"""

from __future__ import annotations

import rich_click as click

from busprobe.cli import modbus_tool, nats_tool


@click.group()
def cli() -> None:
    """busprobe - Probe Modbus TCP devices and NATS servers."""


cli.add_command(modbus_tool, "modbus")
cli.add_command(nats_tool, "nats")


if __name__ == "__main__":
    cli()
