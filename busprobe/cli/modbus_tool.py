"""Modbus register tool: read and write holding/input registers over TCP."""

from __future__ import annotations

import asyncio
import logging
import sys

import rich_click as click
from pymodbus.exceptions import ModbusException

from busprobe import __version__
from busprobe.cli.common import (
    LOG_LEVEL_ENVVAR,
    LOG_LEVELS,
    set_shutdown_client,
    setup_logging,
)
from busprobe.modbus_client import ModbusClient, format_registers
from busprobe.options import (
    DEFAULT_COUNT,
    DEFAULT_PRESENTATION,
    DEFAULT_TIMEOUT,
    DEFAULT_UNIT_ID,
    PRESENTATIONS,
    REGISTER_KINDS,
    UINT8_MAX,
    UINT16_MAX,
    ReadRegisterOptions,
    WriteRegisterOptions,
    parse_socket_address,
)

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="modbus-tool")
@click.argument("target", type=str)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar=LOG_LEVEL_ENVVAR,
    help="Logging level",
)
@click.pass_context
def modbus_tool(ctx: click.Context, target: str, log_level: str) -> None:
    """Read and write Modbus TCP registers.

    TARGET is the device socket address (e.g., 192.168.1.100:502).
    """
    setup_logging(log_level)

    try:
        host, port = parse_socket_address(target)
    except ValueError as e:
        logger.error(f"Unable to parse address {target}: {e}")
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["host"] = host
    ctx.obj["port"] = port

    if ctx.invoked_subcommand is None:
        logger.warning("No subcommand specified.")
        sys.exit(1)


async def _read(client: ModbusClient, options: ReadRegisterOptions) -> None:
    await client.connect()
    try:
        async for values in client.poll(options):
            click.echo(format_registers(values, options.presentation))
    finally:
        await client.disconnect()


async def _write(client: ModbusClient, options: WriteRegisterOptions) -> None:
    await client.connect()
    try:
        await client.write_register(options.address, options.value)
    finally:
        await client.disconnect()


@modbus_tool.command("read-register")
@click.option(
    "--address",
    "-a",
    type=click.IntRange(0, UINT16_MAX),
    required=True,
    help="Starting register address",
)
@click.option(
    "--kind",
    "-k",
    type=click.Choice(sorted(REGISTER_KINDS)),
    required=True,
    help="Register kind",
)
@click.option("--watch", "-w", type=bool, default=False, help="Read until interrupted")
@click.option(
    "--unit-id",
    "-u",
    type=click.IntRange(0, UINT8_MAX),
    default=DEFAULT_UNIT_ID,
    help="Modbus unit/slave ID",
)
@click.option(
    "--count",
    "-c",
    type=click.IntRange(1, UINT16_MAX),
    default=DEFAULT_COUNT,
    help="Number of registers to read",
)
@click.option(
    "--presentation",
    "-p",
    type=click.Choice(sorted(PRESENTATIONS)),
    default=DEFAULT_PRESENTATION,
    help="Output format for register values",
)
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0.0),
    default=0.0,
    help="Delay between reads in watch mode, in seconds",
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    help="Request timeout in seconds",
)
@click.pass_context
def read_register(
    ctx: click.Context,
    address: int,
    kind: str,
    watch: bool,
    unit_id: int,
    count: int,
    presentation: str,
    interval: float,
    timeout: float,
) -> None:
    """Read holding or input registers and print them on one line.

    \b
    Examples:
        modbus-tool 127.0.0.1:5502 read-register --address 420 --kind holding
        modbus-tool 127.0.0.1:5502 read-register -a 420 -k input -c 4 -p hex -w true
    """
    options = ReadRegisterOptions(
        address=address,
        kind=kind,
        unit_id=unit_id,
        count=count,
        watch=watch,
        presentation=presentation,
        interval=interval,
    )
    client = ModbusClient(
        host=ctx.obj["host"], port=ctx.obj["port"], unit_id=unit_id, timeout=timeout
    )
    set_shutdown_client(client)

    try:
        asyncio.run(_read(client, options))
    except (ModbusException, OSError) as e:
        logger.error(f"Received error. Aborting: {e}")
        sys.exit(1)


@modbus_tool.command("write-register")
@click.option(
    "--address",
    "-a",
    type=click.IntRange(0, UINT16_MAX),
    required=True,
    help="Register address",
)
@click.option(
    "--value",
    "-v",
    type=click.IntRange(0, UINT16_MAX),
    required=True,
    help="16-bit value to write",
)
@click.option(
    "--unit-id",
    "-u",
    type=click.IntRange(0, UINT8_MAX),
    default=DEFAULT_UNIT_ID,
    help="Modbus unit/slave ID",
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    help="Request timeout in seconds",
)
@click.pass_context
def write_register(
    ctx: click.Context, address: int, value: int, unit_id: int, timeout: float
) -> None:
    """Write a single holding register.

    \b
    Examples:
        modbus-tool 127.0.0.1:5502 write-register --address 420 --value 2
    """
    options = WriteRegisterOptions(address=address, value=value, unit_id=unit_id)
    client = ModbusClient(
        host=ctx.obj["host"], port=ctx.obj["port"], unit_id=unit_id, timeout=timeout
    )

    try:
        asyncio.run(_write(client, options))
    except (ModbusException, OSError) as e:
        logger.error(f"Unable to write modbus address: {e}")
        sys.exit(1)
