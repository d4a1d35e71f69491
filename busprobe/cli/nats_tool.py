"""NATS messaging tool: subscribe, publish and list active subjects."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import IO

import rich_click as click

from busprobe import __version__
from busprobe.cli.common import (
    LOG_LEVEL_ENVVAR,
    LOG_LEVELS,
    set_shutdown_client,
    setup_logging,
)
from busprobe.nats_client import NatsClient
from busprobe.options import (
    DEFAULT_TIMEOUT,
    ListSubjectsOptions,
    NatsAuth,
    PublishOptions,
    SubscribeOptions,
)

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(__version__, prog_name="nats-tool")
@click.argument("address", type=str)
@click.option("--username", "-u", envvar="BUSPROBE_NATS_USERNAME", help="Username")
@click.option("--password", "-p", envvar="BUSPROBE_NATS_PASSWORD", help="Password")
@click.option("--token", "-t", envvar="BUSPROBE_NATS_TOKEN", help="Authentication token")
@click.option("--verbose", "-v", type=bool, default=False, help="Print message details")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0.0, min_open=True),
    default=DEFAULT_TIMEOUT,
    help="Connection timeout in seconds",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    envvar=LOG_LEVEL_ENVVAR,
    help="Logging level",
)
@click.pass_context
def nats_tool(
    ctx: click.Context,
    address: str,
    username: str | None,
    password: str | None,
    token: str | None,
    verbose: bool,
    timeout: float,
    log_level: str,
) -> None:
    """Subscribe, publish and discover subjects on a NATS server.

    ADDRESS is the server address (e.g., 127.0.0.1:4222 or nats://host:4222).

    Authenticate with --username and --password together, or --token alone.
    """
    setup_logging(log_level)

    try:
        auth = NatsAuth(username=username, password=password, token=token)
    except ValueError as e:
        logger.error(f"Unable to parse options: {e}")
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["client"] = NatsClient(address, auth, timeout=timeout)
    ctx.obj["verbose"] = verbose


def _execute(
    client: NatsClient, operation: Callable[[], Awaitable[None]], error_context: str
) -> None:
    """Connect, run one operation, close, and exit 1 on any failure."""

    async def _main() -> bool:
        try:
            await client.connect()
        except Exception as e:
            logger.error(f"Unable to connect to remote: {e}")
            return False

        try:
            await operation()
        except Exception as e:
            logger.error(f"{error_context}: {e}")
            return False
        finally:
            await client.close()
        return True

    set_shutdown_client(client)
    if not asyncio.run(_main()):
        sys.exit(1)


@nats_tool.command()
@click.option("--subject", "-s", required=True, help="Subject to subscribe to")
@click.option("--watch", "-w", type=bool, default=False, help="Keep receiving messages")
@click.pass_context
def subscribe(ctx: click.Context, subject: str, watch: bool) -> None:
    """Print messages received on a subject.

    Without --watch true, exits after the first message.
    """
    client: NatsClient = ctx.obj["client"]
    try:
        options = SubscribeOptions(
            subject=subject, watch=watch, verbose=ctx.obj["verbose"]
        )
    except ValueError as e:
        logger.error(f"Unable to parse options: {e}")
        sys.exit(1)

    async def _subscribe() -> None:
        async for lines in client.subscribe(options):
            for line in lines:
                click.echo(line)

    _execute(client, _subscribe, "Aborted subscription")


@nats_tool.command()
@click.option("--subject", "-s", required=True, help="Subject to publish on")
@click.option("--message", "-m", help="Message text")
@click.option(
    "--file",
    "-f",
    "message_file",
    type=click.File("r", encoding="utf-8"),
    help="Read the message text from a file",
)
@click.pass_context
def publish(
    ctx: click.Context, subject: str, message: str | None, message_file: IO[str] | None
) -> None:
    """Publish a single text message.

    \b
    Examples:
        nats-tool 127.0.0.1:4222 publish --subject sensors.temp --message 21.5
        nats-tool 127.0.0.1:4222 publish -s config.update -f update.json
    """
    if (message is None) == (message_file is None):
        raise click.UsageError("Specify exactly one of --message or --file")
    if message_file is not None:
        try:
            message = message_file.read()
        except UnicodeDecodeError as e:
            raise click.BadParameter(
                f"{message_file.name} is not valid UTF-8 text: {e}", param_hint="--file"
            ) from e

    client: NatsClient = ctx.obj["client"]
    try:
        options = PublishOptions(subject=subject, message=message)
    except ValueError as e:
        logger.error(f"Unable to parse options: {e}")
        sys.exit(1)

    async def _publish() -> None:
        await client.publish(options)

    _execute(client, _publish, "Could not publish")


@nats_tool.command("list-subjects")
@click.option(
    "--filter-response",
    "-f",
    is_flag=True,
    help="Hide request/reply inbox subjects",
)
@click.pass_context
def list_subjects(ctx: click.Context, filter_response: bool) -> None:
    """Print every distinct subject seen on the server until interrupted."""
    client: NatsClient = ctx.obj["client"]
    options = ListSubjectsOptions(filter_response=filter_response)

    async def _list() -> None:
        async for subject in client.list_subjects(options):
            click.echo(subject)

    _execute(client, _list, "Error while listing topics")
