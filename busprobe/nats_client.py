"""Core NATS client wrapper for subscribe, publish and subject discovery."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import nats

from busprobe.options import (
    ALL_SUBJECTS,
    DEFAULT_TIMEOUT,
    INBOX_PREFIX,
    ListSubjectsOptions,
    NatsAuth,
    PublishOptions,
    SubscribeOptions,
    normalize_server_url,
)

if TYPE_CHECKING:
    from nats.aio.client import Client
    from nats.aio.msg import Msg

logger = logging.getLogger(__name__)

# Header keys nats-py uses for status messages
STATUS_HDR = "Status"
DESC_HDR = "Description"


def decode_payload(data: bytes) -> str:
    """Decode a message payload as UTF-8 text.

    Raises:
        ValueError: If the payload is not valid UTF-8
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(
            "Unable to parse message into utf-8. Raw byte payloads are not displayed."
        ) from e


def format_message(msg: Msg, payload: str, verbose: bool = False) -> list[str]:
    """Render a received message as output lines.

    Args:
        msg: Received message
        payload: Decoded payload text
        verbose: Include description, status and subject

    Returns:
        Lines to print, in order
    """
    if not verbose:
        return [payload]

    headers = msg.headers or {}
    return [
        f"Description: {headers.get(DESC_HDR)!r}",
        f"Status: {headers.get(STATUS_HDR)!r}",
        f"Subject: {msg.subject}",
        f"Payload: {payload}",
    ]


class NatsClient:
    """NATS client for a single server with optional credentials."""

    def __init__(
        self,
        server: str,
        auth: NatsAuth | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize NATS client.

        Args:
            server: Server URL or bare host:port
            auth: Validated credentials, defaults to no authentication
            timeout: Deadline for the initial connection, in seconds
        """
        self.server = normalize_server_url(server)
        self.auth = auth or NatsAuth()
        self.timeout = timeout

        self._nc: Client | None = None
        self._running = False

    async def _on_disconnected(self) -> None:
        logger.info("Disconnected nats connection")

    async def _on_reconnected(self) -> None:
        logger.info("Nats client reconnected")

    async def _on_error(self, e: Exception) -> None:
        logger.error(f"Nats client received error: {e}")

    async def _on_closed(self) -> None:
        logger.warning("Nats client unused event: closed")

    async def _on_discovered_server(self) -> None:
        logger.warning("Nats client unused event: discovered server")

    async def _on_lame_duck_mode(self) -> None:
        logger.warning("Nats client unused event: lame duck mode")

    async def connect(self) -> None:
        """Connect to the NATS server.

        The initial connection is bounded by ``self.timeout``; nats-py's own
        reconnect handling only applies once connected.

        Raises:
            ConnectionError: If the server is not reached within the timeout
            nats.errors.Error: If no server could be reached
            OSError: On socket level failures
        """
        try:
            self._nc = await asyncio.wait_for(
                nats.connect(
                    servers=[self.server],
                    inbox_prefix=INBOX_PREFIX,
                    connect_timeout=self.timeout,
                    error_cb=self._on_error,
                    disconnected_cb=self._on_disconnected,
                    reconnected_cb=self._on_reconnected,
                    closed_cb=self._on_closed,
                    discovered_server_cb=self._on_discovered_server,
                    lame_duck_mode_cb=self._on_lame_duck_mode,
                    **self.auth.connect_kwargs(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionError(
                f"Timed out connecting to {self.server} after {self.timeout}s"
            ) from e
        logger.info(f"Connected to {self.server}")

    async def close(self) -> None:
        """Drain pending messages and close the connection."""
        if self._nc and not self._nc.is_closed:
            await self._nc.drain()
        self._nc = None

    def _require_connection(self) -> Client:
        if not self._nc:
            raise RuntimeError("Client not connected")
        return self._nc

    async def subscribe(self, options: SubscribeOptions) -> AsyncIterator[list[str]]:
        """Receive messages on a subject.

        Yields the output lines for each message. Stops after the first
        message unless ``options.watch`` is set.

        Raises:
            ValueError: If a payload is not valid UTF-8
        """
        nc = self._require_connection()
        sub = await nc.subscribe(options.subject)
        logger.debug(f"Subscribed to {options.subject}")

        self._running = True
        try:
            async for msg in sub.messages:
                payload = decode_payload(msg.data)
                yield format_message(msg, payload, options.verbose)

                if not options.watch or not self._running:
                    break
        finally:
            await sub.unsubscribe()

    async def publish(self, options: PublishOptions) -> None:
        """Publish a single message and flush it to the server."""
        nc = self._require_connection()
        await nc.publish(options.subject, options.payload)
        await nc.flush()
        logger.info(f"Published {len(options.payload)} bytes to {options.subject}")

    async def list_subjects(self, options: ListSubjectsOptions) -> AsyncIterator[str]:
        """Yield each distinct subject the first time traffic is seen on it."""
        nc = self._require_connection()
        sub = await nc.subscribe(ALL_SUBJECTS)

        seen: set[str] = set()
        self._running = True
        try:
            async for msg in sub.messages:
                if not self._running:
                    break
                if not options.is_visible(msg.subject) or msg.subject in seen:
                    continue
                seen.add(msg.subject)
                yield msg.subject
        finally:
            await sub.unsubscribe()

    def stop(self) -> None:
        """Stop any running receive loop."""
        self._running = False
        logger.info("NatsClient stopped")
