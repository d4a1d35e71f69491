"""Typed operation requests built from command-line input.

Each command-line invocation maps onto exactly one of these dataclasses.
Validation happens in ``__post_init__`` so a bad request is rejected before
any connection is opened.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Supported register kinds (Modbus protocol)
REGISTER_KINDS = {"holding", "input"}

# Supported output presentations for register values
PRESENTATIONS = {"dec", "hex"}

DEFAULT_UNIT_ID = 1
DEFAULT_COUNT = 1
DEFAULT_PRESENTATION = "dec"
DEFAULT_TIMEOUT = 3.0

UINT16_MAX = 0xFFFF
UINT8_MAX = 0xFF

# Reserved subject namespace used by the NATS client for request/reply
INBOX_PREFIX = "_INBOX"

# Wildcard subject matching all traffic
ALL_SUBJECTS = ">"


def _check_range(name: str, value: int, maximum: int, minimum: int = 0) -> None:
    if not minimum <= value <= maximum:
        msg = f"Invalid {name} {value}. Must be between {minimum} and {maximum}"
        raise ValueError(msg)


def parse_socket_address(text: str) -> tuple[str, int]:
    """Parse an ``ip:port`` socket address.

    IPv6 addresses must be bracketed (``[::1]:502``). Host names are not
    resolved; the host part must be an IP literal.

    Args:
        text: Address string from the command line

    Returns:
        Tuple of (host, port)

    Raises:
        ValueError: If the address or port is malformed
    """
    if text.startswith("["):
        host, sep, port_text = text[1:].partition("]:")
        if not sep:
            raise ValueError("invalid socket address syntax")
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep or ":" in host:
            raise ValueError("invalid socket address syntax")

    try:
        ip = ipaddress.ip_address(host)
    except ValueError as e:
        raise ValueError(f"invalid IP address '{host}'") from e

    if not port_text.isdigit():
        raise ValueError(f"invalid port '{port_text}'")
    port = int(port_text)
    _check_range("port", port, UINT16_MAX)

    return str(ip), port


def normalize_server_url(address: str) -> str:
    """Prefix a bare ``host:port`` NATS address with the ``nats://`` scheme."""
    if "://" in address:
        return address
    return f"nats://{address}"


@dataclass
class ReadRegisterOptions:
    """A register read request."""

    address: int
    kind: str
    unit_id: int = DEFAULT_UNIT_ID
    count: int = DEFAULT_COUNT
    watch: bool = False
    presentation: str = DEFAULT_PRESENTATION
    interval: float = 0.0

    def __post_init__(self) -> None:
        """Validate read request."""
        if self.kind not in REGISTER_KINDS:
            msg = f"Invalid register kind '{self.kind}'. Must be one of {REGISTER_KINDS}"
            raise ValueError(msg)
        if self.presentation not in PRESENTATIONS:
            msg = (
                f"Invalid presentation '{self.presentation}'. "
                f"Must be one of {PRESENTATIONS}"
            )
            raise ValueError(msg)
        _check_range("address", self.address, UINT16_MAX)
        _check_range("unit id", self.unit_id, UINT8_MAX)
        _check_range("count", self.count, UINT16_MAX, minimum=1)
        if self.interval < 0:
            raise ValueError(f"Invalid interval {self.interval}. Must not be negative")


@dataclass
class WriteRegisterOptions:
    """A single holding register write request."""

    address: int
    value: int
    unit_id: int = DEFAULT_UNIT_ID

    def __post_init__(self) -> None:
        """Validate write request."""
        _check_range("address", self.address, UINT16_MAX)
        _check_range("value", self.value, UINT16_MAX)
        _check_range("unit id", self.unit_id, UINT8_MAX)


@dataclass
class NatsAuth:
    """NATS credentials.

    Valid configurations are username and password together, a token alone,
    or nothing at all.
    """

    username: str | None = None
    password: str | None = None
    token: str | None = None

    def __post_init__(self) -> None:
        """Reject ambiguous or incomplete credential combinations."""
        has_user = self.username is not None
        has_password = self.password is not None
        has_token = self.token is not None

        if has_user and has_password and has_token:
            raise ValueError(
                "Username and password, token specified. Can't decide which to use."
            )
        if has_user and not has_password:
            raise ValueError("Username but no password specified.")
        if has_password and not has_user:
            raise ValueError("Password but no username specified.")

    @property
    def mode(self) -> str:
        """Authentication mode: 'user_password', 'token' or 'none'."""
        if self.username is not None:
            return "user_password"
        if self.token is not None:
            return "token"
        return "none"

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``nats.connect`` carrying these credentials."""
        mode = self.mode
        if mode == "user_password":
            logger.info("Using username and password to connect to nats.")
            return {"user": self.username, "password": self.password}
        if mode == "token":
            logger.info("Using token to connect to nats")
            return {"token": self.token}
        logger.info("No authentication specified")
        return {}


@dataclass
class SubscribeOptions:
    """A subscription request."""

    subject: str
    watch: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.subject:
            raise ValueError("Subject must not be empty")


@dataclass
class PublishOptions:
    """A single publish request."""

    subject: str
    message: str

    def __post_init__(self) -> None:
        if not self.subject:
            raise ValueError("Subject must not be empty")

    @property
    def payload(self) -> bytes:
        return self.message.encode("utf-8")


@dataclass
class ListSubjectsOptions:
    """A subject discovery request."""

    filter_response: bool = False

    def is_visible(self, subject: str) -> bool:
        """Whether a subject should be reported under the current filter."""
        return not (self.filter_response and subject.startswith(INBOX_PREFIX))
