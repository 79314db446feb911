"""RoadQueue Fakes Connection - Connection Bootstrap.

A thin stand-in for a client connection: it hands out channels over a
``BrokerState`` and records, but never uses, the usual network settings.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from roadqueue_fakes.broker.broker import BrokerState
from roadqueue_fakes.channel.channel import REPLY_SUCCESS, Channel, ShutdownReason
from roadqueue_fakes.errors import AlreadyClosedError

logger = logging.getLogger(__name__)


@dataclass
class ConnectionParameters:
    """Connection settings.

    None of these are interpreted; they exist so client code that sets
    them runs unchanged.

    Attributes:
        host: Broker host
        port: Broker port
        virtual_host: Virtual host
        username: Login user
        password: Login password
        heartbeat: Heartbeat interval in seconds
        channel_max: Requested maximum channel number
        frame_max: Requested maximum frame size
        client_properties: Properties reported to the broker
    """

    host: str = "localhost"
    port: int = 5672
    virtual_host: str = "/"
    username: str = "guest"
    password: str = "guest"
    heartbeat: int = 60
    channel_max: int = 2047
    frame_max: int = 131072
    client_properties: Dict[str, Any] = field(default_factory=dict)


class Connection:
    """Factory for channels over one broker state."""

    def __init__(
        self,
        state: BrokerState,
        parameters: Optional[ConnectionParameters] = None,
        client_provided_name: str = "",
    ):
        self.state = state
        self.parameters = parameters or ConnectionParameters()
        self.client_provided_name = client_provided_name

        self._channels: List[Channel] = []
        self._last_channel_number = 0
        self._lock = threading.RLock()
        self._close_reason: Optional[ShutdownReason] = None

    @property
    def is_open(self) -> bool:
        return self._close_reason is None

    @property
    def close_reason(self) -> Optional[ShutdownReason]:
        return self._close_reason

    @property
    def channels(self) -> List[Channel]:
        """Channels opened on this connection that are still open."""
        with self._lock:
            return [channel for channel in self._channels if channel.is_open]

    def channel(self) -> Channel:
        """Open a new channel.

        Raises:
            AlreadyClosedError: If the connection is closed
        """
        with self._lock:
            if not self.is_open:
                raise AlreadyClosedError(self._close_reason)
            self._last_channel_number += 1
            channel = Channel(self.state, channel_number=self._last_channel_number)
            self._channels.append(channel)

        logger.debug(f"Opened channel {channel.channel_number}")
        return channel

    def force_open(self) -> None:
        """Reopen a closed connection."""
        with self._lock:
            self._close_reason = None

    def close(self, reply_code: int = REPLY_SUCCESS, reply_text: str = "Goodbye") -> None:
        """Close the connection and its channels.

        Raises:
            AlreadyClosedError: If the connection is already closed
        """
        self._close(reply_code, reply_text, abort=False)

    def abort(self, reply_code: int = REPLY_SUCCESS, reply_text: str = "Goodbye") -> None:
        """Close the connection and its channels, never raising."""
        self._close(reply_code, reply_text, abort=True)

    def _close(self, reply_code: int, reply_text: str, abort: bool) -> None:
        with self._lock:
            if not self.is_open:
                if abort:
                    return
                raise AlreadyClosedError(self._close_reason)
            self._close_reason = ShutdownReason("application", reply_code, reply_text)
            channels = list(self._channels)
            self._channels.clear()

        for channel in channels:
            # Channels the caller already closed are skipped, not re-closed
            channel.abort(reply_code, reply_text)

        logger.info(f"Connection {self.client_provided_name!r} closed")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.abort()


class ConnectionFactory:
    """Creates the single connection to an in-memory broker.

    Example:
        factory = ConnectionFactory()
        with factory.create_connection() as connection:
            with connection.channel() as channel:
                channel.declare_queue("jobs")
    """

    def __init__(
        self,
        state: Optional[BrokerState] = None,
        parameters: Optional[ConnectionParameters] = None,
    ):
        """Initialize factory.

        Args:
            state: Broker to connect to, a fresh one if not given
            parameters: Connection settings
        """
        self.state = state or BrokerState()
        self.parameters = parameters or ConnectionParameters()
        self._connection: Optional[Connection] = None
        self._lock = threading.Lock()

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    def create_connection(self, client_provided_name: str = "") -> Connection:
        """Get the connection, creating or reopening it as needed."""
        with self._lock:
            if self._connection is None:
                self._connection = Connection(
                    self.state,
                    parameters=self.parameters,
                    client_provided_name=client_provided_name,
                )
            else:
                self._connection.force_open()
            return self._connection


__all__ = [
    "Connection",
    "ConnectionFactory",
    "ConnectionParameters",
]
