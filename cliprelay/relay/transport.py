"""TCP transport primitives for the relay.

Every exchange uses a fresh connection: a one-shot listener accepts exactly
one inbound connection and stops listening, and outbound connections are
opened per message and closed once written.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from cliprelay.core.address import PeerAddress

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    """An accepted or opened TCP connection."""
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @property
    def peer(self) -> tuple:
        return self.writer.get_extra_info("peername")

    async def close(self) -> None:
        await close_writer(self.writer)


async def close_writer(writer: Optional[asyncio.StreamWriter]) -> None:
    """Close a writer, logging rather than raising if the peer already went away."""
    if writer is None:
        return
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as e:
        logger.debug(f"Error while closing connection: {e}")


async def open_connection(address: PeerAddress) -> Connection:
    """
    Connect to ``address`` with the operating system's default timeout.

    Raises:
        OSError: If the connection cannot be established
    """
    reader, writer = await asyncio.open_connection(address.host, address.port)
    return Connection(reader, writer)


class OneShotListener:
    """
    Listening socket that accepts exactly one connection.

    Usage:
        listener = OneShotListener(address)
        await listener.start()
        connection = await listener.accept()

    The listening socket is closed as soon as the first connection arrives;
    any connection racing in behind it is closed immediately.
    """

    def __init__(self, address: PeerAddress):
        self.address = address
        self._server: Optional[asyncio.AbstractServer] = None
        self._accepted: Optional[asyncio.Future] = None

    async def start(self) -> None:
        """
        Bind and start listening.

        Raises:
            OSError: If the address cannot be bound
        """
        self._accepted = asyncio.get_running_loop().create_future()
        self._server = await asyncio.start_server(
            self._on_connect, self.address.host, self.address.port
        )
        logger.info(f"Listening on {self.address}")

    def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._accepted.done():
            writer.close()
            return
        self._accepted.set_result(Connection(reader, writer))
        self.close()

    async def accept(self) -> Connection:
        """Wait for the one inbound connection."""
        try:
            connection = await self._accepted
        finally:
            self.close()
        logger.info(f"Accepted connection from {connection.peer}")
        return connection

    def close(self) -> None:
        # wait_closed() would also wait for the accepted connection to finish
        if self._server is not None:
            self._server.close()
            self._server = None
