"""Inference node: accumulate a prompt, run the engine, stream chunks back.

State machine (no terminal state):

    LISTENING -> ACCUMULATING -> INFERRING -> STREAMING -> LISTENING

Engine errors abort the session and propagate out of ``run``; the node
never serves another session after one.
"""

import asyncio
import logging
from typing import Optional

from cliprelay.core.address import PeerAddress
from cliprelay.engines.base import Chunk, Completion, GenerationParams, InferenceEngine
from cliprelay.relay.protocol import read_message
from cliprelay.relay.state import InferenceSession, InferenceState
from cliprelay.relay.transport import Connection, OneShotListener, open_connection

logger = logging.getLogger(__name__)


class InferenceNode:
    """
    Drives the inference side of the relay.

    The response goes back to the IP the prompt came from, on the
    configured ``client_port``, over a new outbound connection.
    """

    def __init__(
        self,
        listen_address: PeerAddress,
        client_port: int,
        engine: InferenceEngine,
        params: Optional[GenerationParams] = None,
    ):
        self.listen_address = listen_address
        self.client_port = client_port
        self.engine = engine
        self.params = params or GenerationParams()
        self.ready = asyncio.Event()

    async def run(self) -> None:
        """
        Run sessions forever.

        Raises:
            EngineError: When the engine reports an internal, validation
                or model error
        """
        session = InferenceSession()
        while True:
            session = await self.step(session)

    async def run_session(self) -> InferenceSession:
        """Run one session: from listening back to listening."""
        session = await self.step(InferenceSession())
        while session.state is not InferenceState.LISTENING:
            session = await self.step(session)
        return session

    async def step(self, session: InferenceSession) -> InferenceSession:
        """Perform the work of ``session.state`` and return the next state."""
        if session.state is InferenceState.LISTENING:
            return await self._listen()
        if session.state is InferenceState.ACCUMULATING:
            return await self._accumulate(session)
        if session.state is InferenceState.INFERRING:
            return self._infer(session)
        return await self._stream(session)

    async def _listen(self) -> InferenceSession:
        listener = OneShotListener(self.listen_address)
        await listener.start()
        self.ready.set()
        try:
            connection = await listener.accept()
        finally:
            self.ready.clear()

        destination = PeerAddress.from_peername(connection.peer, self.client_port)
        logger.info(f"Will send response back to {destination}")
        return InferenceSession(
            InferenceState.ACCUMULATING, connection=connection, destination=destination
        )

    async def _accumulate(self, session: InferenceSession) -> InferenceSession:
        try:
            prompt = await read_message(session.connection.reader)
        finally:
            await session.connection.close()

        logger.info(f"Received prompt ({len(prompt.encode('utf-8'))} bytes): {prompt!r}")
        return InferenceSession(
            InferenceState.INFERRING, destination=session.destination, prompt=prompt
        )

    def _infer(self, session: InferenceSession) -> InferenceSession:
        events = self.engine.submit(session.prompt, self.params)
        return InferenceSession(
            InferenceState.STREAMING,
            destination=session.destination,
            prompt=session.prompt,
            events=events,
        )

    async def _stream(self, session: InferenceSession) -> InferenceSession:
        connection: Optional[Connection] = None
        try:
            connection = await open_connection(session.destination)
        except OSError as e:
            logger.warning(f"Failed to connect to {session.destination}: {e}")

        sent = 0
        try:
            async for event in session.events:
                if isinstance(event, Chunk):
                    sent += await self._forward(connection, event.text, session.destination)
                elif isinstance(event, Completion):
                    logger.info(f"Generation complete: {event.describe()}")
        finally:
            if connection is not None:
                await connection.close()

        logger.info(f"Sent {sent} bytes to {session.destination}")
        return InferenceSession()

    async def _forward(
        self, connection: Optional[Connection], text: str, destination: PeerAddress
    ) -> int:
        """Write one chunk, best-effort. Returns the number of bytes written."""
        data = text.encode("utf-8")
        if connection is None or connection.writer.is_closing():
            logger.warning(f"Dropped {len(data)} bytes for {destination}: not connected")
            return 0
        try:
            connection.writer.write(data)
            await connection.writer.drain()
        except OSError as e:
            logger.warning(f"Failed to write {len(data)} bytes to {destination}: {e}")
            return 0
        return len(data)
