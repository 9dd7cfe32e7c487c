"""Capture node: hotkey -> send clipboard -> type the streamed response.

State machine (no terminal state):

    WAITING_FOR_HOTKEY --hotkey--> SENDING --sent--> RECEIVING --complete--+
            ^                         |                                    |
            +------connect failed-----+------------------------------------+
"""

import asyncio
import logging
from typing import Optional, Protocol, Set

from cliprelay.core.address import PeerAddress
from cliprelay.desktop.hotkey import HotkeyCombo
from cliprelay.relay.protocol import consume_stream
from cliprelay.relay.state import CaptureSession, CaptureState
from cliprelay.relay.transport import OneShotListener, close_writer, open_connection

logger = logging.getLogger(__name__)


class Clipboard(Protocol):
    def read_text(self) -> Optional[str]: ...


class Keyboard(Protocol):
    def type_text(self, text: str) -> None: ...


class KeyState(Protocol):
    def pressed_keys(self) -> Set[str]: ...


class CaptureNode:
    """
    Drives the capture side of the relay.

    Each session sends one prompt over a fresh outbound connection and
    receives one response over a fresh inbound connection. Sessions run
    strictly one after another.
    """

    def __init__(
        self,
        server: PeerAddress,
        receive_address: PeerAddress,
        clipboard: Clipboard,
        keyboard: Keyboard,
        key_state: KeyState,
        hotkey: HotkeyCombo,
        poll_interval: float = 0.001,
    ):
        """
        Args:
            server: Inference node address prompts are sent to
            receive_address: Local address responses are accepted on
            clipboard: Source of prompt text
            keyboard: Sink for response text
            key_state: Sampled pressed-key set
            hotkey: Combination that triggers a session
            poll_interval: Seconds to sleep between key-state samples
        """
        self.server = server
        self.receive_address = receive_address
        self.clipboard = clipboard
        self.keyboard = keyboard
        self.key_state = key_state
        self.hotkey = hotkey
        self.poll_interval = poll_interval

    async def run(self) -> None:
        """Run sessions forever."""
        session = CaptureSession()
        while True:
            session = await self.step(session)

    async def run_session(self) -> CaptureSession:
        """Run one session: from waiting for the hotkey back to waiting."""
        session = await self.step(CaptureSession())
        while session.state is not CaptureState.WAITING_FOR_HOTKEY:
            session = await self.step(session)
        return session

    async def step(self, session: CaptureSession) -> CaptureSession:
        """Perform the work of ``session.state`` and return the next state."""
        if session.state is CaptureState.WAITING_FOR_HOTKEY:
            return await self._wait_for_hotkey()
        if session.state is CaptureState.SENDING:
            return await self._send(session)
        return await self._receive(session)

    async def _wait_for_hotkey(self) -> CaptureSession:
        logger.info(f"Waiting for hotkey {self.hotkey}")
        while not self.hotkey.matches(self.key_state.pressed_keys()):
            await asyncio.sleep(self.poll_interval)

        text = self.clipboard.read_text()
        if text is None:
            logger.info("No clipboard text available, sending an empty prompt")
            text = ""
        logger.info(f"Clipboard text is: {text!r}")
        return CaptureSession(CaptureState.SENDING, prompt=text.encode("utf-8"))

    async def _send(self, session: CaptureSession) -> CaptureSession:
        try:
            connection = await open_connection(self.server)
        except OSError as e:
            logger.warning(f"Failed to connect to {self.server}: {e}")
            return CaptureSession()

        try:
            connection.writer.write(session.prompt)
            await connection.writer.drain()
        except OSError as e:
            logger.warning(f"Failed to send {len(session.prompt)} bytes to {self.server}: {e}")
            await connection.close()
            return CaptureSession()

        logger.info(f"Sent {len(session.prompt)} bytes to {self.server}")
        return CaptureSession(CaptureState.RECEIVING, outbound=connection.writer)

    async def _receive(self, session: CaptureSession) -> CaptureSession:
        listener = OneShotListener(self.receive_address)
        try:
            await listener.start()
        except OSError as e:
            logger.error(f"Cannot listen on {self.receive_address}: {e}")
            await close_writer(session.outbound)
            return CaptureSession()

        # The peer sees end-of-prompt only once we are ready for its answer
        await close_writer(session.outbound)
        connection = await listener.accept()

        typed = 0
        try:
            async for text in consume_stream(connection.reader):
                self.keyboard.type_text(text)
                typed += len(text)
        finally:
            await connection.close()

        logger.info(f"Response complete, typed {typed} chars")
        return CaptureSession()
