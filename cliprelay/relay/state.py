"""Session state values for the two node state machines.

Each node's control loop owns exactly one session value at a time and
hands it from one transition to the next; nothing is shared between
sessions.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from cliprelay.core.address import PeerAddress
from cliprelay.engines.base import EngineEvent
from cliprelay.relay.transport import Connection


class CaptureState(enum.Enum):
    WAITING_FOR_HOTKEY = "waiting_for_hotkey"
    SENDING = "sending"
    RECEIVING = "receiving"


class InferenceState(enum.Enum):
    LISTENING = "listening"
    ACCUMULATING = "accumulating"
    INFERRING = "inferring"
    STREAMING = "streaming"


@dataclass(frozen=True)
class CaptureSession:
    """
    Capture node state.

    prompt: clipboard bytes captured when the hotkey fired (SENDING)
    outbound: prompt connection, closed once the response listener is up
        (RECEIVING)
    """
    state: CaptureState = CaptureState.WAITING_FOR_HOTKEY
    prompt: bytes = b""
    outbound: Optional[asyncio.StreamWriter] = None


@dataclass(frozen=True)
class InferenceSession:
    """
    Inference node state.

    connection: accepted prompt connection (ACCUMULATING)
    destination: where the response goes, taken from the accepted peer
    prompt: the complete accumulated prompt (INFERRING)
    events: the engine's event stream (STREAMING)
    """
    state: InferenceState = InferenceState.LISTENING
    connection: Optional[Connection] = None
    destination: Optional[PeerAddress] = None
    prompt: str = ""
    events: Optional[AsyncIterator[EngineEvent]] = None
