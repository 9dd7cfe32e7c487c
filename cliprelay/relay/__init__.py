"""Relay core: stream consumption protocol and the two node state machines.

Architecture:
- transport: fresh one-shot listeners and outbound connections per message
- protocol: unframed stream consumption with empty-read end detection
- CaptureNode: hotkey -> send clipboard -> type the response
- InferenceNode: accumulate prompt -> run engine -> stream chunks back
"""

from cliprelay.relay.capture import CaptureNode
from cliprelay.relay.inference import InferenceNode
from cliprelay.relay.protocol import EMPTY_READ_LIMIT, consume_stream, read_message

__all__ = [
    "CaptureNode",
    "InferenceNode",
    "EMPTY_READ_LIMIT",
    "consume_stream",
    "read_message",
]
