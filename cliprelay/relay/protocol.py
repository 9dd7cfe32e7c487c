"""Stream consumption protocol shared by both nodes.

The wire format has no framing: a connection carries one message as raw
UTF-8 text and the end of the message is inferred from the transport.

Rules applied to every read:
1. Decode the bytes as UTF-8. Bytes that do not decode count as an empty
   observation (the fragment is dropped, not fatal).
2. A read decoding to non-empty text is delivered immediately and resets
   the consecutive-empty counter.
3. An empty observation increments the counter; once it exceeds
   EMPTY_READ_LIMIT the stream is complete.
4. A zero-byte read at end of file is complete immediately.
5. A transport error while reading ends the stream.

A multi-byte character split across two reads makes both reads
undecodable, so such characters are lost. Known limitation of the
unframed format.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

logger = logging.getLogger(__name__)

EMPTY_READ_LIMIT = 5
READ_SIZE = 4096


class ByteReader(Protocol):
    """The subset of asyncio.StreamReader the protocol relies on."""

    async def read(self, n: int = -1) -> bytes: ...

    def at_eof(self) -> bool: ...


def decode_fragment(data: bytes) -> Optional[str]:
    """Decode one read's bytes, returning None if they are not valid UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


@dataclass
class EmptyReadCounter:
    """Counts consecutive empty observations on one stream."""

    limit: int = EMPTY_READ_LIMIT
    consecutive: int = 0

    def observe(self, text: Optional[str]) -> bool:
        """
        Record one decoded read.

        Args:
            text: Decoded text, or None for an undecodable read

        Returns:
            True once the counter has exceeded the limit
        """
        if text:
            self.consecutive = 0
            return False
        self.consecutive += 1
        return self.consecutive > self.limit


async def consume_stream(
    reader: ByteReader,
    read_size: int = READ_SIZE,
    empty_limit: int = EMPTY_READ_LIMIT,
) -> AsyncIterator[str]:
    """
    Yield every non-empty decoded read until the stream is complete.

    Fragments are delivered one per read, never merged or split, so the
    caller can act on each as soon as it arrives.
    """
    counter = EmptyReadCounter(limit=empty_limit)
    total_bytes = 0

    while True:
        try:
            data = await reader.read(read_size)
        except OSError as e:
            logger.warning(f"Read failed after {total_bytes} bytes: {e}")
            return

        if not data and reader.at_eof():
            logger.debug(f"Peer closed stream after {total_bytes} bytes")
            return

        total_bytes += len(data)
        text = decode_fragment(data)
        if text is None:
            logger.warning(f"Dropped {len(data)} undecodable bytes")

        if counter.observe(text):
            logger.debug(
                f"{counter.consecutive} consecutive empty reads, "
                f"treating stream as complete after {total_bytes} bytes"
            )
            return

        if text:
            logger.debug(f"Received {text!r}")
            yield text


async def read_message(reader: ByteReader, read_size: int = READ_SIZE) -> str:
    """Consume a whole stream and return the concatenated text."""
    return "".join([fragment async for fragment in consume_stream(reader, read_size)])
