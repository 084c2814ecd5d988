"""Server-Sent Events decoding for streamed completions.

Bytes arrive in arbitrary network chunks.  :class:`SSELineBuffer`
reassembles them into lines and :func:`decode_sse` turns ``data:`` lines
into JSON payloads until the ``[DONE]`` sentinel.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSELineBuffer:
    """Splits a chunked byte stream into complete text lines.

    The trailing fragment after the last newline is held back until a
    later chunk completes it.  UTF-8 sequences split across chunks are
    decoded incrementally, so chunk boundaries never change the output.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._partial += self._decoder.decode(chunk)
        *lines, self._partial = self._partial.split("\n")
        return lines

    def flush(self) -> str:
        """Return and clear whatever is left after the last newline."""
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        return rest


def parse_line(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or ``None`` for anything else."""
    line = line.strip()
    if not line or not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):]


async def decode_sse(chunks: AsyncIterator[bytes]) -> AsyncIterator[dict]:
    """Decode a chunked SSE body into JSON payloads.

    Stops at the ``[DONE]`` sentinel or at the end of the body.
    Frames that are not valid JSON are skipped.  The source iterator is
    closed on every exit path, including when the consumer stops early.
    """
    buffer = SSELineBuffer()
    try:
        async for chunk in chunks:
            for line in buffer.feed(chunk):
                payload = parse_line(line)
                if payload is None:
                    continue
                if payload == DONE_SENTINEL:
                    return
                try:
                    frame = json.loads(payload)
                except (json.JSONDecodeError, RecursionError) as e:
                    logger.debug(f"Skipping malformed frame: {e}")
                    continue
                yield frame
        rest = buffer.flush()
        if rest.strip():
            logger.debug(f"Discarding unterminated line at end of stream: {rest!r}")
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
