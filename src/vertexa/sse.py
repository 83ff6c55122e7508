"""Server-Sent Events decoder for streamed provider responses."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class SSEFrame:
    """One decoded event: its ``event:`` type and parsed JSON ``data:``."""

    type: str
    data: dict = field(default_factory=dict)


async def parse_sse(
    chunks: AsyncIterable[bytes | str],
) -> AsyncIterator[SSEFrame]:
    """Decode a chunked SSE byte stream into :class:`SSEFrame` objects.

    Lines and partially-read frames are carried across chunk boundaries.
    A frame whose data is not valid JSON is dropped and decoding carries
    on with the next one.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    event_type = ""
    data_lines: list[str] = []

    async for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        lines = buffer.split("\n")
        buffer = lines.pop()

        for line in lines:
            line = line.rstrip("\r")
            if line == "":
                if data_lines:
                    frame = _build_frame(event_type, data_lines)
                    if frame is not None:
                        yield frame
                event_type = ""
                data_lines = []
            elif line.startswith(":"):
                continue
            elif line.startswith("event:"):
                event_type = line[6:].strip()
            elif line.startswith("data:"):
                value = line[5:]
                data_lines.append(value[1:] if value.startswith(" ") else value)


def _build_frame(event_type: str, data_lines: list[str]) -> SSEFrame | None:
    raw = "\n".join(data_lines).strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Dropping SSE frame %r with malformed data: %.200s", event_type, raw)
        return None
    if not isinstance(data, dict):
        logger.debug("Dropping SSE frame %r with non-object data", event_type)
        return None
    return SSEFrame(type=event_type or data.get("type", ""), data=data)
