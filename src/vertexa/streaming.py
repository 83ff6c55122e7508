"""Streaming primitives for assembling an assistant turn.

Blocks under construction are held as :class:`PendingText`,
:class:`PendingThinking` and :class:`PendingToolCall`.  They carry the
server-assigned block index and, for tool calls, the raw JSON received so
far.  ``finish()`` converts each one into the finished content block that
ends up in the transcript, without those assembly-only fields.

:class:`AssistantMessageEventStream` is the channel the assembler writes
delta events into and the caller reads from.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from vertexa.events import StreamEvent
from vertexa.message import (
    AssistantMessage,
    TextContent,
    ThinkingContent,
    ToolCall,
)


class PartialJson:
    """Best-effort parser for a JSON object that arrives in fragments.

    ``value`` is the last successfully parsed object, or ``None`` if no
    prefix seen so far has parsed.
    """

    def __init__(self) -> None:
        self.raw = ""
        self.value: dict | None = None

    def feed(self, fragment: str) -> dict | None:
        self.raw += fragment
        return self.parse()

    def parse(self) -> dict | None:
        try:
            parsed = json.loads(self.raw)
        except json.JSONDecodeError:
            return self.value
        if isinstance(parsed, dict):
            self.value = parsed
        return self.value


@dataclass
class PendingText:
    index: int
    text: str = ""

    def finish(self) -> TextContent:
        return TextContent(text=self.text)


@dataclass
class PendingThinking:
    index: int
    thinking: str = ""
    signature: str = ""

    def finish(self) -> ThinkingContent:
        return ThinkingContent(
            thinking=self.thinking, signature=self.signature or None,
        )


@dataclass
class PendingToolCall:
    index: int
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    partial_json: PartialJson = field(default_factory=PartialJson)

    def feed(self, fragment: str) -> None:
        parsed = self.partial_json.feed(fragment)
        if parsed is not None:
            self.arguments = parsed

    def finish(self) -> ToolCall:
        parsed = self.partial_json.parse()
        arguments = parsed if parsed is not None else self.arguments
        return ToolCall(id=self.id, name=self.name, arguments=dict(arguments))


PendingBlock = PendingText | PendingThinking | PendingToolCall


class AssistantMessageEventStream:
    """Single-producer, single-consumer channel of delta events.

    The producer calls :meth:`push` for each event and :meth:`end` once
    with the terminal turn.  The consumer either iterates with
    ``async for`` or awaits :meth:`result`.  The queue is unbounded; a
    consumer that never drains it keeps every event in memory.
    """

    _END = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._result: asyncio.Future | None = None
        self._final: AssistantMessage | None = None
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def push(self, event: StreamEvent) -> None:
        if self._ended:
            return
        self._queue.put_nowait(event)

    def end(self, message: AssistantMessage) -> None:
        if self._ended:
            return
        self._ended = True
        self._final = message
        if self._result is not None and not self._result.done():
            self._result.set_result(message)
        self._queue.put_nowait(self._END)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item

    async def result(self) -> AssistantMessage:
        """Wait for the terminal turn, whether it finished or failed."""
        if self._final is not None:
            return self._final
        if self._result is None:
            self._result = asyncio.get_running_loop().create_future()
        return await self._result
