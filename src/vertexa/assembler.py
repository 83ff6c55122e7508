"""Assemble an assistant turn from decoded Anthropic stream events.

:class:`TurnAssembler` owns one in-progress turn.  It is driven by
:class:`~vertexa.sse.SSEFrame` objects and pushes delta events into an
:class:`~vertexa.streaming.AssistantMessageEventStream` as the turn grows.
Exactly one turn is assembled per instance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator

from vertexa.errors import StreamAborted
from vertexa.events import (
    DoneEvent,
    ErrorEvent,
    MessageDeltaEvent,
    StartEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    ThinkingDeltaEvent,
    ThinkingEndEvent,
    ThinkingStartEvent,
    ToolCallDeltaEvent,
    ToolCallEndEvent,
    ToolCallStartEvent,
)
from vertexa.message import AssistantMessage, ContentBlock, StopReason
from vertexa.model import Model, calculate_cost
from vertexa.sse import SSEFrame, parse_sse
from vertexa.streaming import (
    AssistantMessageEventStream,
    PendingBlock,
    PendingText,
    PendingThinking,
    PendingToolCall,
)

logger = logging.getLogger(__name__)

_PENDING = (PendingText, PendingThinking, PendingToolCall)

_STOP_REASONS = {
    "end_turn": StopReason.STOP,
    "pause_turn": StopReason.STOP,
    "stop_sequence": StopReason.STOP,
    "max_tokens": StopReason.LENGTH,
    "tool_use": StopReason.TOOL_USE,
}


_EOF = object()


def map_stop_reason(reason: str) -> StopReason:
    return _STOP_REASONS.get(reason, StopReason.ERROR)


async def _next_chunk(iterator: AsyncIterator[bytes | str]) -> bytes | str | object:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EOF


class TurnAssembler:
    """Builds one :class:`AssistantMessage` from a stream of frames.

    Args:
        model: The model the turn is requested from. Used to stamp the turn
            and to price its usage.
        stream: Channel that receives the delta events.
        signal: Cancellation flag. Setting it interrupts a pending chunk
            read; it is also checked when the stream ends.
    """

    def __init__(
        self,
        model: Model,
        stream: AssistantMessageEventStream | None = None,
        signal: asyncio.Event | None = None,
    ):
        self.model = model
        self.stream = stream or AssistantMessageEventStream()
        self.signal = signal
        self.output = AssistantMessage(
            provider=model.provider, api=model.api, model=model.id,
        )
        self._blocks: list[PendingBlock | ContentBlock] = []

    @property
    def aborted(self) -> bool:
        return self.signal is not None and self.signal.is_set()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _content(self) -> list[ContentBlock]:
        return [
            b.finish() if isinstance(b, _PENDING) else b
            for b in self._blocks
        ]

    def snapshot(self) -> AssistantMessage:
        """Copy of the turn so far, with pending blocks shown as finished."""
        return self.output.model_copy(
            update={
                "content": self._content(),
                "usage": self.output.usage.model_copy(deep=True),
            },
        )

    def _find(self, index: int) -> tuple[int, PendingBlock | None]:
        for position, block in enumerate(self._blocks):
            if isinstance(block, _PENDING) and block.index == index:
                return position, block
        return -1, None

    def _update_usage(self, usage: dict, seed: bool) -> None:
        current = self.output.usage
        if seed:
            current.input = usage.get("input_tokens") or 0
            current.output = usage.get("output_tokens") or 0
            current.cache_read = usage.get("cache_read_input_tokens") or 0
            current.cache_write = usage.get("cache_creation_input_tokens") or 0
        else:
            current.output = usage.get("output_tokens") or current.output
        current.recompute_total()
        calculate_cost(self.model, current)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.stream.push(StartEvent(partial=self.snapshot()))

    def handle(self, frame: SSEFrame) -> None:
        handler = {
            "message_start": self._on_message_start,
            "content_block_start": self._on_block_start,
            "content_block_delta": self._on_block_delta,
            "content_block_stop": self._on_block_stop,
            "message_delta": self._on_message_delta,
        }.get(frame.type)
        if handler is None:
            logger.debug("Ignoring stream event %r", frame.type)
            return
        handler(frame.data)

    def _on_message_start(self, data: dict) -> None:
        usage = (data.get("message") or {}).get("usage") or {}
        self._update_usage(usage, seed=True)

    def _on_block_start(self, data: dict) -> None:
        index = data.get("index")
        block = data.get("content_block") or {}
        kind = block.get("type")
        position = len(self._blocks)
        if kind == "text":
            self._blocks.append(PendingText(index=index))
            self.stream.push(TextStartEvent(partial=self.snapshot(), content_index=position))
        elif kind == "thinking":
            self._blocks.append(PendingThinking(index=index))
            self.stream.push(ThinkingStartEvent(partial=self.snapshot(), content_index=position))
        elif kind == "tool_use":
            self._blocks.append(PendingToolCall(
                index=index, id=block.get("id", ""), name=block.get("name", ""),
            ))
            self.stream.push(ToolCallStartEvent(partial=self.snapshot(), content_index=position))
        else:
            logger.debug("Ignoring content block of type %r", kind)

    def _on_block_delta(self, data: dict) -> None:
        position, block = self._find(data.get("index"))
        if block is None:
            logger.debug("Delta for unknown block index %r", data.get("index"))
            return

        delta = data.get("delta") or {}
        kind = delta.get("type")
        if kind == "text_delta" and isinstance(block, PendingText):
            text = delta.get("text", "")
            block.text += text
            self.stream.push(TextDeltaEvent(
                partial=self.snapshot(), content_index=position, delta=text,
            ))
        elif kind == "thinking_delta" and isinstance(block, PendingThinking):
            thinking = delta.get("thinking", "")
            block.thinking += thinking
            self.stream.push(ThinkingDeltaEvent(
                partial=self.snapshot(), content_index=position, delta=thinking,
            ))
        elif kind == "input_json_delta" and isinstance(block, PendingToolCall):
            fragment = delta.get("partial_json", "")
            block.feed(fragment)
            self.stream.push(ToolCallDeltaEvent(
                partial=self.snapshot(), content_index=position, delta=fragment,
            ))
        elif kind == "signature_delta" and isinstance(block, PendingThinking):
            block.signature += delta.get("signature", "")

    def _on_block_stop(self, data: dict) -> None:
        position, block = self._find(data.get("index"))
        if block is None:
            logger.debug("Stop for unknown block index %r", data.get("index"))
            return

        finished = block.finish()
        self._blocks[position] = finished
        if isinstance(block, PendingText):
            self.stream.push(TextEndEvent(
                partial=self.snapshot(), content_index=position, content=finished.text,
            ))
        elif isinstance(block, PendingThinking):
            self.stream.push(ThinkingEndEvent(
                partial=self.snapshot(), content_index=position, content=finished.thinking,
            ))
        else:
            self.stream.push(ToolCallEndEvent(
                partial=self.snapshot(), content_index=position, tool_call=finished,
            ))

    def _on_message_delta(self, data: dict) -> None:
        stop_reason = (data.get("delta") or {}).get("stop_reason")
        if stop_reason:
            self.output.stop_reason = map_stop_reason(stop_reason)
        usage = data.get("usage")
        if usage:
            self._update_usage(usage, seed=False)
        self.stream.push(MessageDeltaEvent(partial=self.snapshot()))

    def _finalize_blocks(self) -> AssistantMessage:
        self._blocks = self._content()
        self.output.content = list(self._blocks)
        return self.output

    def finish(self) -> AssistantMessage:
        """Close the turn successfully.

        Raises:
            StreamAborted: If cancellation was requested.
        """
        if self.aborted:
            raise StreamAborted()
        message = self._finalize_blocks()
        self.stream.push(DoneEvent(
            partial=self.snapshot(), reason=message.stop_reason, message=message,
        ))
        self.stream.end(message)
        return message

    def fail(self, error: BaseException, aborted: bool | None = None) -> AssistantMessage:
        """Close the turn as ``aborted`` or ``error``.

        A turn that already ended is returned unchanged.
        """
        if self.stream.ended:
            return self.output
        message = self._finalize_blocks()
        if aborted is None:
            aborted = self.aborted
        message.stop_reason = StopReason.ABORTED if aborted else StopReason.ERROR
        message.error_message = str(error) or type(error).__name__
        if aborted:
            logger.warning("Turn for %s aborted", self.model.id)
        else:
            logger.warning("Turn for %s failed: %s", self.model.id, message.error_message)
        self.stream.push(ErrorEvent(
            partial=self.snapshot(), reason=message.stop_reason, error=message,
        ))
        self.stream.end(message)
        return message

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    async def _read(self, iterator: AsyncIterator[bytes | str]) -> bytes | str | object:
        """Await the next chunk, giving up as soon as the signal is set."""
        if self.signal is None:
            return await _next_chunk(iterator)

        read = asyncio.ensure_future(_next_chunk(iterator))
        waiter = asyncio.ensure_future(self.signal.wait())
        try:
            await asyncio.wait({read, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not read.done():
                read.cancel()
                await asyncio.gather(read, return_exceptions=True)
        if read.cancelled():
            raise StreamAborted()
        return read.result()

    async def _chunks(self, chunks: AsyncIterable[bytes | str]) -> AsyncIterator[bytes | str]:
        iterator = chunks.__aiter__()
        while True:
            if self.aborted:
                raise StreamAborted()
            chunk = await self._read(iterator)
            if chunk is _EOF:
                return
            if self.aborted:
                raise StreamAborted()
            yield chunk

    async def consume(self, chunks: AsyncIterable[bytes | str]) -> AssistantMessage:
        """Run the full turn over an open byte stream.

        Failures propagate to the caller; use :meth:`assemble` to have them
        converted into a terminal error turn instead.
        """
        self.start()
        async for frame in parse_sse(self._chunks(chunks)):
            self.handle(frame)
        return self.finish()

    async def assemble(self, chunks: AsyncIterable[bytes | str]) -> AssistantMessage:
        """Like :meth:`consume`, but always returns a terminal turn."""
        try:
            return await self.consume(chunks)
        except Exception as e:
            return self.fail(e)
