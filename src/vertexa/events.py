"""Delta events emitted while an assistant turn is being assembled.

Every event carries ``partial``: a snapshot of the turn as it stood when
the event was emitted.  The stream always ends with exactly one
:class:`DoneEvent` or :class:`ErrorEvent`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from vertexa.message import AssistantMessage, StopReason, ToolCall


@dataclass
class StreamEvent:
    """Base for all delta events."""

    type: ClassVar[str] = ""
    partial: AssistantMessage


@dataclass
class StartEvent(StreamEvent):
    type: ClassVar[str] = "start"


@dataclass
class TextStartEvent(StreamEvent):
    type: ClassVar[str] = "text_start"
    content_index: int = 0


@dataclass
class TextDeltaEvent(StreamEvent):
    type: ClassVar[str] = "text_delta"
    content_index: int = 0
    delta: str = ""


@dataclass
class TextEndEvent(StreamEvent):
    type: ClassVar[str] = "text_end"
    content_index: int = 0
    content: str = ""


@dataclass
class ThinkingStartEvent(StreamEvent):
    type: ClassVar[str] = "thinking_start"
    content_index: int = 0


@dataclass
class ThinkingDeltaEvent(StreamEvent):
    type: ClassVar[str] = "thinking_delta"
    content_index: int = 0
    delta: str = ""


@dataclass
class ThinkingEndEvent(StreamEvent):
    type: ClassVar[str] = "thinking_end"
    content_index: int = 0
    content: str = ""


@dataclass
class ToolCallStartEvent(StreamEvent):
    type: ClassVar[str] = "toolcall_start"
    content_index: int = 0


@dataclass
class ToolCallDeltaEvent(StreamEvent):
    type: ClassVar[str] = "toolcall_delta"
    content_index: int = 0
    delta: str = ""


@dataclass
class ToolCallEndEvent(StreamEvent):
    type: ClassVar[str] = "toolcall_end"
    content_index: int = 0
    tool_call: ToolCall | None = None


@dataclass
class MessageDeltaEvent(StreamEvent):
    """Stop reason and/or usage changed."""

    type: ClassVar[str] = "message_delta"


@dataclass
class DoneEvent(StreamEvent):
    type: ClassVar[str] = "done"
    reason: StopReason = StopReason.STOP
    message: AssistantMessage | None = None


@dataclass
class ErrorEvent(StreamEvent):
    """Terminal failure. ``reason`` is ``error`` or ``aborted``."""

    type: ClassVar[str] = "error"
    reason: StopReason = StopReason.ERROR
    error: AssistantMessage | None = None
