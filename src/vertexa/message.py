import time
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_serializer


def _now_ms() -> int:
    return int(time.time() * 1000)


class StopReason(Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "toolUse"
    ERROR = "error"
    ABORTED = "aborted"


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ImageContent(BaseModel):
    type: Literal["image"] = "image"
    data: str
    mime_type: str


class ThinkingContent(BaseModel):
    """Reasoning text plus the opaque signature the backend issued for it.

    The signature is only meaningful to the model that produced it; it must
    be replayed byte-for-byte to that model and discarded for any other.
    """

    type: Literal["thinking"] = "thinking"
    thinking: str = ""
    signature: str | None = None


class ToolCall(BaseModel):
    type: Literal["toolCall"] = "toolCall"
    id: str
    name: str
    arguments: dict = Field(default_factory=dict)


ContentBlock = Annotated[
    Union[TextContent, ThinkingContent, ToolCall],
    Field(discriminator="type"),
]

UserContent = Annotated[
    Union[TextContent, ImageContent],
    Field(discriminator="type"),
]


class Cost(BaseModel):
    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0
    total: float = 0.0


class Usage(BaseModel):
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total_tokens: int = 0
    cost: Cost = Field(default_factory=Cost)

    def recompute_total(self) -> int:
        self.total_tokens = (
            self.input + self.output + self.cache_read + self.cache_write
        )
        return self.total_tokens


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str | list[UserContent]
    timestamp: int = Field(default_factory=_now_ms)


class AssistantMessage(BaseModel):
    """One assistant turn as produced by a specific backend.

    ``provider``, ``api`` and ``model`` record where the turn came from so a
    later replay can tell whether its thinking signatures are still valid.
    """

    role: Literal["assistant"] = "assistant"
    content: list[ContentBlock] = Field(default_factory=list)
    provider: str
    api: str
    model: str
    usage: Usage = Field(default_factory=Usage)
    stop_reason: StopReason = StopReason.STOP
    error_message: str | None = None
    timestamp: int = Field(default_factory=_now_ms)

    @field_serializer("stop_reason")
    def serialize_stop_reason(self, stop_reason: StopReason, _info) -> str:
        return stop_reason.value

    def tool_calls(self) -> list[ToolCall]:
        return [b for b in self.content if isinstance(b, ToolCall)]


class ToolResultMessage(BaseModel):
    role: Literal["toolResult"] = "toolResult"
    tool_call_id: str
    tool_name: str
    content: list[UserContent] = Field(default_factory=list)
    is_error: bool = False
    timestamp: int = Field(default_factory=_now_ms)


Message = Annotated[
    Union[UserMessage, AssistantMessage, ToolResultMessage],
    Field(discriminator="role"),
]
