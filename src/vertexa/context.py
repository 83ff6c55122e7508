from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from vertexa.message import Message
from vertexa.tools import Tool


class Context(BaseModel):
    """Everything the model sees for one request.

    Args:
        system_prompt: Instructions sent in the request's ``system`` field.
            Never stored in ``messages``.
        messages: The conversation history, oldest first.
        tools: Tools the model may call, or ``None`` to send no tools.
    """

    system_prompt: str | None = None
    messages: list[Message] = Field(default_factory=list)
    tools: list[Tool] | None = None


class ThinkingLevel(Enum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class StreamOptions:
    """Per-request knobs for a single streamed turn.

    Args:
        max_tokens: Output token cap. Defaults to a third of the model's
            maximum.
        reasoning: Thinking effort. ``None`` (or an unrecognised level)
            disables extended thinking.
        thinking_budgets: Token budget overrides keyed by level.
        signal: Set this event to cancel the turn; the turn then ends as
            ``aborted`` instead of ``error``.
    """

    max_tokens: int | None = None
    reasoning: ThinkingLevel | str | None = None
    thinking_budgets: dict[str, int] = field(default_factory=dict)
    signal: asyncio.Event | None = None
