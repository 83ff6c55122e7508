"""Make a conversation history safe to replay against a strict backend.

:func:`transform_messages` runs two passes over the history:

1. Rewrite assistant content for the target model.  Thinking blocks keep
   their signature only when the turn came from the very same model; for
   any other model they become plain text (or vanish when empty).  Tool
   call ids from other models are passed through an id normaliser, and
   the matching tool results are rewritten to the new ids.
2. Repair orphans.  Every tool call must be answered before the
   conversation moves on, so calls left without a result get a synthetic
   failed result.  Assistant turns that ended in ``error`` or ``aborted``
   are dropped along with their tool calls.
"""

import logging
import re
from typing import Callable

from vertexa.message import (
    AssistantMessage,
    Message,
    StopReason,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from vertexa.model import Model

logger = logging.getLogger(__name__)

NO_RESULT_TEXT = "No result provided"

_INVALID_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_MAX_TOOL_CALL_ID_LENGTH = 64


def normalize_tool_call_id(tool_call_id: str) -> str:
    """Fit a tool call id into Anthropic's ``^[a-zA-Z0-9_-]{1,64}$``."""
    return _INVALID_ID_CHARS.sub("_", tool_call_id)[:_MAX_TOOL_CALL_ID_LENGTH]


def is_same_origin(message: AssistantMessage, model: Model) -> bool:
    return (
        message.provider == model.provider
        and message.api == model.api
        and message.model == model.id
    )


def _transform_assistant(
    message: AssistantMessage,
    model: Model,
    normalize_id: Callable[[str], str] | None,
    id_map: dict[str, str],
) -> AssistantMessage:
    same_origin = is_same_origin(message, model)
    content = []
    for block in message.content:
        if isinstance(block, ThinkingContent):
            if same_origin and block.signature:
                content.append(block)
            elif not block.thinking.strip():
                continue
            elif same_origin:
                content.append(block)
            else:
                content.append(TextContent(text=block.thinking))
        elif isinstance(block, ToolCall):
            if not same_origin and normalize_id is not None:
                new_id = normalize_id(block.id)
                if new_id != block.id:
                    id_map[block.id] = new_id
                    block = block.model_copy(update={"id": new_id})
            content.append(block)
        else:
            content.append(block)
    return message.model_copy(update={"content": content})


def _synthetic_results(
    pending: list[ToolCall], answered: set[str],
) -> list[ToolResultMessage]:
    results = []
    for call in pending:
        if call.id in answered:
            continue
        logger.debug(
            "Inserting synthetic result for orphaned tool call %s (%s)",
            call.id, call.name,
        )
        results.append(ToolResultMessage(
            tool_call_id=call.id,
            tool_name=call.name,
            content=[TextContent(text=NO_RESULT_TEXT)],
            is_error=True,
        ))
    return results


def transform_messages(
    messages: list[Message],
    model: Model,
    normalize_id: Callable[[str], str] | None = None,
) -> list[Message]:
    """Return a replay-safe copy of ``messages`` for ``model``.

    The input list and its messages are left untouched.

    Args:
        messages: Conversation history, oldest first.
        model: The model that will receive the history.
        normalize_id: Maps a foreign tool call id onto the ids the target
            protocol accepts. Only applied to turns from other models.
    """
    id_map: dict[str, str] = {}
    transformed: list[Message] = []
    for message in messages:
        if isinstance(message, AssistantMessage):
            transformed.append(
                _transform_assistant(message, model, normalize_id, id_map)
            )
        elif isinstance(message, ToolResultMessage):
            new_id = id_map.get(message.tool_call_id)
            if new_id and new_id != message.tool_call_id:
                message = message.model_copy(update={"tool_call_id": new_id})
            transformed.append(message)
        else:
            transformed.append(message)

    result: list[Message] = []
    pending: list[ToolCall] = []
    answered: set[str] = set()
    for message in transformed:
        if isinstance(message, AssistantMessage):
            result.extend(_synthetic_results(pending, answered))
            pending, answered = [], set()

            if message.stop_reason in (StopReason.ERROR, StopReason.ABORTED):
                logger.debug(
                    "Dropping %s assistant turn from history",
                    message.stop_reason.value,
                )
                continue

            pending = message.tool_calls()
            result.append(message)
        elif isinstance(message, ToolResultMessage):
            answered.add(message.tool_call_id)
            result.append(message)
        elif isinstance(message, UserMessage):
            result.extend(_synthetic_results(pending, answered))
            pending, answered = [], set()
            result.append(message)
        else:
            result.append(message)

    result.extend(_synthetic_results(pending, answered))
    return result
