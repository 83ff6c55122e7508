"""Encode a :class:`~vertexa.context.Context` as an Anthropic Messages body.

The history is normalised with
:func:`~vertexa.transform.transform_messages` first, so the encoder can
assume every tool call is answered and no broken turn is left in it.
"""

from __future__ import annotations

import re
from typing import Any

from vertexa.context import Context, StreamOptions, ThinkingLevel
from vertexa.message import (
    AssistantMessage,
    ImageContent,
    Message,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from vertexa.model import Model
from vertexa.tools import Tool
from vertexa.transform import normalize_tool_call_id, transform_messages

ANTHROPIC_VERSION = "vertex-2023-10-16"
IMAGE_PLACEHOLDER = "(see attached image)"
CACHE_CONTROL = {"type": "ephemeral"}

DEFAULT_THINKING_BUDGETS = {
    ThinkingLevel.MINIMAL: 1024,
    ThinkingLevel.LOW: 4096,
    ThinkingLevel.MEDIUM: 10240,
    ThinkingLevel.HIGH: 20480,
}

_SURROGATE = re.compile("[\ud800-\udfff]")


def sanitize_surrogates(text: str) -> str:
    """Replace unpaired UTF-16 surrogates with U+FFFD.

    A high/low pair that ended up as two separate code points is joined
    back into one character rather than replaced.
    """
    if not _SURROGATE.search(text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode(
        "utf-16-le", "replace"
    )


def _image_block(image: ImageContent) -> dict[str, Any]:
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": image.mime_type,
            "data": image.data,
        },
    }


def _user_blocks(parts: list[TextContent | ImageContent]) -> list[dict[str, Any]]:
    blocks = []
    for part in parts:
        if isinstance(part, TextContent):
            blocks.append({"type": "text", "text": sanitize_surrogates(part.text)})
        else:
            blocks.append(_image_block(part))
    return blocks


def _tool_result_content(
    parts: list[TextContent | ImageContent],
) -> str | list[dict[str, Any]]:
    if not any(isinstance(p, ImageContent) for p in parts):
        return sanitize_surrogates(
            "\n".join(p.text for p in parts if isinstance(p, TextContent))
        )
    blocks = _user_blocks(parts)
    if not any(b["type"] == "text" for b in blocks):
        blocks.insert(0, {"type": "text", "text": IMAGE_PLACEHOLDER})
    return blocks


def _tool_result_block(message: ToolResultMessage) -> dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": message.tool_call_id,
        "content": _tool_result_content(message.content),
        "is_error": message.is_error,
    }


def _assistant_blocks(message: AssistantMessage) -> list[dict[str, Any]]:
    blocks = []
    for block in message.content:
        if isinstance(block, TextContent):
            if block.text.strip():
                blocks.append({"type": "text", "text": sanitize_surrogates(block.text)})
        elif isinstance(block, ThinkingContent):
            if not block.thinking.strip():
                continue
            if block.signature:
                blocks.append({
                    "type": "thinking",
                    "thinking": sanitize_surrogates(block.thinking),
                    "signature": block.signature,
                })
            else:
                blocks.append({"type": "text", "text": sanitize_surrogates(block.thinking)})
        elif isinstance(block, ToolCall):
            blocks.append({
                "type": "tool_use",
                "id": block.id,
                "name": block.name,
                "input": block.arguments,
            })
    return blocks


def convert_messages(messages: list[Message], model: Model) -> list[dict[str, Any]]:
    """Convert a history into Anthropic ``messages`` params.

    Consecutive tool results are merged into a single user turn, and the
    last block of a trailing user turn is marked for prompt caching.
    """
    transformed = transform_messages(messages, model, normalize_tool_call_id)
    params: list[dict[str, Any]] = []

    i = 0
    while i < len(transformed):
        message = transformed[i]
        if isinstance(message, UserMessage):
            if isinstance(message.content, str):
                if message.content.strip():
                    params.append({
                        "role": "user",
                        "content": sanitize_surrogates(message.content),
                    })
            else:
                blocks = _user_blocks(message.content)
                if blocks:
                    params.append({"role": "user", "content": blocks})
        elif isinstance(message, AssistantMessage):
            blocks = _assistant_blocks(message)
            if blocks:
                params.append({"role": "assistant", "content": blocks})
        elif isinstance(message, ToolResultMessage):
            results = [_tool_result_block(message)]
            while i + 1 < len(transformed) and isinstance(
                transformed[i + 1], ToolResultMessage
            ):
                i += 1
                results.append(_tool_result_block(transformed[i]))
            params.append({"role": "user", "content": results})
        i += 1

    if params:
        last = params[-1]
        if last["role"] == "user" and isinstance(last["content"], list) and last["content"]:
            last["content"][-1]["cache_control"] = dict(CACHE_CONTROL)

    return params


def convert_tools(tools: list[Tool]) -> list[dict[str, Any]]:
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": {
                "type": "object",
                "properties": t.parameters.get("properties") or {},
                "required": t.parameters.get("required") or [],
            },
        }
        for t in tools
    ]


def resolve_thinking_budget(
    level: ThinkingLevel | str | None,
    overrides: dict[str, int] | None = None,
) -> int | None:
    """Token budget for a thinking effort level, or ``None`` if disabled."""
    if level is None:
        return None
    try:
        level = ThinkingLevel(level)
    except ValueError:
        return None
    if overrides and level.value in overrides:
        return overrides[level.value]
    return DEFAULT_THINKING_BUDGETS[level]


def build_request_body(
    model: Model,
    context: Context,
    options: StreamOptions | None = None,
) -> dict[str, Any]:
    options = options or StreamOptions()
    body: dict[str, Any] = {
        "anthropic_version": ANTHROPIC_VERSION,
        "messages": convert_messages(context.messages, model),
        "max_tokens": options.max_tokens or model.max_tokens // 3,
        "stream": True,
    }

    if context.system_prompt:
        body["system"] = [{
            "type": "text",
            "text": sanitize_surrogates(context.system_prompt),
            "cache_control": dict(CACHE_CONTROL),
        }]

    if context.tools:
        body["tools"] = convert_tools(context.tools)

    if model.reasoning:
        budget = resolve_thinking_budget(options.reasoning, options.thinking_budgets)
        if budget is not None:
            body["thinking"] = {"type": "enabled", "budget_tokens": budget}

    return body
