import json

import pytest

from vertexa.message import (
    AssistantMessage,
    StopReason,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from vertexa.model import Model, ModelCost, get_model


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

SONNET_ID = "claude-sonnet-4-5@20250929"


def make_foreign_model() -> Model:
    """A model from another provider, so replayed turns are not same-origin."""
    return Model(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        api="openai-completions",
        cost=ModelCost(input=2.5, output=10.0),
        max_tokens=16384,
    )


@pytest.fixture
def model():
    return get_model(SONNET_ID)


@pytest.fixture
def foreign_model():
    return make_foreign_model()


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------

def user(text: str) -> UserMessage:
    return UserMessage(content=text)


def assistant(
    *content,
    model: Model | None = None,
    stop_reason: StopReason = StopReason.STOP,
) -> AssistantMessage:
    """Assistant turn stamped with ``model`` (the built-in Sonnet by default)."""
    model = model or get_model(SONNET_ID)
    return AssistantMessage(
        content=list(content),
        provider=model.provider,
        api=model.api,
        model=model.id,
        stop_reason=stop_reason,
    )


def call(call_id: str, name: str = "echo", **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


def result(call_id: str, text: str = "ok", name: str = "echo") -> ToolResultMessage:
    return ToolResultMessage(
        tool_call_id=call_id,
        tool_name=name,
        content=[TextContent(text=text)],
    )


def thinking(text: str, signature: str | None = None) -> ThinkingContent:
    return ThinkingContent(thinking=text, signature=signature)


# ---------------------------------------------------------------------------
# SSE builders
# ---------------------------------------------------------------------------

def sse(event: str, data: dict) -> str:
    """Format one SSE frame the way the backend sends it."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def chunks(*parts):
    """Async byte source yielding each part as one chunk."""
    for part in parts:
        yield part.encode("utf-8") if isinstance(part, str) else part


def message_start(input_tokens: int = 10, output_tokens: int = 1, **extra) -> str:
    usage = {"input_tokens": input_tokens, "output_tokens": output_tokens, **extra}
    return sse("message_start", {
        "type": "message_start",
        "message": {"id": "msg_1", "role": "assistant", "usage": usage},
    })


def block_start(index: int, block: dict) -> str:
    return sse("content_block_start", {
        "type": "content_block_start", "index": index, "content_block": block,
    })


def block_delta(index: int, delta: dict) -> str:
    return sse("content_block_delta", {
        "type": "content_block_delta", "index": index, "delta": delta,
    })


def block_stop(index: int) -> str:
    return sse("content_block_stop", {"type": "content_block_stop", "index": index})


def message_delta(stop_reason: str | None = "end_turn", output_tokens: int | None = None) -> str:
    data = {"type": "message_delta", "delta": {"stop_reason": stop_reason}}
    if output_tokens is not None:
        data["usage"] = {"output_tokens": output_tokens}
    return sse("message_delta", data)


def text_turn(*fragments: str, stop_reason: str = "end_turn") -> list[str]:
    """Frames for a turn containing a single streamed text block."""
    return [
        message_start(),
        block_start(0, {"type": "text", "text": ""}),
        *[block_delta(0, {"type": "text_delta", "text": f}) for f in fragments],
        block_stop(0),
        message_delta(stop_reason, output_tokens=20),
        sse("message_stop", {"type": "message_stop"}),
    ]


def tool_use_turn(call_id: str, name: str, *json_fragments: str) -> list[str]:
    """Frames for a turn that only calls one tool."""
    return [
        message_start(),
        block_start(0, {"type": "tool_use", "id": call_id, "name": name, "input": {}}),
        *[
            block_delta(0, {"type": "input_json_delta", "partial_json": f})
            for f in json_fragments
        ],
        block_stop(0),
        message_delta("tool_use", output_tokens=15),
        sse("message_stop", {"type": "message_stop"}),
    ]
