"""Unit tests for the wire encoder."""

import pytest

from vertexa.context import Context, StreamOptions, ThinkingLevel
from vertexa.encoder import (
    ANTHROPIC_VERSION,
    IMAGE_PLACEHOLDER,
    build_request_body,
    convert_messages,
    convert_tools,
    resolve_thinking_budget,
    sanitize_surrogates,
)
from vertexa.message import (
    ImageContent,
    TextContent,
    ToolResultMessage,
    UserMessage,
)
from vertexa.model import Model
from vertexa.tools import Tool, tool
from tests.conftest import (
    assistant,
    call,
    make_foreign_model,
    result,
    thinking,
    user,
)

PNG = ImageContent(data="iVBORw0KGgo=", mime_type="image/png")


# ---------------------------------------------------------------------------
# sanitize_surrogates
# ---------------------------------------------------------------------------

class TestSanitizeSurrogates:
    def test_plain_text_untouched(self):
        assert sanitize_surrogates("héllo 🙂") == "héllo 🙂"

    def test_lone_high_surrogate_replaced(self):
        assert sanitize_surrogates("a\ud83db") == "a\ufffdb"

    def test_lone_low_surrogate_replaced(self):
        assert sanitize_surrogates("\ude00x") == "\ufffdx"

    def test_split_pair_rejoined(self):
        assert sanitize_surrogates("\ud83d\ude00") == "\U0001f600"


# ---------------------------------------------------------------------------
# User messages
# ---------------------------------------------------------------------------

class TestUserMessages:
    def test_string_content(self, model):
        params = convert_messages([user("hello")], model)
        assert params == [{"role": "user", "content": "hello"}]

    def test_whitespace_string_dropped(self, model):
        assert convert_messages([user("  \n\t")], model) == []

    def test_parts_with_image(self, model):
        msg = UserMessage(content=[TextContent(text="look"), PNG])

        params = convert_messages([msg], model)

        content = params[0]["content"]
        assert content[0] == {"type": "text", "text": "look"}
        assert content[1]["type"] == "image"
        assert content[1]["source"] == {
            "type": "base64", "media_type": "image/png", "data": "iVBORw0KGgo=",
        }

    def test_empty_parts_dropped(self, model):
        assert convert_messages([UserMessage(content=[])], model) == []

    def test_surrogates_sanitized(self, model):
        # model_construct keeps the raw string exactly as given
        msg = UserMessage.model_construct(role="user", content="bad \ud800 char")
        params = convert_messages([msg], model)
        assert params[0]["content"] == "bad \ufffd char"


# ---------------------------------------------------------------------------
# Assistant messages
# ---------------------------------------------------------------------------

class TestAssistantMessages:
    def test_block_shapes(self, model):
        msg = assistant(
            thinking("reasoning", signature="sig"),
            TextContent(text="answer"),
            call("toolu_1", "search", query="cats"),
        )

        params = convert_messages([user("q"), msg, result("toolu_1")], model)

        assert params[1] == {
            "role": "assistant",
            "content": [
                {"type": "thinking", "thinking": "reasoning", "signature": "sig"},
                {"type": "text", "text": "answer"},
                {"type": "tool_use", "id": "toolu_1", "name": "search",
                 "input": {"query": "cats"}},
            ],
        }

    def test_unsigned_thinking_degrades_to_text(self, model):
        params = convert_messages([assistant(thinking("hmm"))], model)
        assert params[0]["content"] == [{"type": "text", "text": "hmm"}]

    def test_blank_text_skipped(self, model):
        msg = assistant(TextContent(text="  "), TextContent(text="real"))
        params = convert_messages([msg], model)
        assert params[0]["content"] == [{"type": "text", "text": "real"}]

    def test_empty_turn_omitted(self, model):
        msg = assistant(TextContent(text=""), thinking(" "))
        params = convert_messages([user("hi"), msg, user("again")], model)
        assert [p["role"] for p in params] == ["user", "user"]

    def test_foreign_tool_ids_normalized(self, model):
        foreign = make_foreign_model()
        history = [
            user("q"),
            assistant(call("call|42"), model=foreign),
            result("call|42"),
        ]

        params = convert_messages(history, model)

        assert params[1]["content"][0]["id"] == "call_42"
        assert params[2]["content"][0]["tool_use_id"] == "call_42"


# ---------------------------------------------------------------------------
# Tool results
# ---------------------------------------------------------------------------

class TestToolResults:
    def test_consecutive_results_merge_into_one_message(self, model):
        history = [
            user("q"),
            assistant(call("a"), call("b"), call("c")),
            result("a", "1"),
            result("b", "2"),
            result("c", "3"),
        ]

        params = convert_messages(history, model)

        assert len(params) == 3
        merged = params[2]
        assert merged["role"] == "user"
        assert [p["tool_use_id"] for p in merged["content"]] == ["a", "b", "c"]
        assert [p["content"] for p in merged["content"]] == ["1", "2", "3"]

    def test_results_separated_by_turns_not_merged(self, model):
        history = [
            user("q"),
            assistant(call("a")),
            result("a"),
            assistant(call("b")),
            result("b"),
        ]

        params = convert_messages(history, model)

        assert [p["role"] for p in params] == [
            "user", "assistant", "user", "assistant", "user",
        ]

    def test_text_parts_joined(self, model):
        msg = ToolResultMessage(
            tool_call_id="a", tool_name="echo",
            content=[TextContent(text="line 1"), TextContent(text="line 2")],
            is_error=True,
        )
        params = convert_messages([assistant(call("a")), msg], model)

        block = params[1]["content"][0]
        assert block["content"] == "line 1\nline 2"
        assert block["is_error"] is True

    def test_image_only_gets_placeholder(self, model):
        msg = ToolResultMessage(tool_call_id="a", tool_name="screenshot", content=[PNG])
        params = convert_messages([assistant(call("a")), msg], model)

        content = params[1]["content"][0]["content"]
        assert content[0]["type"] == "text"
        assert content[0]["text"] == IMAGE_PLACEHOLDER
        assert content[1]["type"] == "image"

    def test_image_with_text_no_placeholder(self, model):
        msg = ToolResultMessage(
            tool_call_id="a", tool_name="screenshot",
            content=[TextContent(text="caption"), PNG],
        )
        params = convert_messages([assistant(call("a")), msg], model)

        content = params[1]["content"][0]["content"]
        assert [c["type"] for c in content] == ["text", "image"]
        assert content[0]["text"] == "caption"

    def test_synthetic_result_encoded(self, model):
        params = convert_messages([assistant(call("a")), user("next")], model)

        block = params[1]["content"][0]
        assert block["tool_use_id"] == "a"
        assert block["is_error"] is True
        assert block["content"] == "No result provided"


# ---------------------------------------------------------------------------
# Cache control
# ---------------------------------------------------------------------------

class TestCacheControl:
    def test_last_user_block_marked(self, model):
        history = [assistant(call("a"), call("b")), result("a"), result("b")]

        params = convert_messages(history, model)

        blocks = params[-1]["content"]
        assert blocks[-1]["cache_control"] == {"type": "ephemeral"}
        assert "cache_control" not in blocks[0]

    def test_only_one_marker(self, model):
        history = [
            UserMessage(content=[TextContent(text="a")]),
            assistant(TextContent(text="b")),
            UserMessage(content=[TextContent(text="c")]),
        ]

        params = convert_messages(history, model)

        marked = [
            block for p in params if isinstance(p["content"], list)
            for block in p["content"] if "cache_control" in block
        ]
        assert len(marked) == 1
        assert marked[0]["text"] == "c"

    def test_trailing_assistant_not_marked(self, model):
        params = convert_messages(
            [UserMessage(content=[TextContent(text="a")]), assistant(TextContent(text="b"))],
            model,
        )
        assert all(
            "cache_control" not in block
            for p in params for block in p["content"]
        )

    def test_string_content_not_marked(self, model):
        params = convert_messages([user("plain")], model)
        assert params[-1]["content"] == "plain"


# ---------------------------------------------------------------------------
# Tools and thinking budget
# ---------------------------------------------------------------------------

class TestConvertTools:
    def test_defaults_for_missing_schema_parts(self):
        tools = [Tool(name="ping", description="Ping.", parameters={})]

        assert convert_tools(tools) == [{
            "name": "ping",
            "description": "Ping.",
            "input_schema": {"type": "object", "properties": {}, "required": []},
        }]

    def test_decorated_tool(self):
        @tool
        def search(query: str, limit: int = 5):
            """Search the web.

            Args:
                query: What to look for.
            """

        schema = convert_tools([search])[0]["input_schema"]
        assert schema["properties"]["query"] == {
            "type": "string", "description": "What to look for.",
        }
        assert schema["properties"]["limit"] == {"type": "integer"}
        assert schema["required"] == ["query"]


class TestThinkingBudget:
    @pytest.mark.parametrize("level,budget", [
        ("minimal", 1024), ("low", 4096), ("medium", 10240), ("high", 20480),
    ])
    def test_defaults(self, level, budget):
        assert resolve_thinking_budget(level) == budget

    def test_enum_level(self):
        assert resolve_thinking_budget(ThinkingLevel.HIGH) == 20480

    def test_override_wins(self):
        assert resolve_thinking_budget("low", {"low": 2000}) == 2000

    def test_override_for_other_level_ignored(self):
        assert resolve_thinking_budget("low", {"high": 2000}) == 4096

    def test_unknown_or_absent_disabled(self):
        assert resolve_thinking_budget("extreme") is None
        assert resolve_thinking_budget(None) is None


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------

class TestBuildRequestBody:
    def test_minimal_body(self, model):
        body = build_request_body(model, Context(messages=[user("hi")]))

        assert body == {
            "anthropic_version": ANTHROPIC_VERSION,
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": model.max_tokens // 3,
            "stream": True,
        }

    def test_system_tools_and_max_tokens(self, model):
        context = Context(
            system_prompt="Be brief.",
            messages=[user("hi")],
            tools=[Tool(name="ping", parameters={"properties": {}})],
        )

        body = build_request_body(model, context, StreamOptions(max_tokens=512))

        assert body["max_tokens"] == 512
        assert body["system"] == [{
            "type": "text", "text": "Be brief.", "cache_control": {"type": "ephemeral"},
        }]
        assert body["tools"][0]["name"] == "ping"

    def test_thinking_enabled_for_reasoning_model(self, model):
        body = build_request_body(
            model, Context(messages=[user("hi")]),
            StreamOptions(reasoning="medium", thinking_budgets={"medium": 8000}),
        )
        assert body["thinking"] == {"type": "enabled", "budget_tokens": 8000}

    def test_thinking_omitted_for_unknown_level(self, model):
        body = build_request_body(
            model, Context(messages=[user("hi")]), StreamOptions(reasoning="max"),
        )
        assert "thinking" not in body

    def test_thinking_omitted_for_non_reasoning_model(self):
        plain = Model(id="claude-haiku", max_tokens=9000)
        body = build_request_body(
            plain, Context(messages=[user("hi")]), StreamOptions(reasoning="high"),
        )
        assert "thinking" not in body
        assert body["max_tokens"] == 3000
