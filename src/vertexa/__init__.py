from vertexa.assembler import TurnAssembler, map_stop_reason
from vertexa.config import VertexConfig
from vertexa.context import Context, StreamOptions, ThinkingLevel
from vertexa.encoder import build_request_body, convert_messages, convert_tools
from vertexa.errors import (
    ConfigurationError,
    StreamAborted,
    VertexAPIError,
    VertexaError,
)
from vertexa.message import (
    AssistantMessage,
    ImageContent,
    Message,
    StopReason,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResultMessage,
    Usage,
    UserMessage,
)
from vertexa.model import VERTEX_MODELS, Model, ModelCost, calculate_cost, get_model
from vertexa.provider import VertexAnthropicProvider
from vertexa.sse import SSEFrame, parse_sse
from vertexa.streaming import AssistantMessageEventStream
from vertexa.tools import Tool, tool
from vertexa.transform import normalize_tool_call_id, transform_messages

__all__ = [
    "AssistantMessage",
    "AssistantMessageEventStream",
    "ConfigurationError",
    "Context",
    "ImageContent",
    "Message",
    "Model",
    "ModelCost",
    "SSEFrame",
    "StopReason",
    "StreamAborted",
    "StreamOptions",
    "TextContent",
    "ThinkingContent",
    "ThinkingLevel",
    "Tool",
    "ToolCall",
    "ToolResultMessage",
    "TurnAssembler",
    "Usage",
    "UserMessage",
    "VERTEX_MODELS",
    "VertexAPIError",
    "VertexAnthropicProvider",
    "VertexConfig",
    "VertexaError",
    "build_request_body",
    "calculate_cost",
    "convert_messages",
    "convert_tools",
    "get_model",
    "map_stop_reason",
    "normalize_tool_call_id",
    "parse_sse",
    "tool",
    "transform_messages",
]
