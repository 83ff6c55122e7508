"""Interactive chat with Claude on Vertex AI.

Demonstrates:
- Defining tools with @tool and answering the model's tool calls
- Streaming text and thinking deltas as they arrive
- Cancelling a slow turn through StreamOptions.signal

Usage:
    export VERTEX_PROJECT=my-project
    python examples/vertex_chat_example.py --reasoning low

An access token is fetched with ``gcloud auth print-access-token`` for
every request unless VERTEX_ACCESS_TOKEN is set.
"""

import argparse
import asyncio
import datetime
import logging
import os
import subprocess

from vertexa import (
    Context,
    StopReason,
    StreamOptions,
    TextContent,
    ToolResultMessage,
    UserMessage,
    VertexAnthropicProvider,
    VertexConfig,
    get_model,
    tool,
)


@tool
def current_time(timezone_offset: int = 0):
    """Return the current time as an ISO-8601 string.

    Args:
        timezone_offset: Hours east of UTC.
    """
    tz = datetime.timezone(datetime.timedelta(hours=timezone_offset))
    return datetime.datetime.now(tz).isoformat(timespec="seconds")


TOOLS = {t.name: t for t in [current_time]}


def gcloud_token() -> str:
    return subprocess.run(
        ["gcloud", "auth", "print-access-token"],
        check=True, capture_output=True, text=True,
    ).stdout


async def run_turn(provider, model, context, options):
    stream = provider.stream(model, context, options)
    async for event in stream:
        if event.type == "thinking_delta":
            print(f"\033[2m{event.delta}\033[0m", end="", flush=True)
        elif event.type == "thinking_end":
            print()
        elif event.type == "text_delta":
            print(event.delta, end="", flush=True)
        elif event.type == "toolcall_end":
            print(f"\n[tool] {event.tool_call.name}({event.tool_call.arguments})")
    print()
    return await stream.result()


async def main():
    parser = argparse.ArgumentParser(description="Vertex AI Claude chat")
    parser.add_argument("--model", default="claude-sonnet-4-5@20250929")
    parser.add_argument("--project", default=None)
    parser.add_argument("--region", default=None)
    parser.add_argument(
        "--reasoning", choices=["minimal", "low", "medium", "high"], default=None,
    )
    parser.add_argument(
        "--turn-timeout", type=float, default=120.0,
        help="Seconds before a turn is cancelled",
    )
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
    )

    config = VertexConfig(project=args.project, region=args.region)
    token_provider = None if os.getenv("VERTEX_ACCESS_TOKEN") else gcloud_token
    provider = VertexAnthropicProvider(config=config, token_provider=token_provider)
    model = get_model(args.model)
    context = Context(
        system_prompt="You are a concise, helpful assistant.",
        tools=list(TOOLS.values()),
    )

    print(f"Chatting with {model.name}. Ctrl-D quits.\n")

    try:
        while True:
            try:
                user_input = input("You: ")
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break
            context.messages.append(UserMessage(content=user_input))

            while True:
                signal = asyncio.Event()
                options = StreamOptions(reasoning=args.reasoning, signal=signal)
                timer = asyncio.get_running_loop().call_later(args.turn_timeout, signal.set)
                try:
                    message = await run_turn(provider, model, context, options)
                finally:
                    timer.cancel()
                context.messages.append(message)

                if message.stop_reason in (StopReason.ERROR, StopReason.ABORTED):
                    print(f"[{message.stop_reason.value}] {message.error_message}")
                    break
                if message.stop_reason is not StopReason.TOOL_USE:
                    break

                for call in message.tool_calls():
                    target = TOOLS.get(call.name)
                    if target is None:
                        output, is_error = f"Unknown tool '{call.name}'", True
                    else:
                        output, is_error = str(target.func(**call.arguments)), False
                    context.messages.append(ToolResultMessage(
                        tool_call_id=call.id,
                        tool_name=call.name,
                        content=[TextContent(text=output)],
                        is_error=is_error,
                    ))

            usage = message.usage
            print(f"(tokens: {usage.total_tokens}, ${usage.cost.total:.4f})\n")
    finally:
        await provider.aclose()


if __name__ == "__main__":
    asyncio.run(main())
