"""Optional OpenTelemetry instrumentation for vertexa.

Call ``vertexa.instrumentation.instrument()`` once at startup to enable
tracing.  Requires ``opentelemetry-api`` to be installed; the library
works identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

from vertexa.message import Usage

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "vertexa") -> None:
    """Enable OpenTelemetry tracing for every streamed turn.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install vertexa[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        from vertexa.instrumentation import instrument
        instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install vertexa[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be discarded."
        )
    else:
        logger.info("vertexa instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def completion_span(system: str, model: str):
    """Wrap one streamed turn in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
        },
    ) as span:
        yield span


def record_usage(span, usage: Usage | None, stop_reason: str | None = None):
    """Set token-usage and finish-reason attributes on a span."""
    if span is None or usage is None:
        return
    span.set_attribute("gen_ai.usage.input_tokens", usage.input)
    span.set_attribute("gen_ai.usage.output_tokens", usage.output)
    if usage.cache_read:
        span.set_attribute(
            "gen_ai.usage.cache_read.input_tokens", usage.cache_read,
        )
    if usage.cache_write:
        span.set_attribute(
            "gen_ai.usage.cache_creation.input_tokens", usage.cache_write,
        )
    if stop_reason:
        span.set_attribute(
            "gen_ai.response.finish_reasons", [stop_reason],
        )


def record_error(span, message: str, error_type: str = "error") -> None:
    """Set ERROR status on a span for a failed turn.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, message)
    span.set_attribute("error.type", error_type)
