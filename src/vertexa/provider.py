import asyncio
import logging
from typing import Callable

import httpx

from vertexa.assembler import TurnAssembler
from vertexa.config import VertexConfig
from vertexa.context import Context, StreamOptions
from vertexa.encoder import build_request_body
from vertexa.errors import ConfigurationError, StreamAborted, VertexAPIError
from vertexa.instrumentation import completion_span, record_error, record_usage
from vertexa.message import AssistantMessage, StopReason
from vertexa.model import Model
from vertexa.streaming import AssistantMessageEventStream

logger = logging.getLogger(__name__)


class VertexAnthropicProvider:
    """Streams Claude turns through Vertex AI's ``:streamRawPredict``.

    One HTTP request per turn, no retries.  The response body is decoded
    and assembled while it arrives; callers read delta events from the
    returned :class:`~vertexa.streaming.AssistantMessageEventStream`.

    Args:
        config: Project and region. Defaults to a config read from the
            environment.
        token_provider: Returns a bearer token for each request, e.g. the
            output of ``gcloud auth print-access-token``. Defaults to the
            config's static ``access_token``.
        client: An ``httpx.AsyncClient`` to reuse. When omitted the
            provider creates one and closes it in :meth:`aclose`.
    """

    def __init__(
        self,
        config: VertexConfig | None = None,
        token_provider: Callable[[], str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or VertexConfig()
        self.token_provider = token_provider
        self._client = client
        self._owns_client = client is None
        self._tasks: set[asyncio.Task] = set()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
            )
        return self._client

    def _access_token(self) -> str:
        token = self.token_provider() if self.token_provider else self.config.access_token
        if not token:
            raise ConfigurationError(
                "No access token available. Pass token_provider= or set "
                "VERTEX_ACCESS_TOKEN."
            )
        return token.strip()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def stream(
        self,
        model: Model,
        context: Context,
        options: StreamOptions | None = None,
    ) -> AssistantMessageEventStream:
        """Start streaming one turn; returns immediately.

        Must be called from a running event loop.
        """
        options = options or StreamOptions()
        stream = AssistantMessageEventStream()
        assembler = TurnAssembler(model, stream, signal=options.signal)
        task = asyncio.create_task(
            self._produce(model, context, options, assembler)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return stream

    async def complete(
        self,
        model: Model,
        context: Context,
        options: StreamOptions | None = None,
    ) -> AssistantMessage:
        """Stream one turn and return it once finished (or failed)."""
        return await self.stream(model, context, options).result()

    async def _produce(
        self,
        model: Model,
        context: Context,
        options: StreamOptions,
        assembler: TurnAssembler,
    ) -> None:
        async with completion_span(model.provider, model.id) as span:
            try:
                if assembler.aborted:
                    raise StreamAborted()
                body = build_request_body(model, context, options)
                url = self.config.endpoint(model.endpoint_model_id)
                headers = {
                    "Authorization": f"Bearer {self._access_token()}",
                    "Content-Type": "application/json",
                }
                logger.info("Streaming %s from %s", model.id, url)
                async with self._get_client().stream(
                    "POST", url, json=body, headers=headers,
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        logger.warning(
                            "Vertex AI returned %s for %s", response.status_code, model.id,
                        )
                        raise VertexAPIError(response.status_code, response.text)
                    message = await assembler.consume(response.aiter_bytes())
            except asyncio.CancelledError:
                assembler.fail(StreamAborted(), aborted=True)
                raise
            except Exception as e:
                message = assembler.fail(e)

            if message.stop_reason in (StopReason.ERROR, StopReason.ABORTED):
                record_error(
                    span, message.error_message or "", message.stop_reason.value,
                )
            record_usage(span, message.usage, message.stop_reason.value)
