"""Chat-completion invoker over HTTP server-sent events."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

import httpx
from loguru import logger

from llmpipe.config import BackendConfig
from llmpipe.decoders import decode_sse
from llmpipe.errors import SetupError, TransportError
from llmpipe.invokers.base import Invoker
from llmpipe.types import InvocationRequest, StreamEvent

COMPLETIONS_PATH = "/chat/completions"
CONNECT_TIMEOUT_SECONDS = 10.0
MAX_ERROR_DETAIL_CHARS = 2_000


def build_messages(request: InvocationRequest) -> list[dict[str, str]]:
    """System prompts first, in order, then the single user turn."""

    messages = [{"role": "system", "content": prompt} for prompt in request.system_prompts]
    messages.append({"role": "user", "content": request.user_text})
    return messages


def build_request_body(request: InvocationRequest) -> dict[str, Any]:
    return {
        "model": request.model,
        "messages": build_messages(request),
        "stream": True,
    }


class OpenAIInvoker(Invoker):
    """Invoker for OpenAI-compatible ``/chat/completions`` streaming APIs."""

    name = "openai"

    def __init__(self, config: BackendConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__(config)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.config.credentials:
            raise SetupError("missing API key: set LLMPIPE_API_KEY or OPENAI_API_KEY")
        return {
            "Authorization": f"Bearer {self.config.credentials}",
            "Accept": "text/event-stream",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.endpoint,
            headers=self._headers(),
            timeout=httpx.Timeout(self.config.timeout_seconds, connect=CONNECT_TIMEOUT_SECONDS),
            transport=self._transport,
        )

    async def _events(self, request: InvocationRequest) -> AsyncIterator[StreamEvent]:
        body = build_request_body(request)
        logger.debug(
            "invoker.openai.request endpoint={} model={} messages={}",
            self.config.endpoint,
            request.model,
            len(body["messages"]),
        )
        try:
            client = self._client()
            async with client, client.stream("POST", COMPLETIONS_PATH, json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise TransportError(
                        "chat completion request failed",
                        status=response.status_code,
                        detail=response.text[:MAX_ERROR_DETAIL_CHARS],
                    )
                async with aclosing(decode_sse(response.aiter_text())) as events:
                    async for event in events:
                        yield event
        except httpx.InvalidURL as exc:
            raise SetupError(f"invalid endpoint {self.config.endpoint!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"chat completion transport error: {exc!s}") from exc
