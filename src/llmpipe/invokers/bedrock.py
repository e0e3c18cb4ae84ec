"""AWS Bedrock ConverseStream invoker."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterator
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ParamValidationError,
    PartialCredentialsError,
)
from loguru import logger

from llmpipe.config import BackendConfig
from llmpipe.decoders import decode_bedrock_event
from llmpipe.errors import SetupError, TransportError
from llmpipe.invokers.base import Invoker
from llmpipe.types import InvocationRequest, StreamEvent

SERVICE_NAME = "bedrock-runtime"
CONNECT_TIMEOUT_SECONDS = 10
_SETUP_ERRORS = (NoCredentialsError, PartialCredentialsError, NoRegionError, ParamValidationError)


def build_system_blocks(request: InvocationRequest) -> list[dict[str, str]]:
    return [{"text": prompt} for prompt in request.system_prompts]


def build_converse_kwargs(request: InvocationRequest) -> dict[str, Any]:
    """Keyword arguments for ``converse_stream``; ``system`` only when present."""

    kwargs: dict[str, Any] = {
        "modelId": request.model,
        "messages": [{"role": "user", "content": [{"text": request.user_text}]}],
    }
    if system := build_system_blocks(request):
        kwargs["system"] = system
    return kwargs


class BedrockInvoker(Invoker):
    """Invoker for the Bedrock runtime push-event stream.

    The boto3 client is blocking, so each call and each event read runs in a
    worker thread while the event loop stays free. Credentials come from the
    standard AWS provider chain.
    """

    name = "bedrock"

    def __init__(self, config: BackendConfig, *, client: Any | None = None) -> None:
        super().__init__(config)
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            self._client = boto3.client(
                SERVICE_NAME,
                region_name=self.config.region,
                config=Config(
                    connect_timeout=CONNECT_TIMEOUT_SECONDS,
                    read_timeout=self.config.timeout_seconds,
                    retries={"total_max_attempts": 1},
                ),
            )
        except _SETUP_ERRORS as exc:
            raise SetupError(f"cannot create bedrock client: {exc!s}") from exc
        return self._client

    async def _open_stream(self, request: InvocationRequest) -> Any:
        client = self._get_client()
        kwargs = build_converse_kwargs(request)
        logger.debug("invoker.bedrock.request model={} system={}", request.model, len(kwargs.get("system", [])))
        try:
            response = await asyncio.to_thread(client.converse_stream, **kwargs)
        except _SETUP_ERRORS as exc:
            raise SetupError(f"bedrock request rejected before sending: {exc!s}") from exc
        except ClientError as exc:
            raise _transport_error(exc) from exc
        except BotoCoreError as exc:
            raise TransportError(f"bedrock transport error: {exc!s}") from exc
        return response["stream"]

    async def _events(self, request: InvocationRequest) -> AsyncIterator[StreamEvent]:
        stream = await self._open_stream(request)
        events: Iterator[dict[str, Any]] = iter(stream)
        try:
            while True:
                try:
                    raw = await asyncio.to_thread(next, events, None)
                except ClientError as exc:
                    raise _transport_error(exc) from exc
                except BotoCoreError as exc:
                    raise TransportError(f"bedrock stream error: {exc!s}") from exc
                if raw is None:
                    return
                yield decode_bedrock_event(raw)
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()


def _transport_error(exc: ClientError) -> TransportError:
    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    code = error.get("Code", "ClientError")
    return TransportError(f"bedrock request failed: {code}", status=status, detail=error.get("Message"))
