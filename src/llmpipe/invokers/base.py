"""Invoker contract shared by all providers."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import aclosing

from loguru import logger

from llmpipe.config import BackendConfig
from llmpipe.errors import IncompleteStreamError, TransportError
from llmpipe.types import FragmentSink, InvocationRequest, InvocationResult, StreamEnd, StreamEvent, TextFragment


class Invoker(ABC):
    """Streams one completion from one provider.

    Subclasses only produce normalized stream events. The base class enforces
    the end-of-turn contract and the end-to-end timeout.
    """

    name: str = "base"

    def __init__(self, config: BackendConfig) -> None:
        self.config = config

    @abstractmethod
    def _events(self, request: InvocationRequest) -> AsyncIterator[StreamEvent]:
        """Open the provider stream and yield decoded stream events."""

    async def invoke(self, request: InvocationRequest) -> AsyncIterator[str]:
        """Yield text fragments in arrival order until the end of the turn."""

        ended = False
        async with aclosing(self._events(request)) as events:
            async for event in events:
                logger.trace("invoker.{}.event event={!r}", self.name, event)
                if isinstance(event, TextFragment):
                    yield event.text
                elif isinstance(event, StreamEnd):
                    ended = True
                    break
        if not ended:
            raise IncompleteStreamError(f"{self.name} stream closed before end of turn")

    async def run(self, request: InvocationRequest, sink: FragmentSink | None = None) -> InvocationResult:
        """Drive :meth:`invoke` to completion, forwarding each fragment to ``sink``."""

        parts: list[str] = []
        timeout = self.config.timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                async with aclosing(self.invoke(request)) as fragments:
                    async for text in fragments:
                        parts.append(text)
                        if sink is not None:
                            sink(text)
        except TimeoutError as exc:
            raise TransportError(f"{self.name} stream timed out after {timeout:g}s") from exc
        logger.debug("invoker.{}.done fragments={} chars={}", self.name, len(parts), sum(map(len, parts)))
        return InvocationResult(content="".join(parts))
