"""Stream decoders that normalize provider wire formats to stream events."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from typing import Any

from loguru import logger

from llmpipe.errors import TransportError
from llmpipe.types import END, Ignored, StreamEvent, TextFragment

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

BEDROCK_DELTA = "contentBlockDelta"
BEDROCK_STOP = "contentBlockStop"


class SSEDecoder:
    """Incremental decoder for chat-completion ``data:`` event streams.

    Chunks may split lines anywhere. Complete lines are decoded as soon as
    they are available; a trailing partial line waits for the next chunk or
    for :meth:`flush`. Once the end-of-turn signal has been produced the
    decoder ignores all further input.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def feed(self, chunk: str) -> list[StreamEvent]:
        if self._ended:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[StreamEvent]:
        """Decode whatever is left in the buffer at end of input."""
        if self._ended:
            return []
        rest, self._buffer = self._buffer, ""
        return self._decode_lines([rest])

    def _decode_lines(self, lines: list[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._decode_line(line))
            if self._ended:
                self._buffer = ""
                break
        return events

    def _decode_line(self, raw: str) -> list[StreamEvent]:
        line = raw.rstrip("\r")
        if not line.strip() or line.startswith(":"):
            return []
        if not line.startswith(DATA_PREFIX):
            return [Ignored(line.partition(":")[0])]

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self._ended = True
            return [END]

        record = parse_delta_record(payload)
        if record is None:
            logger.debug("decoder.sse.skip line={!r}", line[:200])
            return []

        content, finish_reason = record
        events: list[StreamEvent] = []
        if content is not None:
            events.append(TextFragment(content))
        if finish_reason is not None:
            self._ended = True
            events.append(END)
        return events


def parse_delta_record(payload: str) -> tuple[str | None, str | None] | None:
    """Parse one JSON delta record into ``(content, finish_reason)``.

    Returns ``None`` when the payload is not a chat-completion chunk.
    """

    try:
        data = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None

    choice = choices[0]
    delta = choice.get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    finish_reason = choice.get("finish_reason")
    return (
        content if isinstance(content, str) else None,
        str(finish_reason) if finish_reason is not None else None,
    )


async def decode_sse(chunks: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """Decode an async text chunk stream into stream events."""

    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
        if decoder.ended:
            return
    for event in decoder.flush():
        yield event


def decode_bedrock_event(event: Mapping[str, Any]) -> StreamEvent:
    """Map one ConverseStream event to a stream event.

    Exception events raise :class:`TransportError` instead of being ignored.
    """

    if BEDROCK_DELTA in event:
        delta = event[BEDROCK_DELTA].get("delta") or {}
        text = delta.get("text")
        if isinstance(text, str):
            return TextFragment(text)
        return Ignored(BEDROCK_DELTA)
    if BEDROCK_STOP in event:
        return END

    for kind, payload in event.items():
        if kind.endswith("Exception"):
            message = payload.get("message") if isinstance(payload, Mapping) else None
            raise TransportError(f"bedrock stream error: {kind}", detail=message or str(payload))
    return Ignored(next(iter(event), ""))
