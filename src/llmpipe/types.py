"""Request, stream event and result types shared by all providers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias


@dataclass(frozen=True)
class InvocationRequest:
    """One single-turn completion request."""

    model: str
    user_text: str
    system_prompts: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TextFragment:
    """Incremental piece of generated text."""

    text: str


@dataclass(frozen=True)
class StreamEnd:
    """Explicit end-of-turn signal. Nothing follows it."""


@dataclass(frozen=True)
class Ignored:
    """Provider event with no meaning for text output."""

    kind: str = ""


StreamEvent: TypeAlias = TextFragment | StreamEnd | Ignored
FragmentSink: TypeAlias = Callable[[str], None]

END = StreamEnd()


@dataclass(frozen=True)
class InvocationResult:
    """Concatenated text of one completed turn."""

    content: str


@dataclass(frozen=True)
class Output:
    """Pipeline result: the full text and the pass verdict."""

    content: str
    passed: bool = True
