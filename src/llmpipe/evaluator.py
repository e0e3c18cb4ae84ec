"""Pass/fail evaluation of JSONata expressions against response text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jsonata
from jsonata.jexception import JException
from loguru import logger

from llmpipe.errors import EvaluationError, ExpressionError, NotBooleanError


@dataclass(frozen=True)
class PassExpression:
    """Compiled predicate over the accumulated response text."""

    source: str
    _compiled: Any

    @classmethod
    def compile(cls, expression: str) -> PassExpression:
        try:
            compiled = jsonata.Jsonata(expression)
        except JException as exc:
            raise ExpressionError(f"invalid pass expression {expression!r}: {exc}") from exc
        return cls(source=expression, _compiled=compiled)

    def evaluate(self, text: str) -> bool:
        try:
            value = self._compiled.evaluate(text)
        except JException as exc:
            raise EvaluationError(f"pass expression {self.source!r} failed: {exc}") from exc
        logger.debug("evaluator.result expression={!r} value={!r}", self.source, value)
        if not isinstance(value, bool):
            raise NotBooleanError(value)
        return value


def compile_pass_expression(expression: str | None) -> PassExpression | None:
    """Compile an optional expression. Blank input means no evaluation."""

    if expression is None or not expression.strip():
        return None
    return PassExpression.compile(expression)
