"""Tests for JSONata pass expressions."""

from __future__ import annotations

import pytest

from llmpipe.errors import EvaluationError, ExpressionError, NotBooleanError
from llmpipe.evaluator import PassExpression, compile_pass_expression


def test_contains_expression() -> None:
    expression = PassExpression.compile('$contains($, "OK")')
    assert expression.evaluate("Result: OK") is True
    assert expression.evaluate("Result: FAIL") is False


def test_length_comparison() -> None:
    expression = PassExpression.compile("$length($) > 3")
    assert expression.evaluate("long enough") is True
    assert expression.evaluate("no") is False


def test_non_boolean_result_is_rejected() -> None:
    expression = PassExpression.compile('"yes"')
    with pytest.raises(NotBooleanError) as exc_info:
        expression.evaluate("anything")
    assert exc_info.value.value == "yes"
    assert isinstance(exc_info.value, EvaluationError)


def test_invalid_expression_fails_at_compile_time() -> None:
    with pytest.raises(ExpressionError):
        PassExpression.compile("$contains(")


@pytest.mark.parametrize("expression", [None, "", "   "])
def test_blank_expression_means_no_evaluation(expression: str | None) -> None:
    assert compile_pass_expression(expression) is None


def test_evaluation_failure_is_evaluation_error() -> None:
    expression = PassExpression.compile('$contains(5, "OK")')

    with pytest.raises(EvaluationError):
        expression.evaluate("Result: OK")


class _BrokenCompiled:
    def evaluate(self, text: str) -> bool:
        raise RuntimeError("bug in caller")


def test_unexpected_errors_are_not_wrapped() -> None:
    expression = PassExpression(source="$", _compiled=_BrokenCompiled())

    with pytest.raises(RuntimeError, match="bug in caller"):
        expression.evaluate("text")
