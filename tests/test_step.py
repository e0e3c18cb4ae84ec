"""Tests for the pipeline step and its builder."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from llmpipe.config import BackendConfig, Schema, Settings
from llmpipe.errors import ExpressionError, IncompleteStreamError, NotBooleanError, UnknownSchemaError
from llmpipe.evaluator import PassExpression
from llmpipe.invokers import BedrockInvoker, Invoker, OpenAIInvoker
from llmpipe.step import Step, StepBuilder
from llmpipe.types import END, Ignored, InvocationRequest, Output, StreamEvent, TextFragment


class FakeInvoker(Invoker):
    name = "fake"

    def __init__(self, events: list[StreamEvent], model: str = "fake-model") -> None:
        super().__init__(BackendConfig(model=model))
        self.events = events
        self.requests: list[InvocationRequest] = []

    async def _events(self, request: InvocationRequest) -> AsyncIterator[StreamEvent]:
        self.requests.append(request)
        for event in self.events:
            yield event


def _fragments(*texts: str) -> list[StreamEvent]:
    return [TextFragment(text) for text in texts]


@pytest.mark.asyncio
async def test_exec_without_expression_passes() -> None:
    invoker = FakeInvoker([Ignored("start"), *_fragments("Hi", "!"), END])
    step = Step(invoker)
    seen: list[str] = []

    output = await step.exec("Say hi", seen.append)

    assert output == Output(content="Hi!", passed=True)
    assert seen == ["Hi", "!"]
    assert invoker.requests == [InvocationRequest(model="fake-model", user_text="Say hi", system_prompts=())]


@pytest.mark.asyncio
async def test_exec_passes_system_prompts_in_order() -> None:
    invoker = FakeInvoker([*_fragments("ok"), END])
    step = Step(invoker, system_prompts=["Be terse", "Use English"])

    await step.exec("question")

    assert invoker.requests[0].system_prompts == ("Be terse", "Use English")


@pytest.mark.asyncio
@pytest.mark.parametrize(("content", "expected"), [("Result: OK", True), ("Result: FAIL", False)])
async def test_exec_evaluates_pass_expression(content: str, expected: bool) -> None:
    step = Step(
        FakeInvoker([TextFragment("Result: "), TextFragment(content.removeprefix("Result: ")), END]),
        pass_expression=PassExpression.compile('$contains($, "OK")'),
    )

    output = await step.exec("check")

    assert output == Output(content=content, passed=expected)


@pytest.mark.asyncio
async def test_exec_rejects_non_boolean_verdict() -> None:
    step = Step(FakeInvoker([*_fragments("yes"), END]), pass_expression=PassExpression.compile("$"))

    with pytest.raises(NotBooleanError):
        await step.exec("anything")


@pytest.mark.asyncio
async def test_exec_propagates_incomplete_stream() -> None:
    step = Step(FakeInvoker(_fragments("cut")), pass_expression=PassExpression.compile('$contains($, "cut")'))

    with pytest.raises(IncompleteStreamError):
        await step.exec("anything")


@pytest.mark.asyncio
async def test_fragments_after_end_are_not_consumed() -> None:
    step = Step(FakeInvoker([*_fragments("a"), END, *_fragments("b")]))

    output = await step.exec("x")

    assert output.content == "a"


def test_builder_is_immutable() -> None:
    base = Step.builder()
    configured = base.model("gpt-4o-mini").system("one").system("two")

    assert base.model_name == "gpt-4o"
    assert base.system_prompts == ()
    assert configured.model_name == "gpt-4o-mini"
    assert configured.system_prompts == ("one", "two")


def test_builder_selects_openai_by_default() -> None:
    step = StepBuilder().api_key("sk-test").endpoint("https://llm.test/v1").build()

    assert isinstance(step.invoker, OpenAIInvoker)
    assert step.invoker.config.endpoint == "https://llm.test/v1"
    assert step.invoker.config.credentials == "sk-test"
    assert step.pass_expression is None


def test_builder_bedrock_prefix_routes_and_strips_model() -> None:
    step = StepBuilder().model("bedrock:anthropic.claude-3-haiku-20240307-v1:0").build()

    assert isinstance(step.invoker, BedrockInvoker)
    assert step.invoker.config.model == "anthropic.claude-3-haiku-20240307-v1:0"
    assert step.request_for("hi").model == "anthropic.claude-3-haiku-20240307-v1:0"


def test_builder_explicit_schema_selects_bedrock() -> None:
    step = StepBuilder().schema("bedrock").model("amazon.nova-lite-v1:0").region("us-east-1").build()

    assert isinstance(step.invoker, BedrockInvoker)
    assert step.invoker.config.model == "amazon.nova-lite-v1:0"
    assert step.invoker.config.region == "us-east-1"


def test_builder_rejects_unknown_schema() -> None:
    with pytest.raises(UnknownSchemaError):
        StepBuilder().schema("gemini").build()


def test_builder_compiles_expression_before_any_call() -> None:
    with pytest.raises(ExpressionError):
        StepBuilder().pass_expression("$contains(").build()


def test_builder_from_settings() -> None:
    settings = Settings(
        model="gpt-4o-mini",
        schema_name="openai",
        api_key="sk-env",
        pass_expression='$contains($, "OK")',
        timeout_seconds=12,
    )

    step = StepBuilder.from_settings(settings).build()

    assert isinstance(step.invoker, OpenAIInvoker)
    assert step.invoker.config.model == "gpt-4o-mini"
    assert step.invoker.config.timeout_seconds == 12
    assert step.pass_expression is not None
    assert settings.resolved_schema is Schema.OPENAI
