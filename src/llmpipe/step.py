"""Pipeline step: one prompt in, one streamed response out, one verdict."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from loguru import logger

from llmpipe.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
    BackendConfig,
    Schema,
    Settings,
    resolve_provider,
)
from llmpipe.evaluator import PassExpression, compile_pass_expression
from llmpipe.invokers import Invoker, build_invoker
from llmpipe.types import FragmentSink, InvocationRequest, Output


class Step:
    """Runs one invoker to completion and applies the optional pass expression."""

    def __init__(
        self,
        invoker: Invoker,
        *,
        system_prompts: Iterable[str] = (),
        pass_expression: PassExpression | None = None,
    ) -> None:
        self._invoker = invoker
        self._system_prompts = tuple(system_prompts)
        self._pass_expression = pass_expression

    @staticmethod
    def builder() -> StepBuilder:
        return StepBuilder()

    @property
    def invoker(self) -> Invoker:
        return self._invoker

    @property
    def pass_expression(self) -> PassExpression | None:
        return self._pass_expression

    def request_for(self, text: str) -> InvocationRequest:
        return InvocationRequest(
            model=self._invoker.config.model,
            user_text=text,
            system_prompts=self._system_prompts,
        )

    async def exec(self, text: str, sink: FragmentSink | None = None) -> Output:
        """Stream the response for ``text`` into ``sink`` and return the output."""

        request = self.request_for(text)
        logger.info("step.exec invoker={} model={} chars={}", self._invoker.name, request.model, len(text))
        result = await self._invoker.run(request, sink)

        if self._pass_expression is None:
            return Output(content=result.content, passed=True)
        passed = self._pass_expression.evaluate(result.content)
        logger.info("step.verdict expression={!r} passed={}", self._pass_expression.source, passed)
        return Output(content=result.content, passed=passed)


@dataclass(frozen=True)
class StepBuilder:
    """Immutable fluent builder; every setter returns a new builder."""

    model_name: str = DEFAULT_MODEL
    schema_name: Schema | str = Schema.OPENAI
    endpoint_url: str = DEFAULT_ENDPOINT
    credentials: str | None = None
    region_name: str | None = None
    system_prompts: tuple[str, ...] = field(default_factory=tuple)
    expression: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> StepBuilder:
        return cls(
            model_name=settings.model,
            schema_name=settings.schema_name,
            endpoint_url=settings.endpoint,
            credentials=settings.api_key,
            region_name=settings.aws_region,
            expression=settings.pass_expression,
            timeout_seconds=settings.timeout_seconds,
        )

    def model(self, model: str) -> StepBuilder:
        return replace(self, model_name=model)

    def schema(self, schema: Schema | str) -> StepBuilder:
        return replace(self, schema_name=schema)

    def endpoint(self, endpoint: str) -> StepBuilder:
        return replace(self, endpoint_url=endpoint)

    def api_key(self, api_key: str | None) -> StepBuilder:
        return replace(self, credentials=api_key)

    def region(self, region: str | None) -> StepBuilder:
        return replace(self, region_name=region)

    def system(self, *prompts: str) -> StepBuilder:
        return replace(self, system_prompts=self.system_prompts + prompts)

    def pass_expression(self, expression: str | None) -> StepBuilder:
        return replace(self, expression=expression)

    def timeout(self, seconds: float) -> StepBuilder:
        return replace(self, timeout_seconds=seconds)

    def resolve(self) -> tuple[Schema, BackendConfig]:
        schema, model = resolve_provider(Schema.parse(self.schema_name), self.model_name)
        config = BackendConfig(
            model=model,
            endpoint=self.endpoint_url,
            credentials=self.credentials,
            region=self.region_name,
            timeout_seconds=self.timeout_seconds,
        )
        return schema, config

    def build(self) -> Step:
        """Compile the pass expression and select the invoker. No network I/O."""

        pass_expression = compile_pass_expression(self.expression)
        schema, config = self.resolve()
        logger.debug("step.build schema={} config={!r}", schema.value, config)
        return Step(
            build_invoker(schema, config),
            system_prompts=self.system_prompts,
            pass_expression=pass_expression,
        )
