"""Provider invokers and the dispatch that selects one."""

from __future__ import annotations

from llmpipe.config import BackendConfig, Schema
from llmpipe.invokers.base import Invoker
from llmpipe.invokers.bedrock import BedrockInvoker
from llmpipe.invokers.openai import OpenAIInvoker

INVOKERS: dict[Schema, type[Invoker]] = {
    Schema.OPENAI: OpenAIInvoker,
    Schema.BEDROCK: BedrockInvoker,
}


def build_invoker(schema: Schema, config: BackendConfig) -> Invoker:
    """Create the invoker for ``schema``. The choice is final for the run."""

    return INVOKERS[schema](config)


__all__ = ["INVOKERS", "BedrockInvoker", "Invoker", "OpenAIInvoker", "build_invoker"]
