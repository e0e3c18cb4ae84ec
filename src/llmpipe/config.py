"""Configuration management for llmpipe."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from llmpipe.errors import ConfigurationError, UnknownSchemaError

DEFAULT_MODEL = "gpt-4o"
DEFAULT_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_SECONDS = 300.0
BEDROCK_MODEL_PREFIX = "bedrock:"


class Schema(StrEnum):
    """Wire format of the provider API."""

    OPENAI = "openai"
    BEDROCK = "bedrock"

    @classmethod
    def parse(cls, value: str | Schema) -> Schema:
        try:
            return cls(str(value).strip().casefold())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise UnknownSchemaError(f"unknown schema {value!r}, expected one of: {choices}") from exc


def resolve_provider(schema: Schema, model: str) -> tuple[Schema, str]:
    """Apply the ``bedrock:`` model prefix convention.

    A prefixed model always routes to Bedrock and loses the prefix.
    """

    if model.startswith(BEDROCK_MODEL_PREFIX):
        return Schema.BEDROCK, model[len(BEDROCK_MODEL_PREFIX) :]
    return schema, model


@dataclass(frozen=True)
class BackendConfig:
    """Connection settings owned by exactly one invoker."""

    model: str
    endpoint: str = DEFAULT_ENDPOINT
    credentials: str | None = None
    region: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __repr__(self) -> str:
        masked = "***" if self.credentials else None
        return (
            f"BackendConfig(model={self.model!r}, endpoint={self.endpoint!r}, credentials={masked!r}, "
            f"region={self.region!r}, timeout_seconds={self.timeout_seconds!r})"
        )


class Settings(BaseSettings):
    """Application settings loaded from ``LLMPIPE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LLMPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    model: str = Field(default=DEFAULT_MODEL, description="Model identifier")
    schema_name: str = Field(
        default=Schema.OPENAI.value,
        validation_alias=AliasChoices("LLMPIPE_SCHEMA"),
        description="Provider wire format",
    )
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="Base URL of the chat-completion API")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLMPIPE_API_KEY", "OPENAI_API_KEY"),
        description="API key for the chat-completion API",
    )
    aws_region: str | None = Field(default=None, description="AWS region for Bedrock")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="End-to-end stream timeout")
    pass_expression: str | None = Field(default=None, description="JSONata pass/fail expression")

    log_level: str = Field(default="WARNING", description="Log level")
    log_format: Literal["default", "rich"] = Field(default="default", description="Log sink format")

    @property
    def resolved_schema(self) -> Schema:
        return Schema.parse(self.schema_name)

    def backend_config(self, model: str | None = None) -> BackendConfig:
        return BackendConfig(
            model=model or self.model,
            endpoint=self.endpoint,
            credentials=self.api_key,
            region=self.aws_region,
            timeout_seconds=self.timeout_seconds,
        )


def get_settings(**overrides: object) -> Settings:
    """Load settings, applying explicit non-None overrides."""

    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid settings: {exc}") from exc
