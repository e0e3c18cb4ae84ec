"""Shared fixtures isolating tests from the caller's environment."""

from __future__ import annotations

from pathlib import Path

import pytest

from llmpipe import logging_utils

_ENV_VARS = (
    "OPENAI_API_KEY",
    "LLMPIPE_API_KEY",
    "LLMPIPE_MODEL",
    "LLMPIPE_SCHEMA",
    "LLMPIPE_ENDPOINT",
    "LLMPIPE_PASS_EXPRESSION",
    "LLMPIPE_TIMEOUT_SECONDS",
    "LLMPIPE_AWS_REGION",
    "LLMPIPE_LOG_LEVEL",
    "LLMPIPE_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(logging_utils, "_CONFIGURED", None)
