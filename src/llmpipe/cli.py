"""Command-line entry point: call an LLM in a shell pipeline."""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from llmpipe import __version__
from llmpipe.config import Schema, get_settings
from llmpipe.errors import LlmPipeError
from llmpipe.logging_utils import configure_logging
from llmpipe.step import StepBuilder

EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_ERROR = 2
STDIN_MARKER = "-"

app = typer.Typer(
    name="llmpipe",
    help="Call LLMs in your pipeline, print the text response to stdout.",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def read_prompt(prompt: str | None) -> str:
    """Use the argument, or read stdin when it is absent or ``-``."""

    if prompt is not None and prompt != STDIN_MARKER:
        logger.debug("cli.prompt source=argument length={}", len(prompt))
        return prompt
    logger.debug("cli.prompt source=stdin")
    text = sys.stdin.read()
    logger.debug("cli.prompt source=stdin length={}", len(text))
    return text


def write_fragment(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


@app.command()
def main(
    prompt: str | None = typer.Argument(None, help='The prompt. Read from stdin when omitted or "-".'),
    model: str | None = typer.Option(None, "--model", "-m", help="The model to use."),
    schema: Schema | None = typer.Option(None, "--schema", "-s", help="The API schema to use."),
    system: list[str] | None = typer.Option(None, "--system", "-S", help="System instructions, repeatable."),  # noqa: B008
    endpoint: str | None = typer.Option(None, "--endpoint", "-e", help="Base URL of the chat-completion API."),
    pass_expression: str | None = typer.Option(None, "--pass", "-p", help="JSONata expression deciding the exit code."),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version."),
) -> None:
    """Send one prompt, stream the response, exit by the pass expression."""

    configure_logging()
    try:
        settings = get_settings(
            model=model,
            schema_name=schema.value if schema is not None else None,
            endpoint=endpoint,
            pass_expression=pass_expression,
        )
        configure_logging(settings.log_level, profile=settings.log_format)
        step = StepBuilder.from_settings(settings).system(*(system or [])).build()
        text = read_prompt(prompt)
        output = asyncio.run(step.exec(text, write_fragment))
    except LlmPipeError as exc:
        logger.error("llmpipe.error type={} error={}", type(exc).__name__, exc)
        raise typer.Exit(EXIT_ERROR) from exc
    except BrokenPipeError as exc:
        logger.warning("llmpipe.stdout_closed")
        raise typer.Exit(EXIT_ERROR) from exc

    if not output.passed:
        logger.info("llmpipe.fail expression={!r}", settings.pass_expression)
        raise typer.Exit(EXIT_FAIL)
    raise typer.Exit(EXIT_PASS)
