"""Command line entry point running example promise loops."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable

import click

from .logger import enable_console
from .promise import PromiseRejected
from .repeat import Break, RepeatPromise


async def run_countdown(start: int, message: str, emit: Callable[[str], None]) -> Any:
    """Count down from ``start`` and break with ``message`` once zero is reached."""

    def body(brk: Break, n: int) -> int:
        if n <= 0:
            brk(message)
        emit(f"({n})")
        return n - 1

    return await RepeatPromise.repeat(start, body)


async def run_retry(fail_times: int, max_attempts: int, emit: Callable[[str], None]) -> int:
    """Retry a step that fails ``fail_times`` times, giving up after ``max_attempts``."""

    def body(brk: Break, attempt: int) -> Any:
        if attempt > max_attempts:
            brk(f"gave up after {max_attempts} attempt(s)")
        if attempt <= fail_times:
            emit(f"attempt {attempt} failed")
            return RepeatPromise.reject(attempt + 1)
        return attempt

    return await RepeatPromise.repeat_catch(1, body)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log loop activity to stderr")
def cli(verbose: bool) -> None:
    """Run promise-repeat example loops."""
    if verbose:
        enable_console(logging.DEBUG)


@cli.command()
@click.argument("start", type=click.IntRange(min=0))
@click.option("--message", "-m", default="yay", show_default=True, help="Value passed to break")
def countdown(start: int, message: str) -> None:
    """Count down from START, then break with MESSAGE."""
    result = asyncio.run(run_countdown(start, message, lambda text: click.echo(text, nl=False)))
    click.echo(result)


@cli.command()
@click.option("--fail-times", default=2, show_default=True, type=click.IntRange(min=0))
@click.option("--max-attempts", default=5, show_default=True, type=click.IntRange(min=1))
def retry(fail_times: int, max_attempts: int) -> None:
    """Retry a flaky step until it succeeds or MAX_ATTEMPTS is exceeded."""
    try:
        attempts = asyncio.run(run_retry(fail_times, max_attempts, click.echo))
    except PromiseRejected as exc:
        click.echo(" ".join(str(reason) for reason in exc.reasons), err=True)
        sys.exit(1)
    click.echo(f"succeeded on attempt {attempts}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
