"""Console entry point for the swiftseg CLI application."""

from __future__ import annotations

import sys
from typing import Sequence

import click
import structlog
import typer

from apps.swiftseg.app import app
from apps.swiftseg.utils.errors import ExitCode, SwiftsegError, SwiftsegRuntimeError

log = structlog.get_logger(__name__)


def _handle_cli_error(exc: SwiftsegError) -> ExitCode:
    """Render a user friendly error message and return the exit code."""

    typer.secho(f"{exc.heading}: {exc}", fg=typer.colors.RED, err=True)
    return exc.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Invoke the root Typer application."""

    try:
        result = app(
            args=list(argv) if argv is not None else None,
            standalone_mode=False,
        )
        if result is None:
            return int(ExitCode.SUCCESS)
        return int(result)
    except SwiftsegError as exc:
        exit_code = _handle_cli_error(exc)
        return int(exit_code)
    except click.ClickException as exc:
        # Usage problems: unknown options, missing or unreadable arguments.
        exc.show()
        return int(ExitCode.VALIDATION)
    except Exception as exc:
        log.exception("swiftseg.unexpected_error")
        exit_code = _handle_cli_error(SwiftsegRuntimeError(f"{type(exc).__name__}: {exc}"))
        return int(exit_code)


if __name__ == "__main__":
    sys.exit(main())
