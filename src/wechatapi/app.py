"""Typer application and CLI entry point for wechatapi.

This module wires together the top-level Typer application, registers the
built-in sub-commands (``token``, ``call``, ``config``), loads capability
modules published through entry points, and invokes the app.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. :class:`~wechatapi.exceptions.WeChatAPIError` instances
exit with their ``exit_code``; anything else is written to a crash log under
the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from wechatapi import __version__
from wechatapi.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="wechatapi",
    help="Call the WeChat public-platform API with managed access tokens.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"wechatapi {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    app_id: Optional[str] = typer.Option(
        None, "--app-id", "-a", help="appid to act as (overrides config and env)."
    ),
    environment: Optional[str] = typer.Option(
        None, "--env", help="Deployment mode: development or production."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~wechatapi.output.OutputManager`, routes
    library logging to stderr, and stores the shared options in
    ``ctx.obj`` for the sub-commands.
    """
    from wechatapi.config import load_config
    from wechatapi.exceptions import ConfigError
    from wechatapi.output import OutputFormat, OutputManager, set_output, warning

    problem: Optional[str] = None
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_config().output.format)
        except ConfigError as exc:
            fmt = OutputFormat.AUTO
            problem = str(exc)
        except ValueError as exc:
            fmt = OutputFormat.AUTO
            problem = f"Ignoring output.format from config: {exc}"

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    if problem:
        warning(problem)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    ctx.ensure_object(dict)
    ctx.obj["app_id"] = app_id
    ctx.obj["environment"] = environment
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to the data directory and return its path."""
    from wechatapi.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


_commands_registered = False


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app` (once)."""
    global _commands_registered
    if _commands_registered:
        return

    from wechatapi.commands.call import call_command
    from wechatapi.commands.config import config_app
    from wechatapi.commands.token import token_app

    app.add_typer(token_app, name="token", help="Access token management.")
    app.add_typer(config_app, name="config", help="Configuration management.")
    app.command("call")(call_command)
    _commands_registered = True


def main() -> None:
    """CLI entry point invoked by the ``wechatapi`` console script.

    1. Install signal handlers for clean Ctrl-C behaviour.
    2. Register built-in sub-commands.
    3. Load capability modules from the ``wechatapi.capabilities`` entry points.
    4. Invoke the Typer application.

    Raises:
        SystemExit: Always raised.
    """
    from wechatapi.capabilities import discover_capabilities
    from wechatapi.exceptions import WeChatAPIError
    from wechatapi.output import error

    _setup_signal_handlers()
    try:
        register_commands()
        discover_capabilities()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except WeChatAPIError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
