"""Typer application and CLI entry point for wunderbox.

The CLI is a thin shell over :class:`~wunderbox.provider.Provider`, useful
for checking credentials and warming or flushing the cache from cron::

    wunderbox get lists
    wunderbox get tasks -p list_id=123 --json
    wunderbox flush
    wunderbox token clear

:func:`main` is the console-script entry point. Provider errors exit with
their own ``exit_code``; anything unexpected is written to a crash log under
the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from wunderbox import __version__
from wunderbox.exceptions import InvalidUsageError, WunderboxError
from wunderbox.exit_codes import EXIT_GENERIC_FAILURE
from wunderbox.output import debug, error, format_response, info, success, warning

if TYPE_CHECKING:
    from wunderbox.provider import Provider

app = typer.Typer(
    name="wunderbox",
    help="Fetch and cache Wunderlist data for info-box widgets.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
token_app = typer.Typer(no_args_is_help=True)
config_app = typer.Typer(no_args_is_help=True)
app.add_typer(token_app, name="token", help="Persisted token management.")
app.add_typer(config_app, name="config", help="Configuration inspection and editing.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"wunderbox {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("wunderbox")
    logger.handlers.clear()
    if verbose:
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (default: XDG config dir)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging, and stash shared options in ``ctx.obj``."""
    from wunderbox.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


def _build_provider(ctx: typer.Context) -> Provider:
    from wunderbox.config import resolve_config
    from wunderbox.provider import Provider

    config = resolve_config((ctx.obj or {}).get("config_file"))
    return Provider(config)


def _parse_params(pairs: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got '{pair}'")
        params[key] = value
    return params


def _fail(exc: WunderboxError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


@app.command("get")
def get_command(
    ctx: typer.Context,
    action: str = typer.Argument(help="API action, e.g. 'lists' or 'tasks'."),
    param: list[str] = typer.Option(
        [], "--param", "-p", help="Query parameter as key=value (repeatable)."
    ),
) -> None:
    """Fetch ACTION through the cache and print the parsed body.

    Example::

        wunderbox get tasks -p list_id=123
    """
    try:
        params = _parse_params(param)
        debug(f"GET {action} {params}")
        with _build_provider(ctx) as provider:
            body = provider.get(action, params)
    except WunderboxError as exc:
        raise _fail(exc) from exc
    format_response(body)


@app.command("flush")
def flush_command(ctx: typer.Context) -> None:
    """Clear every cached response."""
    try:
        with _build_provider(ctx) as provider:
            provider.flush()
    except WunderboxError as exc:
        raise _fail(exc) from exc
    success("Response cache flushed.")


@token_app.command("show")
def token_show(ctx: typer.Context) -> None:
    """Report whether a persisted token exists. The token itself is never printed."""
    try:
        with _build_provider(ctx) as provider:
            token_file = provider.token_file
            present = token_file.load() is not None
    except WunderboxError as exc:
        raise _fail(exc) from exc
    info(f"Token file: {token_file.path}")
    format_response({"token_file": str(token_file.path), "present": present})


@token_app.command("clear")
def token_clear(ctx: typer.Context) -> None:
    """Delete the persisted token so the next request re-derives one."""
    try:
        with _build_provider(ctx) as provider:
            token_file = provider.token_file
            if not token_file.exists():
                warning(f"No token file at {token_file.path}")
                return
            token_file.clear()
    except WunderboxError as exc:
        raise _fail(exc) from exc
    success(f"Removed {token_file.path}")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration with secrets masked."""
    from wunderbox.config import config_path, resolve_config

    config_file = (ctx.obj or {}).get("config_file")
    try:
        config = resolve_config(config_file)
    except WunderboxError as exc:
        raise _fail(exc) from exc

    info(f"Config file: {config_file or config_path()}")
    data = config.model_dump(mode="json")
    data["credentials"] = config.credentials.masked()
    format_response(data)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'cache.lifetime_hours')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a value in the config file.

    Only the file is updated; environment overrides are not written back.
    The value is validated against the config model before saving.

    Example::

        wunderbox config set cache.lifetime_hours 6
        wunderbox config set credentials.client_id abc123
    """
    from wunderbox.config import config_path, load_config, save_config
    from wunderbox.models import ProviderConfig

    config_file = (ctx.obj or {}).get("config_file")
    try:
        data = load_config(config_file).model_dump(mode="json")

        keys = key.split(".")
        target = data
        for k in keys[:-1]:
            if not isinstance(target.get(k), dict):
                raise InvalidUsageError(f"Invalid config key: {key}")
            target = target[k]
        if keys[-1] not in target or isinstance(target[keys[-1]], dict):
            raise InvalidUsageError(f"Unknown config key: {key}")
        target[keys[-1]] = value

        try:
            config = ProviderConfig.model_validate(data)
        except ValueError as exc:
            raise InvalidUsageError(f"Invalid value for {key}: {exc}") from exc
        save_config(config, config_file)
    except WunderboxError as exc:
        raise _fail(exc) from exc

    shown = "***" if keys[-1] in ("token", "password") else value
    success(f"Set {key} = {shown} in {config_file or config_path()}")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from wunderbox.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``wunderbox`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        if isinstance(exc, WunderboxError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
