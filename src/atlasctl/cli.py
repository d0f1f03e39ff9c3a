"""Command-line interface for exporting Confluence pages with their comments."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from . import __version__
from .config import (
    CONFIG_KEYS,
    HIDDEN_VALUE,
    load_fetch_credentials,
    mask_config,
    normalize_config_value,
    read_config,
    resolve_config_path,
    set_config_value,
    write_config,
)
from .describe import build_description
from .errors import AtlasctlError, ConfigError
from .export.service import fetch_confluence_page

app = typer.Typer(help="Atlassian CLI for Confluence page exports.")
config_app = typer.Typer(help="Manage local CLI configuration.")
confluence_app = typer.Typer(help="Confluence operations.")
page_app = typer.Typer(help="Confluence page operations.")
app.add_typer(config_app, name="config")
app.add_typer(confluence_app, name="confluence")
confluence_app.add_typer(page_app, name="page")

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int) -> None:
    """Send ``atlasctl`` log records to stderr (0=WARNING, 1=INFO, 2+=DEBUG)."""

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("atlasctl")
    app_logger.setLevel(level)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)8s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    app_logger.addHandler(handler)


@contextmanager
def _exit_on_error() -> Iterator[None]:
    try:
        yield
    except AtlasctlError as exc:
        logger.debug("Command failed", exc_info=True)
        err_console.print(str(exc), style="red", markup=False, highlight=False, soft_wrap=True)
        raise typer.Exit(1) from exc


def _config_path(ctx: typer.Context) -> Path:
    return resolve_config_path(ctx.obj.get("config_path"))


def _parse_config_key(value: str) -> str:
    if value not in CONFIG_KEYS:
        raise typer.BadParameter(f'Invalid config key "{value}". Use one of: {", ".join(CONFIG_KEYS)}')
    return value


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _describe_callback(ctx: typer.Context, value: bool) -> None:
    if value:
        description = build_description(ctx.find_root().command)
        typer.echo(json.dumps(description, indent=2))
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the JSON configuration file (default: ~/.atlasctl.json)",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log output on stderr (-v for info, -vv for debug)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
    describe: bool = typer.Option(
        False,
        "--describe",
        callback=_describe_callback,
        is_eager=True,
        help="Print a JSON description of all commands and exit",
    ),
) -> None:
    """Atlassian CLI for Confluence page exports."""

    _configure_logging(verbose)
    ctx.obj = {"config_path": config_path}


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------
def _prompt_label(key: str) -> str:
    if key == "site":
        return "Atlassian site (for example: your-domain.atlassian.net)"
    if key == "email":
        return "Atlassian account email"
    return "Atlassian API key"


def _display_value(key: str, value: Optional[str]) -> str:
    if not value:
        return "not set"
    return HIDDEN_VALUE if key == "apikey" else value


def _guided_setup(path: Path) -> None:
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        raise ConfigError(
            "Guided setup requires an interactive terminal. "
            "Use: atlasctl config set <site|email|apikey> <value>"
        )

    config = read_config(path)
    updates: dict[str, str] = {}
    for key in CONFIG_KEYS:
        current = getattr(config, key)
        while True:
            label = f"{_prompt_label(key)} [{_display_value(key, current)}]"
            answer = typer.prompt(label, default="", show_default=False, hide_input=key == "apikey")
            candidate = answer.strip() or current
            if not candidate:
                err_console.print(f"{key} is required.", style="red", markup=False)
                continue
            try:
                updates[key] = normalize_config_value(key, candidate)
            except ConfigError as exc:
                err_console.print(str(exc), style="red", markup=False)
                continue
            break

    write_config(config.model_copy(update=updates), path)
    console.print(f"Saved site, email, apikey in {path}", soft_wrap=True, highlight=False, markup=False)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Config key: site, email, apikey"),
    value: Optional[str] = typer.Argument(None, help="Config value"),
) -> None:
    """Set one config value, or run guided setup with no arguments."""

    path = _config_path(ctx)
    if key is None and value is None:
        with _exit_on_error():
            _guided_setup(path)
        return

    if key is None or value is None:
        raise typer.BadParameter(
            "Use either: atlasctl config set <site|email|apikey> <value> "
            "or run atlasctl config set for guided setup."
        )

    key = _parse_config_key(key)
    with _exit_on_error():
        saved_to = set_config_value(key, value, path)
    console.print(f"Saved {key} in {saved_to}", soft_wrap=True, highlight=False, markup=False)


@config_app.command("get")
def config_get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Config key: site, email, apikey", callback=_parse_config_key),
) -> None:
    """Get a config value."""

    with _exit_on_error():
        config = read_config(_config_path(ctx))
        value = getattr(config, key)
        if not value:
            raise ConfigError(f'Config key "{key}" is not set. Use: atlasctl config set {key} <value>')
    typer.echo(HIDDEN_VALUE if key == "apikey" else value)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show current config (API key is always redacted)."""

    with _exit_on_error():
        config = read_config(_config_path(ctx))
    typer.echo(json.dumps(mask_config(config), indent=2))


# ----------------------------------------------------------------------
# confluence page
# ----------------------------------------------------------------------
@page_app.command("get")
def page_get(
    ctx: typer.Context,
    id_or_url: str = typer.Argument(..., help="Numeric page ID or full Confluence page URL"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write JSON result to file"),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON output"),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds (default: no timeout)",
    ),
) -> None:
    """Get a Confluence page and all comments."""

    with _exit_on_error():
        credentials = load_fetch_credentials(_config_path(ctx))
        export = fetch_confluence_page(credentials, id_or_url, timeout=timeout)

    text = "".join(export.iter_json(indent=2 if pretty else None)) + "\n"

    if output:
        try:
            output.write_text(text, encoding="utf-8")
        except OSError as exc:
            err_console.print(
                f"Unable to write {output}: {exc.strerror or exc}",
                style="red",
                markup=False,
                soft_wrap=True,
            )
            raise typer.Exit(1) from exc
        console.print(
            f"Wrote {export.meta.total_comments} comments to {output}",
            soft_wrap=True,
            highlight=False,
            markup=False,
        )
        return

    typer.echo(text, nl=False)


def run() -> None:
    """Entry point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
