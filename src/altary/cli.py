# src/altary/cli.py
"""Altary Command Line Interface.

Entry point for the altary CLI tool: check connectivity to the collection
endpoint and inspect the effective configuration.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError

from altary import __version__
from altary.client import Client
from altary.contracts import AltaryConfigError, Event, EventKind, Severity, TransportConfigError
from altary.core.config import AltarySettings, load_settings

app = typer.Typer(
    name="altary",
    help="Altary: error telemetry for Python applications.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"altary version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


def _resolve_settings(settings: str | None, api_key: str | None, endpoint: str | None) -> AltarySettings:
    """Load settings from a file, or from ALTARY_* variables when no file is given.

    Raises:
        typer.Exit: On any configuration error.
    """
    try:
        if settings is not None:
            return load_settings(Path(settings).expanduser())
        return AltarySettings.from_env(api_key=api_key, endpoint=endpoint)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except AltaryConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from None


def _mask(secret: str) -> str:
    if len(secret) <= 4:
        return "****"
    return f"{secret[:2]}{'*' * (len(secret) - 4)}{secret[-2:]}"


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a clearer message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Altary: error telemetry for Python applications."""
    from altary.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "WARNING")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def ping(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file. Defaults to ALTARY_* environment variables.",
    ),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        help="API key (overrides ALTARY_API_KEY when no settings file is given).",
    ),
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        help="Collection endpoint (overrides ALTARY_ENDPOINT when no settings file is given).",
    ),
    message: str = typer.Option(
        "Altary ping",
        "--message",
        "-m",
        help="Message of the synthetic event.",
    ),
) -> None:
    """Send one synthetic event and report whether it was delivered."""
    config = _resolve_settings(settings, api_key, endpoint)

    try:
        client = Client(config)
    except TransportConfigError as e:
        typer.echo(f"Transport error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        queued = client.send(
            Event(
                kind=EventKind.ERROR,
                message=message,
                source_file="<altary ping>",
                severity_code=int(Severity.USER_NOTICE),
            )
        )
        if queued is None:
            typer.echo("Ping event was filtered out by the configured log_levels.", err=True)
            raise typer.Exit(1)
        client.flush()
    finally:
        client.close()

    failures = client.diagnostics.failures
    if failures:
        failure = failures[-1]
        status = f" (HTTP {failure.status_code})" if failure.status_code is not None else ""
        typer.secho(f"Delivery failed{status}: {failure.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.secho(f"Delivered ping to {config.endpoint} via {config.transport.name}", fg=typer.colors.GREEN)


@app.command("show-config")
def show_config(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Print the validated settings as JSON with the api key masked."""
    config = _resolve_settings(settings, None, None)
    data = config.model_dump(mode="json")
    data["api_key"] = _mask(config.api_key)
    typer.echo(json.dumps(data, indent=2))
