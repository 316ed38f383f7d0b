"""
Credential Rotation CLI
=======================

Commands:
    credrotate generate                      - Print a generated credential value
    credrotate rotate <backend> -e ENV -t T  - Rotate one credential
    credrotate backends                      - List backends and their capabilities
    credrotate check-config                  - Validate configuration

Exit codes for ``rotate``: 0 success, 1 failed, 2 invalid request,
3 partial success (new credential in use, old one needs cleanup).

Example:
    $ credrotate rotate memory-secret-store --environment dev --target app/api-key
    $ credrotate generate --length 24 --special
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from credrotate.config.settings import get_settings
from credrotate.config.validation import (
    ValidationSeverity,
    get_configuration_summary,
    validate_configuration,
)
from credrotate.core.logging import get_logger, log_exception, setup_logging
from credrotate.rotation.config import RotationConfig, load_environment_credentials
from credrotate.rotation.engine import RotationEngine
from credrotate.rotation.errors import RotationValidationError
from credrotate.rotation.generator import SecretGenerator
from credrotate.rotation.registry import create_default_registry
from credrotate.rotation.reporter import (
    ExitCode,
    build_output_fields,
    exit_code_for,
    exit_code_for_exception,
    write_output_file,
)
from credrotate.rotation.types import (
    Encoding,
    GenerationSpec,
    RotationOutcome,
    RotationRequest,
    RotationResult,
)
from credrotate.utils.exceptions import ConfigurationError

app = typer.Typer(
    name="credrotate",
    help="Rotate credentials safely: create, verify, switch in, then revoke",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = get_logger(__name__)

_OUTCOME_STYLES = {
    RotationOutcome.SUCCESS: "green",
    RotationOutcome.PARTIAL_SUCCESS: "yellow",
    RotationOutcome.FAILED: "red",
}


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override the log level"),
    json_logs: bool | None = typer.Option(
        None, "--json-logs/--console-logs", help="Emit logs as JSON (default from settings)"
    ),
):
    """Credential rotation tooling."""
    setup_logging(log_level=log_level.upper() if log_level else None, json_format=json_logs)


@app.command()
def generate(
    length: int = typer.Option(32, "--length", "-l", help="Characters (bytes for base64)"),
    encoding: Encoding = typer.Option(Encoding.ALPHANUMERIC, "--encoding", help="Output encoding"),
    special: bool = typer.Option(False, "--special/--no-special", help="Include punctuation"),
    min_length: int = typer.Option(8, "--min-length", help="Minimum accepted length (never below 8)"),
):
    """
    Print a generated credential value.

    Example:
        credrotate generate --length 40 --encoding hex
    """
    settings = get_settings()
    spec = GenerationSpec(length=length, encoding=encoding, include_special_chars=special)

    try:
        generator = SecretGenerator(max_length=settings.max_secret_length)
        value = generator.generate(spec, min_length=min_length)
    except RotationValidationError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(int(ExitCode.INVALID_REQUEST))

    # Plain echo; punctuation must not be read as console markup
    typer.echo(value)


@app.command()
def rotate(
    backend: str = typer.Argument(..., help="Backend name (see `credrotate backends`)"),
    environment: str = typer.Option(..., "--environment", "-e", help="Target environment"),
    target: str = typer.Option(..., "--target", "-t", help="Backend-specific locator"),
    old_id: str | None = typer.Option(None, "--old-id", help="Identifier of the credential being replaced"),
    length: int | None = typer.Option(None, "--length", "-l", help="Generated value length"),
    encoding: Encoding | None = typer.Option(None, "--encoding", help="Generated value encoding"),
    special: bool = typer.Option(False, "--special/--no-special", help="Include punctuation"),
    output_file: Path | None = typer.Option(None, "--output-file", help="Append output fields to this file"),
    reveal: bool = typer.Option(False, "--reveal", help="Print the new credential value unmasked"),
):
    """
    Rotate one credential.

    Example:
        credrotate rotate memory-database --environment stage --target orders-db --length 24
    """
    settings = get_settings()

    generation = None
    if length is not None or encoding is not None or special:
        generation = GenerationSpec(
            length=length if length is not None else settings.default_secret_length,
            encoding=encoding or Encoding(settings.default_encoding),
            include_special_chars=special,
        )

    request = RotationRequest(
        environment=environment,
        target=target,
        generation=generation,
        old_credential_id=old_id,
    )

    try:
        registry = create_default_registry(settings)
        credentials = load_environment_credentials(backend, environment)
        provider = registry.resolve(backend, credentials)
        engine = RotationEngine(provider, config=RotationConfig.from_settings(settings))
        result = asyncio.run(engine.rotate(request))
    except (RotationValidationError, ConfigurationError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(int(exit_code_for_exception(e)))
    except Exception as e:
        log_exception(logger, e, backend=backend, environment=environment)
        err_console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        raise typer.Exit(int(exit_code_for_exception(e)))

    fields = build_output_fields(result, reveal_value=reveal)
    _print_result(result, fields)

    if output_file is not None:
        write_output_file(output_file, fields)
        logger.info("output_file_written", path=str(output_file))

    raise typer.Exit(int(exit_code_for(result)))


@app.command()
def backends(
    environment: str | None = typer.Option(
        None, "--environment", "-e", help="Load credentials for this environment when building providers"
    ),
):
    """
    List registered backends and their declared capabilities.
    """
    settings = get_settings()

    try:
        registry = create_default_registry(settings)
    except ConfigurationError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(int(ExitCode.INVALID_REQUEST))

    table = Table(title="Credential Backends")
    table.add_column("Name", style="cyan")
    table.add_column("Backend")
    table.add_column("Credential")
    table.add_column("Environments")
    table.add_column("Verify")
    table.add_column("Switch-in")
    table.add_column("Caller value")
    table.add_column("Min length", justify="right")

    for name in registry.names():
        credentials = load_environment_credentials(name, environment) if environment else None
        try:
            info = registry.resolve(name, credentials).info
        except ConfigurationError as e:
            table.add_row(name, "[red]unavailable[/red]", escape(str(e)), "", "", "", "", "")
            continue

        table.add_row(
            name,
            info.backend.value,
            info.credential_kind.value,
            ", ".join(sorted(info.environments)),
            _yes_no(info.supports_verify),
            _yes_no(info.requires_switch_in),
            _yes_no(info.caller_generates_value),
            str(info.min_secret_length),
        )

    console.print(table)


@app.command("check-config")
def check_config():
    """
    Validate configuration and print a summary.
    """
    settings = get_settings()
    results = validate_configuration(settings)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in get_configuration_summary(settings).items():
        table.add_row(key, escape(str(value)))
    console.print(table)

    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]
    for item in results:
        style = "red" if item.severity == ValidationSeverity.ERROR else "yellow"
        console.print(f"[{style}]{escape(str(item))}[/{style}]")

    if errors:
        console.print(f"\n[red]{len(errors)} configuration error(s)[/red]")
        raise typer.Exit(int(ExitCode.INVALID_REQUEST))

    console.print("[green]Configuration OK[/green]")


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


def _print_result(result: RotationResult, fields: dict[str, str]) -> None:
    style = _OUTCOME_STYLES[result.outcome]

    table = Table(title="Rotation Result", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("outcome", f"[{style}]{result.outcome.value}[/{style}]")
    for key, value in fields.items():
        if key in ("outcome", "warnings") or not value:
            continue
        table.add_row(key, escape(value))
    if result.error is not None:
        table.add_row("error", escape(str(result.error)))
    console.print(table)

    for warning in result.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")


if __name__ == "__main__":
    app()
