"""FileTracker CLI application with Typer."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from filetracker import __version__
from filetracker.app.adapters import LocalFileSource
from filetracker.app.tracker import OperationResult, Outcome
from filetracker.bootstrap import bootstrap_application
from filetracker.config import get_settings, set_settings
from filetracker.errors import (
    ConfigurationError,
    FileReadError,
    InvalidInputError,
    LedgerError,
)
from filetracker.utils.cli_output import json_response
from filetracker.utils.hashing import Fingerprint, compute_fingerprint_file

if TYPE_CHECKING:
    from filetracker.app import TrackerController
    from filetracker.bootstrap import ApplicationContainer

app = typer.Typer(
    name="filetracker",
    help="Register file fingerprints on a ledger and verify them later",
    add_completion=True,
    no_args_is_help=True,
)
journal_app = typer.Typer(help="Activity journal management")
app.add_typer(journal_app, name="journal")

EXIT_CODES = {
    Outcome.SUCCESS: 0,
    Outcome.MISMATCH: 2,
    Outcome.NOT_FOUND: 2,
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"FileTracker version {__version__}")
        raise typer.Exit()


def _bootstrap() -> "ApplicationContainer":
    try:
        return bootstrap_application()
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _open_source(path: Path) -> LocalFileSource:
    try:
        return LocalFileSource(path)
    except FileReadError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def _emit(result: OperationResult, *, schema_id: str, json_output: bool) -> None:
    """Print the audit log and final record, then exit with the outcome's code."""
    snapshot = result.snapshot

    if json_output:
        typer.echo(json_response(schema_id, 1, **result.model_dump(mode="json")))
    else:
        typer.secho("Log:", bold=True)
        for line in snapshot.audit_log:
            typer.echo(f"  {line}")

        record = snapshot.record
        if record is not None and record.local_fingerprint:
            typer.echo()
            typer.echo(f"Computed Hash: {record.local_fingerprint}")
            typer.echo(f"File Name: {record.file_name}")
            typer.echo(f"File Size: {record.file_size} bytes")
            typer.echo(f"File ID: {record.committed_id or '-'}")
            if result.operation == "verify":
                typer.secho("Hash History:", bold=True)
                if not record.history:
                    typer.echo("  No history found for this hash.")
                for timestamp in record.history:
                    typer.echo(f"  Timestamp: {_format_timestamp(timestamp)}")

        if result.error is not None:
            color = typer.colors.RED if result.error.is_fault else typer.colors.YELLOW
            typer.secho(result.error.message, fg=color, err=True)
        elif result.ok:
            state = record.state.value if record is not None else result.operation
            typer.secho(f"✅ File {state}", fg=typer.colors.GREEN)

    code = EXIT_CODES.get(result.outcome, 1)
    if code:
        raise typer.Exit(code=code)


async def _select_and_upload(tracker: "TrackerController", path: Path) -> OperationResult:
    await tracker.select_file(_open_source(path))
    return await tracker.upload()


async def _register_flow(tracker: "TrackerController", path: Path) -> OperationResult:
    uploaded = await _select_and_upload(tracker, path)
    if not uploaded.ok:
        return uploaded
    return await tracker.register_on_chain()


async def _verify_flow(tracker: "TrackerController", path: Path) -> OperationResult:
    uploaded = await _select_and_upload(tracker, path)
    if not uploaded.ok:
        return uploaded
    return await tracker.verify()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    network: Annotated[
        str | None,
        typer.Option("--network", help="Ledger network: local, sepolia, or memory"),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
) -> None:
    """FileTracker - file integrity registration on a ledger."""
    settings = get_settings()
    if network:
        if network not in ("local", "sepolia", "memory"):
            raise typer.BadParameter(f"Unknown network '{network}'", param_hint="--network")
        settings.network = network  # type: ignore[assignment]
    if data_dir:
        settings.data_dir = data_dir
    set_settings(settings)


@app.command("hash")
def hash_file(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="File to fingerprint")],
) -> None:
    """Print the keccak256 fingerprint of a file."""
    typer.echo(compute_fingerprint_file(path).hex)


@app.command("register")
def register(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="File to register")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Hash a file and register its fingerprint on the ledger."""
    container = _bootstrap()
    tracker = container.create_tracker()
    result = asyncio.run(_register_flow(tracker, path))
    _emit(result, schema_id="register_result", json_output=json_output)


@app.command("verify")
def verify(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="File to verify")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Check a file against the ledger and show its registration history."""
    container = _bootstrap()
    tracker = container.create_tracker()
    result = asyncio.run(_verify_flow(tracker, path))
    _emit(result, schema_id="verify_result", json_output=json_output)


@app.command("history")
def history(
    fingerprint: Annotated[str, typer.Argument(help="0x-prefixed 32-byte fingerprint")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show ledger metadata and local journal activity for a fingerprint."""
    try:
        parsed = Fingerprint.from_hex(fingerprint)
    except InvalidInputError as exc:
        raise typer.BadParameter(str(exc), param_hint="FINGERPRINT") from exc

    container = _bootstrap()
    try:
        metadata = asyncio.run(container.ledger_port.query_metadata(parsed))
    except LedgerError as exc:
        typer.secho(f"Error querying ledger: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    activity = container.audit_service.find_by_fingerprint(parsed.hex)

    if json_output:
        typer.echo(
            json_response(
                "fingerprint_history",
                1,
                fingerprint=parsed.hex,
                metadata=metadata.model_dump(mode="json"),
                journal_entries=[record.model_dump(mode="json") for record in activity],
            )
        )
        return

    typer.echo(f"Fingerprint: {parsed.hex}")
    if not metadata.is_registered:
        typer.secho("No history found for this hash.", fg=typer.colors.YELLOW)
    else:
        typer.echo(f"File Name: {metadata.file_name}")
        typer.echo(f"File Size: {metadata.file_size} bytes")
        typer.echo(f"Owner: {metadata.owner}")
        for timestamp in metadata.history:
            typer.echo(f"  Timestamp: {_format_timestamp(timestamp)}")
    if activity:
        typer.echo(f"Local journal entries: {len(activity)}")


@journal_app.command("show")
def journal_show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    tail: Annotated[
        int | None,
        typer.Option("--tail", "-n", help="Show last N entries"),
    ] = None,
) -> None:
    """Show activity journal entries."""
    container = _bootstrap()

    if not container.audit_service.is_enabled():
        typer.secho("Activity journal is disabled", fg=typer.colors.YELLOW)
        return

    entries = container.audit_service.get_entries()
    if not entries:
        typer.secho("No journal entries found", fg=typer.colors.YELLOW)
        return

    if tail:
        entries = entries[-tail:]

    if json_output:
        typer.echo(
            json_response(
                "journal",
                1,
                total_entries=len(entries),
                entries=[e.model_dump(mode="json") for e in entries],
            )
        )
    else:
        for entry in entries:
            typer.echo(f"{entry.timestamp} | {entry.operation} | {entry.outcome} | {entry.file_name}")


@journal_app.command("verify")
def journal_verify() -> None:
    """Verify activity journal integrity."""
    container = _bootstrap()

    if not container.audit_service.is_enabled():
        typer.secho("Activity journal is disabled", fg=typer.colors.YELLOW)
        return

    valid, error = container.audit_service.verify()

    if valid:
        typer.secho("Activity journal is valid", fg=typer.colors.GREEN)
        return

    message = error or "Activity journal integrity check failed"
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
