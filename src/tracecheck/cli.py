# src/tracecheck/cli.py
"""tracecheck Command Line Interface.

Entry point for the tracecheck CLI tool. Each check command opens the
check's checkpoint file, wires the node client, trace source and parser
from settings, and runs until the range (or the address list) is done or
the run is cancelled.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from tracecheck import __version__
from tracecheck.contracts.enums import CheckName
from tracecheck.contracts.errors import CheckCancelled, InvalidHeightRangeError, SetupError
from tracecheck.contracts.progress import ProgressRecord
from tracecheck.core.config import TraceCheckSettings, load_settings, redacted_config

if TYPE_CHECKING:
    from tracecheck.core.checkpoint import CheckpointDB
    from tracecheck.core.context import CheckContext
    from tracecheck.engine.pipeline import TracePipeline
    from tracecheck.plugins.clients.lotus import LotusClient
    from tracecheck.plugins.manager import PluginManager

__all__ = ["app"]

# Module-level singleton for plugin manager
_plugin_manager_cache: PluginManager | None = None

# Exit code of a run stopped by SIGINT/SIGTERM or its deadline
EXIT_CANCELLED = 130


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton).

    Returns:
        PluginManager with built-in and entry point plugins registered
    """
    global _plugin_manager_cache

    from tracecheck.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        manager.load_entrypoint_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="tracecheck",
    help="tracecheck: reconcile indexed Filecoin traces against a full node.",
    no_args_is_help=True,
)


@dataclass
class CliOptions:
    """Options of the root callback, shared with every command."""

    settings_path: Path | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tracecheck version {__version__}")
        raise typer.Exit()


def _load_dotenv() -> bool:
    from dotenv import load_dotenv

    # load_dotenv searches current dir and parents by default
    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    ctx: typer.Context,
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
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file. Environment variables (TRACECHECK_*) override it.",
    ),
) -> None:
    """tracecheck: reconcile indexed Filecoin traces against a full node."""
    from tracecheck.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv()

    ctx.obj = CliOptions(settings_path=settings)


# === Error handling ===


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Map setup failures to exit code 1 and cancellation to 130.

    Per-unit failures never reach here; they are recorded and the run goes on.
    """
    try:
        yield
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in settings: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except (SetupError, InvalidHeightRangeError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except CheckCancelled as e:
        typer.echo(f"Cancelled: {e}", err=True)
        raise typer.Exit(EXIT_CANCELLED) from None


def _settings(ctx: typer.Context) -> TraceCheckSettings:
    options: CliOptions = ctx.obj if isinstance(ctx.obj, CliOptions) else CliOptions()
    return load_settings(options.settings_path)


# === Runtime wiring ===


@dataclass
class Runtime:
    """Collaborators of one check run."""

    context: CheckContext
    db: CheckpointDB
    reader: LotusClient
    pipeline: TracePipeline
    plugins: PluginManager


@contextmanager
def _open_runtime(
    ctx: typer.Context,
    check: CheckName,
    db_path: str | None,
    deadline_seconds: float | None,
) -> Iterator[Runtime]:
    """Build the collaborators of a check and close them afterwards.

    SIGINT/SIGTERM cancel the run for the duration of the block.
    """
    from tracecheck.core.checkpoint import CheckpointDB
    from tracecheck.core.context import CancellationToken, CheckContext
    from tracecheck.engine.pipeline import TracePipeline
    from tracecheck.plugins.clients.lotus import LotusClient

    settings = _settings(ctx)
    cancellation = CancellationToken(deadline_seconds=deadline_seconds)
    context = CheckContext(settings=settings, cancellation=cancellation)
    context.logger.debug("Loaded settings", config=redacted_config(settings))

    plugins = _get_plugin_manager()
    source = plugins.create_trace_source(settings.trace_source)
    parser = plugins.create_trace_parser(settings.trace_parser)

    with (
        CheckpointDB.from_path(db_path or settings.checkpoint.db_path, check) as db,
        LotusClient.from_settings(settings.node, cancellation=cancellation) as reader,
        cancellation.on_signals(),
    ):
        pipeline = TracePipeline(context, source, reader, parser)
        yield Runtime(context=context, db=db, reader=reader, pipeline=pipeline, plugins=plugins)


def _summarize(check: CheckName, records: Sequence[ProgressRecord]) -> None:
    failed = sum(1 for record in records if not record.success)
    typer.echo(f"{check.value}: {len(records)} units recorded, {failed} failed")


def _read_addresses(address_file: Path) -> list[str]:
    from tracecheck.core.address import read_address_file

    addresses = read_address_file(address_file)
    if not addresses:
        raise SetupError(f"address file {address_file} lists no addresses")
    return addresses


# === Shared options ===

_START = typer.Option(..., "--start", help="First height to check (inclusive).")
_END = typer.Option(..., "--end", help="Last height to check (inclusive).")
_DB_PATH = typer.Option(None, "--db-path", help="Checkpoint directory (defaults to checkpoint.db_path).")
_ADDRESS_FILE = typer.Option(..., "--address-file", help="Newline separated address file.")
_DEADLINE = typer.Option(None, "--deadline-seconds", min=0, help="Cancel the run after this many seconds.")


# === Height-only checks ===


def _run_height_scan(
    ctx: typer.Context,
    check: CheckName,
    start: int,
    end: int,
    db_path: str | None,
    deadline_seconds: float | None,
) -> None:
    from tracecheck.core.equivalence import EquivalentAddressResolver
    from tracecheck.engine.checks import CanonicalChainCheck, NullBlocksCheck, ValidateJsonCheck, validate_height_range

    with _exit_on_error():
        validate_height_range(start, end)
        with _open_runtime(ctx, check, db_path, deadline_seconds) as runtime:
            match check:
                case CheckName.VALIDATE_JSON:
                    scan = ValidateJsonCheck(runtime.context, runtime.db, runtime.pipeline)
                case CheckName.NULL_BLOCKS:
                    scan = NullBlocksCheck(runtime.context, runtime.db, runtime.pipeline)
                case CheckName.CANONICAL_CHAIN:
                    resolver = EquivalentAddressResolver(runtime.reader)
                    scan = CanonicalChainCheck(runtime.context, runtime.db, runtime.pipeline, resolver)
                case _:
                    raise SetupError(f"{check.value} is not a height scan")
            records = scan.run(start, end)
    _summarize(check, records)


@app.command("validate-json")
def validate_json(
    ctx: typer.Context,
    start: int = _START,
    end: int = _END,
    db_path: str | None = _DB_PATH,
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Check that the trace of every height decodes as nested trace JSON."""
    _run_height_scan(ctx, CheckName.VALIDATE_JSON, start, end, db_path, deadline_seconds)


@app.command("validate-null-blocks")
def validate_null_blocks(
    ctx: typer.Context,
    start: int = _START,
    end: int = _END,
    db_path: str | None = _DB_PATH,
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Check that traces and the chain agree on null rounds."""
    _run_height_scan(ctx, CheckName.NULL_BLOCKS, start, end, db_path, deadline_seconds)


@app.command("validate-canonical-chain")
def validate_canonical_chain(
    ctx: typer.Context,
    start: int = _START,
    end: int = _END,
    db_path: str | None = _DB_PATH,
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Check that block reward recipients are the miners of each tipset."""
    _run_height_scan(ctx, CheckName.CANONICAL_CHAIN, start, end, db_path, deadline_seconds)


# === Event-driven address checks ===


def _run_event_check(
    ctx: typer.Context,
    check: CheckName,
    address_file: Path,
    db_path: str | None,
    event_provider: str | None,
    event_provider_token: str | None,
    deadline_seconds: float | None,
) -> None:
    from tracecheck.engine.checks import AddressBalanceCheck, MultisigStateCheck

    with _exit_on_error():
        addresses = _read_addresses(address_file)
        with _open_runtime(ctx, check, db_path, deadline_seconds) as runtime:
            provider_settings = runtime.context.settings.event_provider
            if event_provider is not None:
                provider_settings = provider_settings.model_copy(update={"plugin": event_provider})
            provider = runtime.plugins.create_event_provider(provider_settings, token=event_provider_token)
            try:
                checker: AddressBalanceCheck | MultisigStateCheck
                if check is CheckName.ADDRESS_BALANCE:
                    checker = AddressBalanceCheck(runtime.context, runtime.db, runtime.pipeline, runtime.reader, provider)
                else:
                    checker = MultisigStateCheck(runtime.context, runtime.db, runtime.pipeline, runtime.reader, provider)
                records = checker.run(addresses)
            finally:
                provider.close()
    _summarize(check, records)


@app.command("validate-address-balance")
def validate_address_balance(
    ctx: typer.Context,
    address_file: Path = _ADDRESS_FILE,
    db_path: str | None = _DB_PATH,
    event_provider: str | None = typer.Option(None, "--event-provider", help="Event provider plugin (defaults to settings)."),
    event_provider_token: str | None = typer.Option(
        None,
        "--event-provider-token",
        envvar="TRACECHECK_EVENT_PROVIDER_TOKEN",
        help="Event provider token (overrides settings).",
    ),
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Replay balances at each address's event heights and compare with the chain."""
    _run_event_check(ctx, CheckName.ADDRESS_BALANCE, address_file, db_path, event_provider, event_provider_token, deadline_seconds)


@app.command("validate-multisig-state")
def validate_multisig_state(
    ctx: typer.Context,
    address_file: Path = _ADDRESS_FILE,
    db_path: str | None = _DB_PATH,
    event_provider: str | None = typer.Option(None, "--event-provider", help="Event provider plugin (defaults to settings)."),
    event_provider_token: str | None = typer.Option(
        None,
        "--event-provider-token",
        envvar="TRACECHECK_EVENT_PROVIDER_TOKEN",
        help="Event provider token (overrides settings).",
    ),
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Replay multisig signers and locks at event heights and compare with the chain."""
    _run_event_check(ctx, CheckName.MULTISIG_STATE, address_file, db_path, event_provider, event_provider_token, deadline_seconds)


# === Sequential address checks ===


def _run_sequential_check(
    ctx: typer.Context,
    check: CheckName,
    address_file: Path,
    start: int,
    end: int,
    db_path: str | None,
    deadline_seconds: float | None,
) -> None:
    from tracecheck.engine.checks import AddressBalanceSequentialCheck, MultisigStateSequentialCheck, validate_height_range

    with _exit_on_error():
        validate_height_range(start, end)
        addresses = _read_addresses(address_file)
        with _open_runtime(ctx, check, db_path, deadline_seconds) as runtime:
            checker: AddressBalanceSequentialCheck | MultisigStateSequentialCheck
            if check is CheckName.ADDRESS_BALANCE_SEQUENTIAL:
                checker = AddressBalanceSequentialCheck(runtime.context, runtime.db, runtime.pipeline, runtime.reader)
            else:
                checker = MultisigStateSequentialCheck(runtime.context, runtime.db, runtime.pipeline, runtime.reader)
            records = checker.run(addresses, start, end)
    _summarize(check, records)


@app.command("validate-address-balance-sequential")
def validate_address_balance_sequential(
    ctx: typer.Context,
    address_file: Path = _ADDRESS_FILE,
    db_path: str | None = _DB_PATH,
    start: int = _START,
    end: int = _END,
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Replay balances over every height of a range and compare with the chain."""
    _run_sequential_check(ctx, CheckName.ADDRESS_BALANCE_SEQUENTIAL, address_file, start, end, db_path, deadline_seconds)


@app.command("validate-multisig-state-sequential")
def validate_multisig_state_sequential(
    ctx: typer.Context,
    address_file: Path = _ADDRESS_FILE,
    db_path: str | None = _DB_PATH,
    start: int = _START,
    end: int = _END,
    deadline_seconds: float | None = _DEADLINE,
) -> None:
    """Replay multisig state over every height of a range and compare with the chain."""
    _run_sequential_check(ctx, CheckName.MULTISIG_STATE_SEQUENTIAL, address_file, start, end, db_path, deadline_seconds)


# === Reporting ===


@app.command("generate-report")
def generate_report(
    ctx: typer.Context,
    check: CheckName = typer.Option(..., "--check", help="Check whose progress to report."),
    db_path: str | None = _DB_PATH,
    report_path: Path | None = typer.Option(
        None,
        "--report-path",
        help="Report file, or a directory for <check>-report.json (defaults to the current directory).",
    ),
) -> None:
    """Write every progress record of a check to a JSON report."""
    from tracecheck.core.checkpoint import CheckpointDB
    from tracecheck.core.logging import get_logger
    from tracecheck.engine.report import write_report

    logger = get_logger(__name__)
    with _exit_on_error():
        settings = _settings(ctx)
        target = report_path if report_path is not None else Path(".")
        if target.is_dir():
            target = target / f"{check.value}-report.json"
        logger.info("Generating report", check=check.value, report_path=str(target))
        with CheckpointDB.from_path(db_path or settings.checkpoint.db_path, check) as db:
            summary = write_report(db, check, target)
    logger.info("Report generated", report_path=str(target), **summary)
    typer.echo(f"{check.value}: {summary['total']} records ({summary['failed']} failed) written to {target}")


if __name__ == "__main__":
    app()
