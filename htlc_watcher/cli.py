"""
CLI entry point for the HTLC watcher.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
from dotenv import load_dotenv

from .bitcoin import Transaction, TxParseError
from .config import WatcherConfig
from .scanner import HtlcEvent, classify_transaction, event_to_dict
from .watcher import HtlcWatcher

app = typer.Typer(
    name="htlc-watcher",
    help="Bitcoin Cash HTLC atomic swap watcher",
    add_completion=False,
)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # Keep stdout for JSON events
        logger_factory=structlog.PrintLoggerFactory(file=typer.get_text_stream("stderr")),
    )


def load_config(
    config_path: Optional[Path],
    bytecode: Optional[str],
    covenant_name: str,
) -> WatcherConfig:
    load_dotenv(config_path)
    try:
        config = WatcherConfig.from_env(config_path)
        if bytecode:
            config.add_covenant_version(covenant_name, bytecode)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if not config.covenant_versions:
        typer.echo(
            "Error: no covenant bytecode. Set HTLC_REDEEM_SCRIPT_WITHOUT_ARGS or pass --bytecode.",
            err=True,
        )
        raise typer.Exit(code=1)
    return config


def print_event(height: Optional[int], event: HtlcEvent) -> None:
    typer.echo(json.dumps(event_to_dict(event, height)))


ConfigOption = typer.Option(None, "--config", "-c", help="Path to .env configuration file")
BytecodeOption = typer.Option(
    None, "--bytecode", help="Covenant redeem script without constructor args (hex)"
)
CovenantOption = typer.Option("cli", "--covenant", help="Label for --bytecode")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


@app.command("decode-tx")
def decode_tx(
    raw_tx: str = typer.Argument(..., help="Serialized transaction (hex)"),
    config_path: Optional[Path] = ConfigOption,
    bytecode: Optional[str] = BytecodeOption,
    covenant_name: str = CovenantOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Classify a single raw transaction and print any HTLC events as JSON.
    """
    configure_logging(verbose)
    config = load_config(config_path, bytecode, covenant_name)

    try:
        tx = Transaction.from_hex(raw_tx)
    except TxParseError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    events = classify_transaction(tx, config.build_parsers())
    for event in events:
        print_event(None, event)

    if not events:
        typer.echo(f"No HTLC events in {tx.txid}", err=True)


@app.command()
def scan(
    start: int = typer.Argument(..., help="First block height"),
    end: Optional[int] = typer.Argument(None, help="Last block height (defaults to start)"),
    config_path: Optional[Path] = ConfigOption,
    bytecode: Optional[str] = BytecodeOption,
    covenant_name: str = CovenantOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Scan a range of blocks and print HTLC events as JSON lines.
    """
    configure_logging(verbose)
    config = load_config(config_path, bytecode, covenant_name)
    end = start if end is None else end
    if end < start:
        typer.echo("Error: end height is before start height", err=True)
        raise typer.Exit(code=1)

    watcher = HtlcWatcher.from_config(config)
    events = asyncio.run(watcher.scan_range(start, end))
    for height, event in events:
        print_event(height, event)


@app.command()
def watch(
    once: bool = typer.Option(False, "--once", help="Run once and exit (useful for testing)"),
    config_path: Optional[Path] = ConfigOption,
    bytecode: Optional[str] = BytecodeOption,
    covenant_name: str = CovenantOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Follow the chain and print HTLC events as JSON lines.
    """
    configure_logging(verbose)
    config = load_config(config_path, bytecode, covenant_name)
    watcher = HtlcWatcher.from_config(config)

    if once:
        asyncio.run(watcher.run_once(print_event))
        return

    typer.echo("Running in continuous mode. Press Ctrl+C to stop.", err=True)
    try:
        asyncio.run(watcher.run(print_event))
    except KeyboardInterrupt:
        watcher.stop()


@app.command()
def version() -> None:
    """Show the watcher version."""
    from htlc_watcher import __version__
    typer.echo(f"htlc-watcher v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
