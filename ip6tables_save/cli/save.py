"""CLI for dumping the IPv6 ruleset in ip6tables-save format."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..kernel import DEFAULT_COMMAND, CommandEngine
from ..model import SaveConfig, SaveError
from ..snapshot import read_snapshot_file
from ..tables import TABLE_NAMES_PATH
from ..writer import SaveWriter

PROGRAM_NAME = "ip6tables-save"

app = typer.Typer(help="Dump the IPv6 packet-filter ruleset in a re-loadable text format", add_completion=False)
console = Console(stderr=True, highlight=False, emoji=False)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROGRAM_NAME} v{__version__}")
        raise typer.Exit()


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _fail(message: str) -> typer.Exit:
    console.print(message, markup=False, soft_wrap=True)
    return typer.Exit(code=1)


@app.command()
def main(
    extra: Optional[List[str]] = typer.Argument(None, hidden=True, show_default=False),
    binary: bool = typer.Option(False, "--binary", "-b", help="Binary output (not implemented)"),
    counters: bool = typer.Option(False, "--counters", "-c", help="Include rule packet/byte counters"),
    dump: bool = typer.Option(
        False, "--dump", "-d", help="Dump once immediately and exit; other options apply wherever they appear"
    ),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Only save this table"),
    snapshot: Optional[Path] = typer.Option(
        None, "--snapshot", "-f", help="Read the ruleset from an ip6tables-save file instead of the kernel"
    ),
    command: str = typer.Option(DEFAULT_COMMAND, "--ip6tables", help="ip6tables executable for the live ruleset"),
    names_file: Path = typer.Option(TABLE_NAMES_PATH, "--names-file", help="Listing of available table names"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Log to stderr (repeat for debug)"),
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    _configure_logging(verbose)
    if extra and not dump:
        raise _fail("Unknown arguments found on commandline")

    config = SaveConfig(counters=counters, binary=binary, program_name=PROGRAM_NAME)
    out = sys.stdout
    # Rule text from the live engine may carry undecodable bytes; write them back unchanged.
    reconfigure = getattr(out, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(errors="surrogateescape")
    try:
        engine = read_snapshot_file(snapshot) if snapshot else CommandEngine(command, names_file)
        SaveWriter(engine, config=config, out=out).write(table)
        out.flush()
    except SaveError as exc:
        raise _fail(str(exc)) from exc
    except OSError as exc:
        if dump:
            raise typer.Exit(code=0) from exc
        raise _fail(f"Failed to write output: {exc.strerror or exc}") from exc
