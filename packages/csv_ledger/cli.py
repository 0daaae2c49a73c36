"""CLI for the ``csv_ledger`` package.

``cmd_convert`` holds the command logic and returns an exit code; the
Typer wrapper below only parses options. Environment variables (notably
``CSV_LEDGER_LOG_LEVEL``) are loaded from a local ``.env`` with
``python-dotenv`` before anything else runs.

Exit codes: ``0`` on success, including runs that skipped rows (a summary
goes to stderr); ``1`` on any aborting error, reported as a single
``Error: <kind>: <context>`` line on stderr.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging
from .summary import DEFAULT_MAX_EXAMPLES


def cmd_convert(
    csv_path: str,
    config_path: str,
    *,
    append_path: str | None = None,
    max_examples: int = DEFAULT_MAX_EXAMPLES,
) -> int:
    """Convert ``csv_path`` using ``config_path`` and emit or append the result.

    Without ``append_path`` the new entries are written to stdout. With it,
    the existing ledger is merged with the new entries and rewritten in
    place (created when missing).
    """

    from .api import convert_files
    from .errors import CsvLedgerError

    try:
        result = convert_files(
            csv_path,
            config_path,
            append_path=append_path,
            max_examples=max_examples,
        )
    except CsvLedgerError as e:
        typer.echo(f"Error: {e.kind}: {e.reason}", err=True)
        return 1

    if append_path is None:
        typer.echo(result.text, nl=False)

    for line in result.summary.format():
        typer.echo(line, err=True)
    return 0


app = typer.Typer(
    add_completion=False,
    help="Convert transactions in CSV to beancount format.",
)


@app.command()
def convert_cmd(
    csv_path: Annotated[
        Path,
        typer.Option(
            "--csv",
            "--ledger",
            "-l",
            help="The CSV export to convert.",
            dir_okay=False,
        ),
    ],
    config_path: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="YAML configuration describing how to interpret the CSV file.",
            dir_okay=False,
        ),
    ],
    append_path: Annotated[
        Path | None,
        typer.Option(
            "--append",
            help="Merge the new entries into this ledger file instead of printing them.",
            dir_okay=False,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(help="Log level (falls back to CSV_LEDGER_LOG_LEVEL, then INFO)."),
    ] = None,
    max_examples: Annotated[
        int,
        typer.Option(min=0, help="How many skipped-row examples to list in the summary."),
    ] = DEFAULT_MAX_EXAMPLES,
) -> None:
    """Convert a CSV export into beancount entries."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)

    code = cmd_convert(
        str(csv_path),
        str(config_path),
        append_path=str(append_path) if append_path is not None else None,
        max_examples=max_examples,
    )
    if code:
        raise typer.Exit(code)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    main()
