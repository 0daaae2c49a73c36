from __future__ import annotations

import shutil
import textwrap
from pathlib import Path

from csv_ledger.cli import app
from csv_ledger.logging_setup import reset_logging
from typer.testing import CliRunner

DATA = Path(__file__).resolve().parents[1] / "data"

EXPECTED = textwrap.dedent(
    """\
    ; My ledger
    option "title" "Personal"

    2024-01-01 open Assets:Bank:Checking EUR

    2024-01-03 * "Salary"
      Assets:Bank:Checking  1500.00 EUR
      Expenses:Unknown

    2024-01-04 * "Groceries"
      Assets:Bank:Checking  -20.00 EUR
      Expenses:Food

    2024-01-10 * "Broken" "entry" "extra"
      Assets:Bank:Checking  -1.00 EUR

    ; trailing comment

    2024-01-05 * "Coffee"
      Assets:Bank:Checking  -3.50 EUR
      Expenses:Unknown
    """
)


def _invoke(*args: str):
    reset_logging()
    return CliRunner().invoke(
        app,
        ["--csv", str(DATA / "bank_export.csv"), "--config", str(DATA / "bank.yaml"), *args],
    )


def test_append_merges_into_existing_ledger_and_is_idempotent(tmp_path: Path):
    ledger = tmp_path / "main.beancount"
    shutil.copyfile(DATA / "existing.beancount", ledger)

    first = _invoke("--append", str(ledger))
    assert first.exit_code == 0, first.output
    assert ledger.read_text(encoding="utf-8") == EXPECTED
    assert not (tmp_path / "main.beancount.tmp").exists()

    # The N/A refund row is reported, not fatal.
    assert "BadAmount" in first.output

    second = _invoke("--append", str(ledger))
    assert second.exit_code == 0, second.output
    assert ledger.read_text(encoding="utf-8") == EXPECTED
    assert "0 written, 2 duplicates skipped" in second.output


def test_append_creates_missing_target(tmp_path: Path):
    ledger = tmp_path / "new.beancount"
    result = _invoke("--append", str(ledger), "--log-level", "ERROR")
    assert result.exit_code == 0, result.output
    assert ledger.read_text(encoding="utf-8") == (
        '2024-01-03 * "Salary"\n'
        "  Assets:Bank:Checking  1500.00 EUR\n"
        "  Expenses:Unknown\n"
        "\n"
        '2024-01-05 * "Coffee"\n'
        "  Assets:Bank:Checking  -3.50 EUR\n"
        "  Expenses:Unknown\n"
    )


def test_stdout_mode_prints_sorted_entries():
    result = _invoke("--log-level", "ERROR")
    assert result.exit_code == 0, result.output
    assert result.output.index('"Salary"') < result.output.index('"Coffee"')
    assert "Refund" not in result.output
