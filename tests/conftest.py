"""Pytest configuration for test isolation.

The CLI installs a stderr handler on the ``csv_ledger`` logger and reads
``CSV_LEDGER_LOG_LEVEL`` from the environment (or a local ``.env``). Both
leak between tests when left alone, so every test starts from a clean
logger and an unset level variable, with the working directory moved into
its own temporary directory so no stray ``.env`` is picked up.
"""

from __future__ import annotations

import textwrap
from collections.abc import Iterator
from pathlib import Path

import pytest
from csv_ledger.logging_setup import reset_logging

SCENARIO_CONFIG = """
settings:
  has_header: true
  date_format: "%Y-%m-%d"
  currency: EUR
input:
  date: {column: date, kind: date}
  desc: {column: desc}
  amount: {column: amount, kind: amount}
output:
  flag: "*"
  narration: "{{desc}}"
  postings:
    - account: Assets:Bank:Checking
      amount: "{{amount}} {{currency}}"
    - account: Expenses:Unknown
"""


@pytest.fixture(autouse=True)
def _isolate_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("CSV_LEDGER_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def scenario_config_text() -> str:
    return textwrap.dedent(SCENARIO_CONFIG).lstrip("\n")
