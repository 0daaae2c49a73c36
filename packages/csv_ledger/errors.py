"""Exception taxonomy for ``csv_ledger``.

Three severities share a single root (``CsvLedgerError``):

- configuration-level (``ConfigError``, ``SchemaError``) and storage-level
  (``IoFailure``) errors abort the run;
- row-level errors (``RowError`` and its ``DecodeError``/``RenderError``
  families) are caught per row, recorded in a run summary, and the batch
  continues;
- ``MergeError`` is recovered locally by the ledger parser, which keeps the
  offending block as opaque text.

Every error exposes a short ``kind`` (used as a summary bucket and in CLI
diagnostics) and a human ``reason``.
"""

from __future__ import annotations

from os import PathLike


class CsvLedgerError(Exception):
    """Root of all errors raised by ``csv_ledger``."""

    kind: str = "Error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


# ---------------------------------------------------------------------------
# Configuration / schema (fatal)
# ---------------------------------------------------------------------------


class ConfigError(CsvLedgerError):
    kind = "ConfigError"


class SchemaError(CsvLedgerError):
    kind = "SchemaError"


class UnknownColumn(SchemaError):
    kind = "UnknownColumn"

    def __init__(self, column: str, reason: str | None = None) -> None:
        super().__init__(reason or f"column {column!r} not found in CSV header")
        self.column = column


class IndexOutOfRange(SchemaError):
    kind = "IndexOutOfRange"

    def __init__(self, index: int, width: int) -> None:
        super().__init__(f"column index {index} out of range for rows of width {width}")
        self.index = index
        self.width = width


# ---------------------------------------------------------------------------
# Row-level (recorded, non-fatal)
# ---------------------------------------------------------------------------


class RowError(CsvLedgerError):
    """A failure confined to a single CSV row."""

    kind = "RowError"

    def __init__(
        self, reason: str, *, field: str | None = None, row_number: int | None = None
    ) -> None:
        super().__init__(reason)
        self.field = field
        self.row_number = row_number


class MalformedRow(RowError):
    kind = "MalformedRow"


class DecodeError(RowError):
    kind = "DecodeError"


class MissingField(DecodeError):
    kind = "MissingField"


class BadDate(DecodeError):
    kind = "BadDate"


class BadAmount(DecodeError):
    kind = "BadAmount"


class RenderError(RowError):
    kind = "RenderError"


class UnknownPlaceholder(RenderError):
    kind = "UnknownPlaceholder"

    def __init__(self, name: str, *, row_number: int | None = None) -> None:
        super().__init__(
            f"template references unknown label {name!r}", field=name, row_number=row_number
        )
        self.name = name


class InvalidAccount(RenderError):
    kind = "InvalidAccount"


class InvalidAmount(RenderError):
    kind = "InvalidAmount"


class BadRenderDate(RenderError):
    kind = "BadRenderDate"


# ---------------------------------------------------------------------------
# Merge / storage
# ---------------------------------------------------------------------------


class MergeError(CsvLedgerError):
    kind = "MergeError"


class UnparseableLedger(MergeError):
    kind = "UnparseableLedger"


class InputError(CsvLedgerError):
    """The CSV input cannot be read as text (e.g. wrong encoding)."""

    kind = "InputError"


class IoFailure(CsvLedgerError):
    kind = "IoFailure"

    def __init__(self, path: str | PathLike[str], cause: OSError) -> None:
        detail = cause.strerror or str(cause)
        super().__init__(f"{path}: {detail}")
        self.path = str(path)
        self.cause = cause


__all__ = [
    "CsvLedgerError",
    "ConfigError",
    "SchemaError",
    "UnknownColumn",
    "IndexOutOfRange",
    "RowError",
    "MalformedRow",
    "DecodeError",
    "MissingField",
    "BadDate",
    "BadAmount",
    "RenderError",
    "UnknownPlaceholder",
    "InvalidAccount",
    "InvalidAmount",
    "BadRenderDate",
    "MergeError",
    "UnparseableLedger",
    "InputError",
    "IoFailure",
]
