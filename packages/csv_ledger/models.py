"""Data models and type aliases for ``csv_ledger``.

Two families live here:

- per-row values produced by the decoder (:class:`DecodedRow`) and the
  renderer's output (:class:`RenderedEntry`);
- structured ledger values (:class:`Transaction`, :class:`Posting`,
  :class:`Amount`). The renderer builds them from a decoded row and the
  ledger parser builds them from existing text, so both sides compute the
  identity fingerprint from the same shape.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum

# ---------------------------------------------------------------------------
# Field schema
# ---------------------------------------------------------------------------


class ValueKind(StrEnum):
    TEXT = "text"
    DATE = "date"
    AMOUNT = "amount"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One configured CSV column and the semantic label it feeds.

    Attributes
    ----------
    label:
        Semantic name referenced by templates (e.g. ``"amount"``).
    column:
        Header name (``str``) or 0-based positional index (``int``).
    kind:
        How the raw cell is parsed.
    required:
        When true an empty cell fails the row with ``MissingField``; when
        false it decodes to ``None`` and renders as an empty string.
    trim:
        Strip surrounding whitespace from text values. ``None`` defers to the
        global ``settings.trim``.
    negate:
        Flip the sign of an amount after parsing.
    """

    label: str
    column: str | int
    kind: ValueKind = ValueKind.TEXT
    required: bool = True
    trim: bool | None = None
    negate: bool = False


type FieldSchema = Sequence[FieldSpec]
"""Ordered field declarations; labels are unique within a schema."""

type ResolvedColumns = Mapping[int, str]
"""Column index -> semantic label, as returned by ``schema.resolve``."""

type FieldValue = str | date | Decimal | None


# ---------------------------------------------------------------------------
# Per-row values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DecodedRow:
    """Typed values of one CSV row, keyed by semantic label.

    ``row_number`` is 1-based and counts physical CSV records (including any
    skipped preamble and the header) so diagnostics point at the file.
    """

    row_number: int
    values: Mapping[str, FieldValue]


@dataclass(frozen=True, slots=True)
class Amount:
    number: Decimal
    currency: str

    def to_text(self) -> str:
        return f"{format(self.number, 'f')} {self.currency}"


@dataclass(frozen=True, slots=True)
class Posting:
    account: str
    units: Amount | None = None
    flag: str | None = None
    cost: Amount | None = None
    price: Amount | None = None


@dataclass(frozen=True, slots=True)
class Transaction:
    date: date
    flag: str
    narration: str
    payee: str | None = None
    tags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    postings: tuple[Posting, ...] = ()

    def first_units(self) -> Amount | None:
        """Units of the first posting that carries an explicit amount."""

        for p in self.postings:
            if p.units is not None:
                return p.units
        return None


@dataclass(frozen=True, slots=True)
class RenderedEntry:
    """Text of one complete transaction plus its sort key and identity.

    ``text`` always ends with a single newline and never with a blank line;
    callers decide on separators.
    """

    row_number: int
    date: date
    text: str
    fingerprint: str
    transaction: Transaction = field(compare=False)


# ---------------------------------------------------------------------------
# Run bookkeeping
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RowFailure:
    row_number: int | None
    kind: str
    reason: str
    field: str | None = None

    def describe(self) -> str:
        where = f"row {self.row_number}" if self.row_number is not None else "row ?"
        if self.field:
            where = f"{where}, field {self.field!r}"
        return f"{where}: {self.kind}: {self.reason}"


__all__ = [
    "ValueKind",
    "FieldSpec",
    "FieldSchema",
    "ResolvedColumns",
    "FieldValue",
    "DecodedRow",
    "Amount",
    "Posting",
    "Transaction",
    "RenderedEntry",
    "RowFailure",
]
