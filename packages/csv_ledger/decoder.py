"""Row decoding: raw CSV cells -> typed values keyed by semantic label.

Parsing rules per kind
----------------------
- ``text``: passed through verbatim; stripped only when the field (or
  ``settings.trim``) asks for it.
- ``date``: ``datetime.strptime`` with ``settings.date_format``.
- ``amount``: signed ``Decimal``. Currency symbols, a leading ``+``/``-``
  and surrounding parentheses are peeled off in any order (subject to
  ``settings.negative_style``), thousands separators removed and the
  configured decimal separator mapped to ``.``.

Every function here is pure; failures are raised as
:class:`~csv_ledger.errors.DecodeError` subclasses carrying the label.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from .config import Settings
from .errors import BadAmount, BadDate, MissingField
from .models import DecodedRow, FieldSchema, FieldSpec, FieldValue, ResolvedColumns, ValueKind

# Comma grouping next to a dot: "1,234.56" but not "1.234,56" or "1,23.4".
_COMMA_GROUPED_RE = re.compile(r"^\d{1,3}(?:,\d{3})*(?:\.\d*)?$")


def parse_amount(raw: str, settings: Settings) -> Decimal:
    """Parse ``raw`` into a signed ``Decimal`` per ``settings``.

    Raises ``ValueError`` with a short reason on failure.
    """

    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    allow_minus = settings.negative_style in ("minus", "both")
    allow_parens = settings.negative_style in ("parentheses", "both")
    symbols = settings.currency_symbols
    negative = False

    # Strip sign, currency symbol and parentheses until stable so that
    # "-$1,234.56", "$(1,234.56)" and "(1,234.56 €)" are all accepted.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-") or s.endswith("-") and len(s) > 1:
            if not allow_minus:
                raise ValueError("minus sign not allowed by negative_style")
            if negative:
                raise ValueError("conflicting sign markers")
            negative = True
            s = (s[1:] if s.startswith("-") else s[:-1]).strip()
            changed = True
        if s and s[0] in symbols:
            s = s[1:].lstrip()
            changed = True
        if s and s[-1] in symbols:
            s = s[:-1].rstrip()
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            if not allow_parens:
                raise ValueError("parenthesized negatives not allowed by negative_style")
            if negative:
                raise ValueError("conflicting sign markers")
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    thousands = settings.thousands_separator
    if thousands is not None:
        s = s.replace(thousands, "")
    decimal_sep = settings.decimal_separator
    if decimal_sep != ".":
        if "." in s and thousands != ".":
            raise ValueError("unexpected '.' in amount")
        s = s.replace(decimal_sep, ".")
    elif thousands is None:
        # No thousands separator configured: a lone comma is a decimal mark,
        # next to a dot it must group thousands before the dot.
        if "," in s and "." in s:
            if not _COMMA_GROUPED_RE.match(s):
                raise ValueError("ambiguous ',' and '.' separators")
            s = s.replace(",", "")
        else:
            s = s.replace(",", ".")

    if not s or not all(c.isdigit() or c == "." for c in s) or s.count(".") > 1 or s == ".":
        raise ValueError("not a number")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:  # pragma: no cover - guarded above
        raise ValueError("not a number") from exc
    return -d if negative else d


def parse_date(raw: str, settings: Settings) -> date:
    try:
        return datetime.strptime(raw.strip(), settings.date_format).date()
    except ValueError as exc:
        raise ValueError(f"does not match {settings.date_format!r}") from exc


def _decode_cell(raw: str, spec: FieldSpec, settings: Settings, row_number: int) -> FieldValue:
    trim = settings.trim if spec.trim is None else spec.trim
    if not raw.strip():
        if spec.required:
            raise MissingField(
                f"required field {spec.label!r} is empty", field=spec.label, row_number=row_number
            )
        return None

    if spec.kind is ValueKind.TEXT:
        return raw.strip() if trim else raw
    if spec.kind is ValueKind.DATE:
        try:
            return parse_date(raw, settings)
        except ValueError as e:
            raise BadDate(
                f"invalid date {raw!r}: {e}", field=spec.label, row_number=row_number
            ) from e
    try:
        amount = parse_amount(raw, settings)
    except ValueError as e:
        raise BadAmount(
            f"invalid amount {raw!r}: {e}", field=spec.label, row_number=row_number
        ) from e
    return -amount if spec.negate else amount


def decode(
    row: Sequence[str],
    resolved: ResolvedColumns,
    schema: FieldSchema,
    settings: Settings,
    *,
    row_number: int,
) -> DecodedRow:
    """Decode one CSV record into a :class:`DecodedRow`.

    Every label declared in ``schema`` is present in the result. A row
    narrower than a resolved column fails with ``MissingField`` for that
    label when the field is required and decodes to ``None`` otherwise.
    """

    by_label = {spec.label: spec for spec in schema}
    values: dict[str, FieldValue] = {}
    for index, label in resolved.items():
        spec = by_label[label]
        raw = row[index] if index < len(row) else ""
        values[label] = _decode_cell(raw, spec, settings, row_number)

    missing = [spec.label for spec in schema if spec.label not in values]
    if missing:
        raise MissingField(
            f"no column resolved for {missing[0]!r}", field=missing[0], row_number=row_number
        )
    # Keep schema order for stable iteration downstream.
    ordered = {spec.label: values[spec.label] for spec in schema}
    return DecodedRow(row_number=row_number, values=ordered)


__all__ = ["parse_amount", "parse_date", "decode"]
