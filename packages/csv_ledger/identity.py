"""Identity fingerprints for duplicate detection.

A fingerprint is a SHA-256 over canonical JSON of the identity-bearing
fields of a :class:`~csv_ledger.models.Transaction`. New entries and entries
parsed back from an existing ledger go through the same function, so a
re-import of the same CSV rows matches what an earlier run wrote. Rendered
text never participates: indentation, quoting or decimal padding changes do
not affect identity.

Canonical values
----------------
- ``date``: ``YYYY-MM-DD``
- ``flag``/``payee``/``narration``: trimmed text (``None`` when absent)
- ``amount``: units of the first posting with an explicit amount, as a
  normalized decimal (``1500.00`` -> ``"1500"``) plus currency
- ``accounts``: posting accounts in order
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from .models import Amount, Transaction


def _norm_str(v: str | None) -> str | None:
    if v is None:
        return None
    s = v.strip()
    return s if s else None


def _norm_decimal(d: Decimal) -> str:
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


def _norm_amount(a: Amount | None) -> str | None:
    if a is None:
        return None
    return f"{_norm_decimal(a.number)} {a.currency.strip()}"


def compute_fingerprint(txn: Transaction, fields: Sequence[str]) -> str:
    """Return the hex SHA-256 identity of ``txn`` over ``fields``.

    Field order in ``fields`` does not matter.
    """

    payload: dict[str, Any] = {}
    for name in fields:
        if name == "date":
            payload["date"] = txn.date.isoformat()
        elif name == "flag":
            payload["flag"] = _norm_str(txn.flag)
        elif name == "payee":
            payload["payee"] = _norm_str(txn.payee)
        elif name == "narration":
            payload["narration"] = _norm_str(txn.narration)
        elif name == "amount":
            payload["amount"] = _norm_amount(txn.first_units())
        elif name == "accounts":
            payload["accounts"] = [p.account for p in txn.postings]
        else:
            raise ValueError(f"unknown identity field: {name!r}")

    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


__all__ = ["compute_fingerprint"]
