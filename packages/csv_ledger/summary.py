"""Run summary: aggregate per-row failures instead of flooding output.

Failures are bucketed by ``(kind, reason-without-row-specifics)`` so a
structural misconfiguration that fails every row is reported once with a
count, while the first few concrete examples are kept for context.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from .errors import RowError
from .logging_setup import get_logger
from .models import RowFailure

_logger = get_logger("csv_ledger.summary")

DEFAULT_MAX_EXAMPLES = 5


def _bucket(failure: RowFailure) -> tuple[str, str]:
    # Field name identifies the reason well enough; the raw value does not.
    return failure.kind, failure.field or failure.reason


@dataclass(slots=True)
class RunSummary:
    max_examples: int = DEFAULT_MAX_EXAMPLES
    rows_seen: int = 0
    rendered: int = 0
    inserted: int = 0
    duplicates: int = 0
    failures: list[RowFailure] = field(default_factory=list)
    _counts: Counter[tuple[str, str]] = field(default_factory=Counter)

    def record(self, failure: RowFailure) -> None:
        key = _bucket(failure)
        if self._counts[key] == 0:
            _logger.warning("skipping %s", failure.describe())
        else:
            _logger.debug("skipping %s", failure.describe())
        self._counts[key] += 1
        if len(self.failures) < self.max_examples:
            self.failures.append(failure)

    def record_error(self, err: RowError) -> None:
        self.record(RowFailure(err.row_number, err.kind, err.reason, err.field))

    @property
    def skipped(self) -> int:
        return sum(self._counts.values())

    def counts(self) -> list[tuple[str, str, int]]:
        """Return ``(kind, detail, count)`` triples, most frequent first."""

        return [(k, d, n) for (k, d), n in self._counts.most_common()]

    def format(self) -> list[str]:
        lines = [
            f"{self.rows_seen} rows read, {self.rendered} rendered, "
            f"{self.inserted} written, {self.duplicates} duplicates skipped, "
            f"{self.skipped} rows skipped"
        ]
        if not self.skipped:
            return lines
        for kind, detail, n in self.counts():
            lines.append(f"  {n} x {kind} ({detail})")
        lines.append("  first examples:")
        for f in self.failures:
            lines.append(f"    {f.describe()}")
        return lines


__all__ = ["RunSummary", "DEFAULT_MAX_EXAMPLES"]
