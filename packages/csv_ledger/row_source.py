"""CSV row source: the tokenizer capability the engine consumes.

The engine only needs an iterable of ``RawRow | RowFailure`` in file order.
:class:`CsvRowSource` provides it on top of the stdlib :mod:`csv` module
(RFC 4180 quoting, embedded newlines). A malformed record is yielded as a
:class:`~csv_ledger.models.RowFailure` and iteration continues.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import IO, Protocol

from .config import Settings
from .errors import InputError, IoFailure, MalformedRow
from .logging_setup import get_logger
from .models import RowFailure

_logger = get_logger("csv_ledger.row_source")


@dataclass(frozen=True, slots=True)
class RawRow:
    """One tokenized CSV record. ``row_number`` is 1-based over all records."""

    row_number: int
    fields: tuple[str, ...]


class RowSource(Protocol):
    def __iter__(self) -> Iterator[RawRow | RowFailure]: ...


class CsvRowSource:
    """Yield CSV records after skipping ``settings.skip`` leading records.

    Blank records are dropped. The header, when present, is yielded like any
    other record; the caller decides what the first row means.
    """

    def __init__(self, opener: Callable[[], IO[str]], settings: Settings, *, name: str) -> None:
        self._opener = opener
        self._settings = settings
        self.name = name

    @classmethod
    def from_path(cls, path: str | PathLike[str], settings: Settings) -> CsvRowSource:
        p = Path(path)

        def _open() -> IO[str]:
            try:
                return p.open(encoding=settings.encoding, newline="")
            except OSError as e:
                raise IoFailure(p, e) from e

        return cls(_open, settings, name=str(p))

    @classmethod
    def from_text(cls, text: str, settings: Settings, *, name: str = "<text>") -> CsvRowSource:
        return cls(lambda: io.StringIO(text, newline=""), settings, name=name)

    def __iter__(self) -> Iterator[RawRow | RowFailure]:
        s = self._settings
        with self._opener() as f:
            reader = csv.reader(f, delimiter=s.delimiter, quotechar=s.quote, strict=True)
            n = 0
            while True:
                try:
                    record = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    n += 1
                    if n > s.skip:
                        _logger.debug("malformed CSV record %d in %s: %s", n, self.name, e)
                        err = MalformedRow(str(e), row_number=n)
                        yield RowFailure(n, err.kind, err.reason)
                    continue
                except UnicodeDecodeError as e:
                    raise InputError(
                        f"{self.name}: cannot decode as {s.encoding}: {e.reason}"
                    ) from e
                n += 1
                if n <= s.skip:
                    continue
                if not record or all(not cell.strip() for cell in record):
                    continue
                yield RawRow(n, tuple(record))


__all__ = ["RawRow", "RowSource", "CsvRowSource"]
