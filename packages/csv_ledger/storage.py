"""Filesystem boundary for the append target.

Reads are whole-file; writes go to ``<path>.tmp`` and are moved into place
with ``os.replace`` so a failed run never leaves a half-written ledger.
``OSError`` is translated to :class:`~csv_ledger.errors.IoFailure`.
"""

from __future__ import annotations

import contextlib
import os
from os import PathLike
from pathlib import Path

from .errors import IoFailure
from .logging_setup import get_logger

_logger = get_logger("csv_ledger.storage")


def read_ledger(path: str | PathLike[str]) -> str:
    """Return the ledger text, or ``""`` when the file does not exist yet."""

    p = Path(path)
    try:
        # newline="" keeps CRLF files byte-identical on rewrite.
        with p.open(encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        _logger.info("append target %s does not exist; it will be created", p)
        return ""
    except OSError as e:
        raise IoFailure(p, e) from e
    except UnicodeDecodeError as e:
        raise IoFailure(p, OSError(f"not valid UTF-8 ({e.reason})")) from e


def write_atomic(path: str | PathLike[str], text: str) -> None:
    p = Path(path)
    tmp = p.with_name(p.name + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp, p)
    except OSError as e:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise IoFailure(p, e) from e


__all__ = ["read_ledger", "write_atomic"]
