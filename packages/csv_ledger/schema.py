"""Field schema resolution: map configured columns onto CSV positions."""

from __future__ import annotations

from collections.abc import Sequence

from .errors import IndexOutOfRange, SchemaError, UnknownColumn
from .models import FieldSchema


def _normalize_header_cell(cell: str) -> str:
    # Exports from spreadsheet tools often carry a UTF-8 BOM on the first cell.
    return cell.lstrip("\ufeff").strip()


def resolve(
    header: Sequence[str],
    schema: FieldSchema,
    *,
    has_header: bool = True,
) -> dict[int, str]:
    """Return ``column index -> label`` for every field in ``schema``.

    ``header`` is the header row when ``has_header`` is true; otherwise it is
    any representative row (the first data row) and only its width is used.

    Raises
    ------
    UnknownColumn
        A named column is absent from the header, or the CSV has no header
        to look names up in.
    IndexOutOfRange
        A positional column is not below the row width.
    """

    width = len(header)
    positions: dict[str, int] = {}
    if has_header:
        for i, cell in enumerate(header):
            # First occurrence wins for duplicated header names.
            positions.setdefault(_normalize_header_cell(cell), i)

    resolved: dict[int, str] = {}
    for spec in schema:
        if isinstance(spec.column, int):
            if spec.column >= width:
                raise IndexOutOfRange(spec.column, width)
            index = spec.column
        else:
            if not has_header:
                raise UnknownColumn(
                    spec.column,
                    f"column {spec.column!r} is named but settings.has_header is false",
                )
            name = spec.column.strip()
            if name not in positions:
                raise UnknownColumn(spec.column)
            index = positions[name]
        if index in resolved:
            # One column feeds exactly one label.
            raise SchemaError(
                f"column {spec.column!r} is mapped to both {resolved[index]!r} and {spec.label!r}",
            )
        resolved[index] = spec.label
    return resolved


__all__ = ["resolve"]
