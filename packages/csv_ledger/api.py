"""Orchestration: CSV rows -> decoded rows -> rendered entries -> ledger text.

:func:`convert` is the pure core and works on any row iterable and any
template engine, which keeps it testable with in-memory fakes.
:func:`convert_files` wires the file-backed collaborators (YAML config, CSV
reader, append target) around it.

Error policy
------------
- Row-level errors (decode/render/tokenizer) are recorded in the
  :class:`~csv_ledger.summary.RunSummary` and the row is skipped.
- Configuration, schema and storage errors propagate and abort the run.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from os import PathLike

from .config import Configuration, load_config
from .decoder import decode
from .errors import RowError
from .ledger import merge, parse_ledger, render_standalone
from .logging_setup import get_logger
from .models import RenderedEntry, RowFailure
from .render import Renderer
from .row_source import CsvRowSource, RawRow
from .schema import resolve
from .storage import read_ledger, write_atomic
from .summary import DEFAULT_MAX_EXAMPLES, RunSummary
from .templates import JinjaTemplateEngine, TemplateEngine

_logger = get_logger("csv_ledger.api")


@dataclass(frozen=True, slots=True)
class ConvertResult:
    """Outcome of one conversion run.

    ``text`` is the complete output: the merged ledger when an append
    target was given, otherwise just the new entries.
    """

    text: str
    rendered: tuple[RenderedEntry, ...]
    inserted: tuple[RenderedEntry, ...]
    duplicates: tuple[RenderedEntry, ...]
    summary: RunSummary


def _template_strings(config: Configuration) -> list[str]:
    out = config.output
    strings = [out.date, out.flag, out.narration]
    strings += [t for t in (out.payee, out.tags, out.links) if t is not None]
    for p in out.postings:
        strings.append(p.account)
        strings += [t for t in (p.flag, p.amount, p.cost, p.price) if t is not None]
    return strings


def check_templates(config: Configuration, engine: JinjaTemplateEngine) -> set[str]:
    """Compile every template; return referenced names no field provides.

    Unknown names are not fatal here (each row still fails individually
    with ``UnknownPlaceholder``), but surfacing them once up front makes a
    misconfiguration obvious.
    """

    available = set(config.input)
    if config.settings.currency is not None:
        available.add("currency")
    unknown: set[str] = set()
    for template in _template_strings(config):
        unknown |= engine.validate(template) - available
    return unknown


def render_rows(
    config: Configuration,
    rows: Iterable[RawRow | RowFailure],
    *,
    engine: TemplateEngine | None = None,
    summary: RunSummary,
) -> list[RenderedEntry]:
    """Decode and render ``rows`` in order, recording row failures."""

    settings = config.settings
    schema = config.field_schema()
    renderer = Renderer(config, engine)
    resolved: dict[int, str] | None = None
    rendered: list[RenderedEntry] = []

    for item in rows:
        if isinstance(item, RowFailure):
            summary.rows_seen += 1
            summary.record(item)
            continue
        if resolved is None:
            # The first record fixes the column layout (header or width).
            resolved = resolve(item.fields, schema, has_header=settings.has_header)
            if settings.has_header:
                continue
        summary.rows_seen += 1
        try:
            row = decode(item.fields, resolved, schema, settings, row_number=item.row_number)
            rendered.append(renderer.render(row))
        except RowError as e:
            if e.row_number is None:
                e.row_number = item.row_number
            summary.record_error(e)

    if resolved is None:
        _logger.info("input contained no rows")
    summary.rendered = len(rendered)
    return rendered


def convert(
    config: Configuration,
    rows: Iterable[RawRow | RowFailure],
    *,
    existing: str | None = None,
    engine: TemplateEngine | None = None,
    max_examples: int = DEFAULT_MAX_EXAMPLES,
) -> ConvertResult:
    """Convert ``rows`` and, when ``existing`` is given, merge into it.

    ``existing`` is the current text of the append target (``""`` for an
    empty or new file); ``None`` means there is no append target.
    """

    if engine is None:
        engine = JinjaTemplateEngine()
    if isinstance(engine, JinjaTemplateEngine):
        unknown = check_templates(config, engine)
        if unknown:
            _logger.warning(
                "templates reference labels not declared in input: %s",
                ", ".join(sorted(unknown)),
            )

    summary = RunSummary(max_examples=max_examples)
    rendered = render_rows(config, rows, engine=engine, summary=summary)

    if existing is None:
        text = render_standalone(rendered, sort=config.settings.sort_output)
        inserted, duplicates = tuple(rendered), ()
    else:
        doc = parse_ledger(existing, config.settings.identity_fields)
        _logger.debug(
            "loaded ledger: %d entries, %d blocks", len(doc.entries()), len(doc.blocks)
        )
        outcome = merge(doc, rendered)
        text = outcome.text
        inserted, duplicates = outcome.inserted, outcome.skipped

    summary.inserted = len(inserted)
    summary.duplicates = len(duplicates)
    _logger.info(
        "rendered %d entries, inserted %d, skipped %d duplicates and %d failed rows",
        len(rendered),
        len(inserted),
        len(duplicates),
        summary.skipped,
    )
    return ConvertResult(
        text=text,
        rendered=tuple(rendered),
        inserted=inserted,
        duplicates=duplicates,
        summary=summary,
    )


def convert_files(
    csv_path: str | PathLike[str],
    config_path: str | PathLike[str],
    *,
    append_path: str | PathLike[str] | None = None,
    max_examples: int = DEFAULT_MAX_EXAMPLES,
) -> ConvertResult:
    """Run a conversion over files.

    With ``append_path`` the merged ledger is written back atomically (only
    when something was inserted); otherwise the caller prints
    ``result.text``.
    """

    config = load_config(config_path)
    rows = CsvRowSource.from_path(csv_path, config.settings)
    existing = read_ledger(append_path) if append_path is not None else None
    result = convert(config, rows, existing=existing, max_examples=max_examples)
    if append_path is not None and result.inserted:
        write_atomic(append_path, result.text)
    return result


__all__ = ["ConvertResult", "check_templates", "render_rows", "convert", "convert_files"]
