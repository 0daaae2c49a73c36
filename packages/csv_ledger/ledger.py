"""Ledger document model and the append/merge algorithm.

Load
    :func:`parse_ledger` splits existing text into blocks. A transaction
    header (``YYYY-MM-DD <flag> ["payee"] "narration" ...``) at column 0
    plus its indented non-blank continuation lines form an
    :class:`EntryBlock`; everything else (blank lines, comments, other
    directives, blocks that fail to parse) becomes an :class:`OpaqueBlock`.
    Joining every block's ``text`` yields the input byte-for-byte.
Dedup
    Each new entry whose fingerprint matches a not-yet-claimed existing
    entry is skipped (multiset semantics, so two identical CSV rows stay two
    entries until the ledger holds two).
Insert
    Survivors go right before the first entry whose date is strictly greater
    than theirs, or at the end of the document. Entries inserted earlier in
    the same run count as entries, so equal dates keep CSV row order.
Serialize
    Existing text is emitted untouched; inserted entries get one blank line
    of separation from their neighbours.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation

from .errors import UnparseableLedger
from .identity import compute_fingerprint
from .logging_setup import get_logger
from .models import Amount, Posting, RenderedEntry, Transaction

_logger = get_logger("csv_ledger.ledger")

# ---------------------------------------------------------------------------
# Grammar (line-oriented subset of beancount transactions)
# ---------------------------------------------------------------------------

_HEADER_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[ \t]+(txn|[*!&#?%PSTCURM])(?=[ \t\r\n]|$)(.*)$")
_HEADER_TOKEN_RE = re.compile(r'\s*("(?:[^"\\]|\\.)*"|#[^\s;]+|\^[^\s;]+|;.*)')
_ACCOUNT = r"[A-Z][A-Za-z0-9\-]*(?::[A-Z0-9][A-Za-z0-9\-]*)+"
_POSTING_RE = re.compile(rf"^[ \t]+(?:([*!&#?%PSTCURM])[ \t]+)?({_ACCOUNT})(?:[ \t]+(.*?))?[ \t]*$")
_META_RE = re.compile(r"^[ \t]+[a-z][A-Za-z0-9_\-]*:(?:[ \t]|$)")
_COMMENT_RE = re.compile(r"^[ \t]+;")
_NUMBER = r"[-+]?\d[\d,]*(?:\.\d*)?|[-+]?\.\d+"
_CURRENCY = r"[A-Z][A-Z0-9'._\-]*"
_AMOUNT_RE = re.compile(rf"^({_NUMBER})[ \t]+({_CURRENCY})(.*)$")
_COST_RE = re.compile(r"^\{\{?([^}]*)\}\}?(.*)$")
_PRICE_RE = re.compile(r"^@@?[ \t]*(.*)$")


def _unquote(token: str) -> str:
    return re.sub(r"\\(.)", r"\1", token[1:-1])


def _parse_amount(text: str) -> tuple[Amount, str] | None:
    m = _AMOUNT_RE.match(text.strip())
    if not m:
        return None
    try:
        number = Decimal(m.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    return Amount(number=number, currency=m.group(2)), m.group(3).strip()


def _parse_posting(line: str) -> Posting:
    body = line.rstrip("\r\n")
    if ";" in body:
        body = body[: body.index(";")]
    m = _POSTING_RE.match(body)
    if not m:
        raise UnparseableLedger(f"unrecognized posting line {line.strip()!r}")
    flag, account, rest = m.group(1), m.group(2), (m.group(3) or "").strip()
    units = cost = price = None
    if rest:
        parsed = _parse_amount(rest)
        if parsed is None:
            raise UnparseableLedger(f"unrecognized posting amount {rest!r}")
        units, rest = parsed
    if rest.startswith("{"):
        cm = _COST_RE.match(rest)
        if not cm:
            raise UnparseableLedger(f"unterminated cost in {line.strip()!r}")
        inner = _parse_amount(cm.group(1))
        cost = inner[0] if inner else None
        rest = cm.group(2).strip()
    if rest.startswith("@"):
        pm = _PRICE_RE.match(rest)
        inner = _parse_amount(pm.group(1)) if pm else None
        if inner is None or inner[1]:
            raise UnparseableLedger(f"unrecognized price in {line.strip()!r}")
        price = inner[0]
        rest = ""
    if rest:
        raise UnparseableLedger(f"unexpected trailing text {rest!r}")
    return Posting(account=account, units=units, flag=flag, cost=cost, price=price)


def parse_transaction(block: str) -> Transaction:
    """Parse one entry block (header plus indented lines) into a Transaction.

    Raises :class:`UnparseableLedger` when the block does not follow the
    supported grammar.
    """

    lines = block.splitlines()
    m = _HEADER_RE.match(lines[0])
    if not m:
        raise UnparseableLedger(f"not a transaction header: {lines[0]!r}")
    try:
        txn_date = date.fromisoformat(m.group(1))
    except ValueError as e:
        raise UnparseableLedger(f"invalid date {m.group(1)!r}") from e

    strings: list[str] = []
    tags: list[str] = []
    links: list[str] = []
    rest = m.group(3)
    pos = 0
    while pos < len(rest):
        tm = _HEADER_TOKEN_RE.match(rest, pos)
        if not tm:
            if rest[pos:].strip():
                raise UnparseableLedger(f"unexpected header text {rest[pos:].strip()!r}")
            break
        token = tm.group(1)
        if token.startswith('"'):
            if tags or links:
                raise UnparseableLedger("strings must precede tags and links")
            strings.append(_unquote(token))
        elif token.startswith("#"):
            tags.append(token[1:])
        elif token.startswith("^"):
            links.append(token[1:])
        else:
            break  # trailing comment
        pos = tm.end()
    if len(strings) > 2:
        raise UnparseableLedger("too many strings in transaction header")
    payee = strings[0] if len(strings) == 2 else None
    narration = strings[-1] if strings else ""

    postings: list[Posting] = []
    for line in lines[1:]:
        if _COMMENT_RE.match(line) or _META_RE.match(line):
            continue
        postings.append(_parse_posting(line))
    if not postings:
        raise UnparseableLedger("transaction has no postings")

    flag = "*" if m.group(2) == "txn" else m.group(2)
    return Transaction(
        date=txn_date,
        flag=flag,
        narration=narration,
        payee=payee,
        tags=tuple(tags),
        links=tuple(links),
        postings=tuple(postings),
    )


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class OpaqueBlock:
    text: str


@dataclass(slots=True)
class EntryBlock:
    text: str
    date: date
    fingerprint: str
    # Set for entries inserted by this run; ``None`` for pre-existing ones.
    row_number: int | None = None

    @property
    def is_new(self) -> bool:
        return self.row_number is not None


type Block = OpaqueBlock | EntryBlock


@dataclass(slots=True)
class LedgerDocument:
    blocks: list[Block] = field(default_factory=list)

    def entries(self) -> list[EntryBlock]:
        return [b for b in self.blocks if isinstance(b, EntryBlock)]

    def _append_opaque(self, text: str) -> None:
        if self.blocks and isinstance(self.blocks[-1], OpaqueBlock):
            self.blocks[-1].text += text
        else:
            self.blocks.append(OpaqueBlock(text))


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    document: LedgerDocument
    inserted: tuple[RenderedEntry, ...]
    skipped: tuple[RenderedEntry, ...]

    @property
    def text(self) -> str:
        return serialize(self.document)


def _is_indented(line: str) -> bool:
    return line[:1] in (" ", "\t") and bool(line.strip())


def parse_ledger(text: str, identity_fields: Sequence[str]) -> LedgerDocument:
    """Split ledger ``text`` into entry and opaque blocks (never raises)."""

    doc = LedgerDocument()
    lines = text.splitlines(keepends=True)
    i = 0
    while i < len(lines):
        line = lines[i]
        if not _HEADER_RE.match(line.rstrip("\r\n")):
            doc._append_opaque(line)
            i += 1
            continue
        j = i + 1
        while j < len(lines) and _is_indented(lines[j]):
            j += 1
        raw = "".join(lines[i:j])
        try:
            txn = parse_transaction(raw)
        except UnparseableLedger as e:
            _logger.debug("keeping ledger block at line %d as opaque text: %s", i + 1, e.reason)
            doc._append_opaque(raw)
        else:
            doc.blocks.append(
                EntryBlock(
                    text=raw,
                    date=txn.date,
                    fingerprint=compute_fingerprint(txn, identity_fields),
                )
            )
        i = j
    return doc


def _insert_position(doc: LedgerDocument, when: date) -> int:
    for k, block in enumerate(doc.blocks):
        if isinstance(block, EntryBlock) and block.date > when:
            return k
    return len(doc.blocks)


def merge(doc: LedgerDocument, entries: Iterable[RenderedEntry]) -> MergeOutcome:
    """Insert ``entries`` (in CSV row order) into ``doc`` in place."""

    available = Counter(b.fingerprint for b in doc.entries())
    inserted: list[RenderedEntry] = []
    skipped: list[RenderedEntry] = []
    for entry in entries:
        if available[entry.fingerprint] > 0:
            available[entry.fingerprint] -= 1
            skipped.append(entry)
            _logger.debug(
                "row %d (%s) already present in ledger; skipping", entry.row_number, entry.date
            )
            continue
        k = _insert_position(doc, entry.date)
        doc.blocks.insert(
            k,
            EntryBlock(
                text=entry.text,
                date=entry.date,
                fingerprint=entry.fingerprint,
                row_number=entry.row_number,
            ),
        )
        inserted.append(entry)
    return MergeOutcome(document=doc, inserted=tuple(inserted), skipped=tuple(skipped))


def _ends_with_blank_line(s: str) -> bool:
    return s == "\n" or s.endswith("\n\n") or s.endswith("\n\r\n") or s == "\r\n"


def serialize(doc: LedgerDocument) -> str:
    parts: list[str] = []
    out = ""
    for k, block in enumerate(doc.blocks):
        if isinstance(block, EntryBlock) and block.is_new:
            prefix = ""
            if out and not out.endswith("\n"):
                prefix += "\n"
            if out and not _ends_with_blank_line(out + prefix):
                prefix += "\n"
            piece = prefix + block.text
            nxt = doc.blocks[k + 1] if k + 1 < len(doc.blocks) else None
            if nxt is not None and not (isinstance(nxt, EntryBlock) and nxt.is_new):
                if not nxt.text.startswith(("\n", "\r\n")):
                    piece += "\n"
        else:
            piece = block.text
        parts.append(piece)
        out = (out + piece)[-4:]
    return "".join(parts)


def render_standalone(entries: Iterable[RenderedEntry], *, sort: bool = True) -> str:
    """Render entries without an append target, blank-line separated.

    With ``sort`` the entries are ordered by date (stable, so equal dates
    keep CSV row order); otherwise CSV row order is kept as is.
    """

    items = list(entries)
    if sort:
        items.sort(key=lambda e: e.date)
    return "\n".join(e.text for e in items)


__all__ = [
    "LedgerDocument",
    "EntryBlock",
    "OpaqueBlock",
    "MergeOutcome",
    "parse_transaction",
    "parse_ledger",
    "merge",
    "serialize",
    "render_standalone",
]
