"""Render decoded rows into beancount transaction text.

Flow per row:

1. :func:`template_context` turns the typed :class:`DecodedRow` into the
   ``label -> text`` mapping templates see (canonical formatting per kind).
2. :class:`Renderer` expands the header templates then each posting
   template in configured order, validating accounts and amounts, and
   builds a structured :class:`Transaction`.
3. :func:`format_transaction` produces the text block, and the identity
   fingerprint is computed from the structured transaction.

Output shape::

    2024-01-03 * "Employer" "Salary" #import
      Assets:Bank  1500.00 EUR
      Income:Salary
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .config import Configuration, PostingTemplate, Settings
from .errors import BadRenderDate, InvalidAccount, InvalidAmount, RenderError
from .identity import compute_fingerprint
from .models import Amount, DecodedRow, FieldValue, Posting, RenderedEntry, Transaction
from .templates import JinjaTemplateEngine, TemplateEngine

ACCOUNT_ROOTS: frozenset[str] = frozenset(
    {"Assets", "Liabilities", "Equity", "Income", "Expenses"}
)

_ACCOUNT_COMPONENT_RE = re.compile(r"^[A-Z0-9][A-Za-z0-9\-]*$")
_CURRENCY_RE = re.compile(r"^[A-Z][A-Z0-9'._\-]{0,22}[A-Z0-9]$|^[A-Z]$")
TXN_FLAG_RE = re.compile(r"txn|[*!&#?%PSTCURM]")
LEDGER_DATE_FORMAT = "%Y-%m-%d"
INDENT = "  "


# ---------------------------------------------------------------------------
# Canonical value formatting
# ---------------------------------------------------------------------------


def format_amount(d: Decimal, places: int) -> str:
    q = d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return f"{q:.{places}f}"


def format_value(value: FieldValue, settings: Settings) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format_amount(value, settings.amount_decimals)
    if isinstance(value, date):
        return value.strftime(LEDGER_DATE_FORMAT)
    return value


def template_context(row: DecodedRow, settings: Settings) -> dict[str, str]:
    """Return the ``label -> text`` mapping templates are rendered against."""

    ctx = {label: format_value(v, settings) for label, v in row.values.items()}
    if settings.currency is not None:
        ctx.setdefault("currency", settings.currency)
    return ctx


# ---------------------------------------------------------------------------
# Parsing rendered fragments
# ---------------------------------------------------------------------------


def parse_account(text: str) -> str:
    account = text.strip()
    parts = account.split(":")
    if parts[0] not in ACCOUNT_ROOTS:
        raise InvalidAccount(
            f"account {account!r} must start with one of {', '.join(sorted(ACCOUNT_ROOTS))}"
        )
    if len(parts) < 2 or not all(_ACCOUNT_COMPONENT_RE.match(p) for p in parts[1:]):
        raise InvalidAccount(f"invalid account name {account!r}")
    return account


def parse_amount_text(text: str) -> Amount:
    """Parse ``"<number> <CURRENCY>"`` (``,`` accepted as decimal mark)."""

    parts = text.split()
    if len(parts) != 2:
        raise InvalidAmount(f"expected '<number> <currency>', got {text.strip()!r}")
    number, currency = parts
    try:
        value = Decimal(number.replace(",", "."))
    except InvalidOperation as e:
        raise InvalidAmount(f"invalid number {number!r}") from e
    if not value.is_finite():
        raise InvalidAmount(f"invalid number {number!r}")
    if not _CURRENCY_RE.match(currency):
        raise InvalidAmount(f"invalid currency {currency!r}")
    return Amount(number=value, currency=currency)


def _is_blank_amount(text: str) -> bool:
    # "" or a bare currency left over from "{{amount}} {{currency}}".
    parts = text.split()
    return not parts or (len(parts) == 1 and bool(_CURRENCY_RE.match(parts[0])))


def parse_ledger_date(text: str, settings: Settings) -> date:
    s = text.strip()
    for fmt in (LEDGER_DATE_FORMAT, settings.date_format):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise BadRenderDate(f"rendered date {s!r} is neither ISO nor {settings.date_format!r}")


# ---------------------------------------------------------------------------
# Text formatting
# ---------------------------------------------------------------------------


def _single_line(s: str) -> str:
    # Entries are line-oriented; embedded newlines from quoted CSV cells fold.
    return re.sub(r"[ \t]*[\r\n]+[ \t]*", " ", s)


def quote(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_posting(p: Posting) -> str:
    head = f"{p.flag} {p.account}" if p.flag else p.account
    if p.units is None:
        return f"{INDENT}{head}\n"
    line = f"{INDENT}{head}  {p.units.to_text()}"
    if p.cost is not None:
        line += f" {{{p.cost.to_text()}}}"
    if p.price is not None:
        line += f" @ {p.price.to_text()}"
    return line + "\n"


def format_transaction(txn: Transaction) -> str:
    header = f"{txn.date.strftime(LEDGER_DATE_FORMAT)} {txn.flag}"
    if txn.payee is not None:
        header += f" {quote(txn.payee)}"
    header += f" {quote(txn.narration)}"
    for tag in txn.tags:
        header += f" #{tag}"
    for link in txn.links:
        header += f" ^{link}"
    return header + "\n" + "".join(format_posting(p) for p in txn.postings)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class Renderer:
    """Render :class:`DecodedRow` values with the configured templates.

    Holds only read-only state (configuration and engine) and may be shared
    across rows.
    """

    def __init__(self, config: Configuration, engine: TemplateEngine | None = None) -> None:
        self.config = config
        self.settings = config.settings
        self.engine: TemplateEngine = engine if engine is not None else JinjaTemplateEngine()

    def _expand(self, template: str, ctx: Mapping[str, str]) -> str:
        return self.engine.render(template, ctx)

    def _optional(self, template: str | None, ctx: Mapping[str, str]) -> str | None:
        if template is None:
            return None
        out = self._expand(template, ctx).strip()
        return _single_line(out) if out else None

    def _words(self, template: str | None, ctx: Mapping[str, str], marker: str) -> tuple[str, ...]:
        out = self._optional(template, ctx)
        if out is None:
            return ()
        return tuple(w.lstrip(marker) for w in out.split() if w.lstrip(marker))

    def _posting(self, tpl: PostingTemplate, ctx: Mapping[str, str]) -> Posting | None:
        account = parse_account(self._expand(tpl.account, ctx))
        units: Amount | None = None
        if tpl.amount is not None:
            text = self._expand(tpl.amount, ctx)
            if _is_blank_amount(text):
                if tpl.skip_if_empty:
                    return None
            else:
                units = parse_amount_text(text)
                if tpl.skip_if_zero and units.number == 0:
                    return None
        flag = self._optional(tpl.flag, ctx)
        if flag is not None and (flag == "txn" or not TXN_FLAG_RE.fullmatch(flag)):
            raise RenderError(f"invalid posting flag {flag!r}", field="flag")
        cost = self._optional(tpl.cost, ctx)
        price = self._optional(tpl.price, ctx)
        return Posting(
            account=account,
            units=units,
            flag=flag,
            cost=parse_amount_text(cost) if cost is not None else None,
            price=parse_amount_text(price) if price is not None else None,
        )

    def build_transaction(self, row: DecodedRow) -> Transaction:
        out = self.config.output
        ctx = template_context(row, self.settings)
        txn_date = parse_ledger_date(self._expand(out.date, ctx), self.settings)
        flag = self._expand(out.flag, ctx).strip() or "!"
        if not TXN_FLAG_RE.fullmatch(flag):
            raise RenderError(f"invalid transaction flag {flag!r}", field="flag")
        payee = self._optional(out.payee, ctx)
        narration = _single_line(self._expand(out.narration, ctx))
        tags = self._words(out.tags, ctx, "#")
        links = self._words(out.links, ctx, "^")
        postings = tuple(
            p for p in (self._posting(t, ctx) for t in out.postings) if p is not None
        )
        if not postings:
            raise RenderError("every posting was skipped")
        return Transaction(
            date=txn_date,
            flag=flag,
            narration=narration,
            payee=payee,
            tags=tags,
            links=links,
            postings=postings,
        )

    def render(self, row: DecodedRow) -> RenderedEntry:
        try:
            txn = self.build_transaction(row)
        except RenderError as e:
            if e.row_number is None:
                e.row_number = row.row_number
            raise
        return RenderedEntry(
            row_number=row.row_number,
            date=txn.date,
            text=format_transaction(txn),
            fingerprint=compute_fingerprint(txn, self.settings.identity_fields),
            transaction=txn,
        )


__all__ = [
    "ACCOUNT_ROOTS",
    "Renderer",
    "template_context",
    "format_amount",
    "format_transaction",
    "parse_account",
    "parse_amount_text",
    "quote",
]
