# ruff: noqa: E501
from __future__ import annotations

import textwrap
from datetime import date
from decimal import Decimal

from csv_ledger.config import DEFAULT_IDENTITY_FIELDS
from csv_ledger.identity import compute_fingerprint
from csv_ledger.ledger import (
    EntryBlock,
    OpaqueBlock,
    merge,
    parse_ledger,
    parse_transaction,
    render_standalone,
    serialize,
)
from csv_ledger.models import Amount, Posting, RenderedEntry, Transaction
from csv_ledger.render import format_transaction

FIELDS = DEFAULT_IDENTITY_FIELDS


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def _entry(when: str, narration: str, amount: str, row_number: int = 1) -> RenderedEntry:
    txn = Transaction(
        date=date.fromisoformat(when),
        flag="*",
        narration=narration,
        postings=(
            Posting("Assets:Bank:Checking", Amount(Decimal(amount), "EUR")),
            Posting("Expenses:Unknown"),
        ),
    )
    return RenderedEntry(
        row_number=row_number,
        date=txn.date,
        text=format_transaction(txn),
        fingerprint=compute_fingerprint(txn, FIELDS),
        transaction=txn,
    )


def _merge_text(existing: str, entries: list[RenderedEntry]) -> str:
    return merge(parse_ledger(existing, FIELDS), entries).text


EXISTING = _dedent(
    """
    ; personal ledger
    option "operating_currency" "EUR"

    2024-01-01 open Assets:Bank:Checking EUR

    2024-01-04 * "Groceries"
      Assets:Bank:Checking  -20.00 EUR
      Expenses:Food

    2024-01-10 * "Rent"  ; monthly
      Assets:Bank:Checking  -900.00 EUR
      Expenses:Housing
    """
)


def test_parse_ledger_round_trips_bytes():
    doc = parse_ledger(EXISTING, FIELDS)
    assert serialize(doc) == EXISTING
    assert [b.date for b in doc.entries()] == [date(2024, 1, 4), date(2024, 1, 10)]
    assert isinstance(doc.blocks[0], OpaqueBlock)


def test_round_trip_preserves_crlf_and_missing_final_newline():
    text = '2024-01-04 * "Groceries"\r\n  Assets:Bank  -20.00 EUR\r\n  Expenses:Food'
    assert serialize(parse_ledger(text, FIELDS)) == text


def test_merge_inserts_in_date_order_and_keeps_existing_text():
    out = _merge_text(
        EXISTING,
        [_entry("2024-01-05", "Coffee", "-3.50", 2), _entry("2024-01-03", "Salary", "1500.00", 3)],
    )
    assert out == _dedent(
        """
        ; personal ledger
        option "operating_currency" "EUR"

        2024-01-01 open Assets:Bank:Checking EUR

        2024-01-03 * "Salary"
          Assets:Bank:Checking  1500.00 EUR
          Expenses:Unknown

        2024-01-04 * "Groceries"
          Assets:Bank:Checking  -20.00 EUR
          Expenses:Food

        2024-01-05 * "Coffee"
          Assets:Bank:Checking  -3.50 EUR
          Expenses:Unknown

        2024-01-10 * "Rent"  ; monthly
          Assets:Bank:Checking  -900.00 EUR
          Expenses:Housing
        """
    )


def test_entries_after_last_are_appended_with_blank_line():
    text = '2024-01-04 * "Groceries"\n  Assets:Bank  -20.00 EUR\n  Expenses:Food\n'
    out = _merge_text(text, [_entry("2024-02-01", "Later", "1.00")])
    assert out == text + "\n" + _entry("2024-02-01", "Later", "1.00").text


def test_existing_text_without_final_newline_gets_one():
    text = "; header only"
    out = _merge_text(text, [_entry("2024-02-01", "Later", "1.00")])
    assert out == "; header only\n\n" + _entry("2024-02-01", "Later", "1.00").text


def test_merge_is_idempotent():
    entries = [_entry("2024-01-05", "Coffee", "-3.50", 2), _entry("2024-01-03", "Salary", "1500.00", 3)]
    once = _merge_text(EXISTING, entries)
    outcome = merge(parse_ledger(once, FIELDS), entries)
    assert outcome.inserted == ()
    assert len(outcome.skipped) == 2
    assert outcome.text == once


def test_leading_and_trailing_blank_lines_survive_merge():
    groceries = '2024-01-04 * "Groceries"\n  Assets:Bank  -20.00 EUR\n  Expenses:Food\n'
    existing = "\n\n; c\n\n" + groceries + "\n\n"
    early = _entry("2024-01-01", "Early", "5.00", 1)
    late = _entry("2024-02-01", "Late", "1.00", 2)

    once = _merge_text(existing, [early, late])
    assert once == early.text + "\n\n; c\n\n" + groceries + "\n\n" + late.text
    assert existing in once

    outcome = merge(parse_ledger(once, FIELDS), [early, late])
    assert outcome.inserted == ()
    assert outcome.text == once


def test_duplicates_match_regardless_of_formatting():
    existing = '2024-01-05   txn "Coffee"\n\tAssets:Bank:Checking     -3.5 EUR\n\tExpenses:Food\n'
    outcome = merge(parse_ledger(existing, FIELDS), [_entry("2024-01-05", "Coffee", "-3.50")])
    assert outcome.inserted == ()
    assert outcome.text == existing


def test_identical_rows_are_counted_as_a_multiset():
    coffee = _entry("2024-01-05", "Coffee", "-3.50")
    one = _merge_text("", [coffee])
    outcome = merge(parse_ledger(one, FIELDS), [coffee, coffee])
    assert len(outcome.skipped) == 1
    assert len(outcome.inserted) == 1
    assert outcome.text.count('"Coffee"') == 2


def test_equal_dates_keep_csv_order_after_existing():
    text = '2024-01-05 * "Existing"\n  Assets:Bank  -1.00 EUR\n  Expenses:Food\n'
    out = _merge_text(
        text,
        [_entry("2024-01-05", "First", "-2.00", 2), _entry("2024-01-05", "Second", "-3.00", 3)],
    )
    narrations = [line for line in out.splitlines() if line.startswith("2024")]
    assert narrations == [
        '2024-01-05 * "Existing"',
        '2024-01-05 * "First"',
        '2024-01-05 * "Second"',
    ]


def test_unparseable_block_is_opaque_and_preserved():
    text = _dedent(
        """
        2024-01-02 * "a" "b" "c"
          Assets:Bank  -1.00 EUR

        2024-01-03 * "No postings"

        2024-01-04 * "Groceries"
          Assets:Bank  -20.00 EUR
          Expenses:Food
        """
    )
    doc = parse_ledger(text, FIELDS)
    assert [b.date for b in doc.entries()] == [date(2024, 1, 4)]
    early = _entry("2024-01-01", "Early", "5.00")
    out = merge(doc, [early]).text
    # Opaque blocks are never insertion anchors; the new entry lands before
    # the first recognized entry with a later date.
    head, sep, tail = text.partition('2024-01-04 * "Groceries"')
    assert out == head + early.text + "\n" + sep + tail


def test_inserted_entries_appear_exactly_once():
    entries = [_entry(f"2024-01-{d:02d}", f"Row {d}", "1.00", d) for d in (9, 2, 30, 4)]
    out = _merge_text(EXISTING, entries)
    for e in entries:
        assert out.count(e.text) == 1
    doc = parse_ledger(out, FIELDS)
    dates = [b.date for b in doc.entries()]
    assert dates == sorted(dates)


def test_parse_transaction_reads_payee_tags_links_and_costs():
    txn = parse_transaction(
        _dedent(
            """
            2024-03-01 ! "Broker" "Buy" #invest ^trade-1
              time: "10:00"
              Assets:Broker  10 STOCK {12.50 EUR}
              ; note
              ! Assets:Cash  -125.00 EUR @ 1 EUR
            """
        )
    )
    assert (txn.payee, txn.narration, txn.flag) == ("Broker", "Buy", "!")
    assert txn.tags == ("invest",)
    assert txn.links == ("trade-1",)
    assert txn.postings[0].cost == Amount(Decimal("12.50"), "EUR")
    assert txn.postings[1].flag == "!"
    assert txn.postings[1].price == Amount(Decimal("1"), "EUR")


def test_new_entry_block_flags():
    doc = merge(parse_ledger(EXISTING, FIELDS), [_entry("2024-01-05", "Coffee", "-3.50", 2)]).document
    new = [b for b in doc.entries() if b.is_new]
    assert len(new) == 1
    assert isinstance(new[0], EntryBlock)
    assert new[0].row_number == 2


def test_render_standalone_sorts_by_date_unless_disabled():
    coffee = _entry("2024-01-05", "Coffee", "-3.50", 2)
    salary = _entry("2024-01-03", "Salary", "1500.00", 3)
    assert render_standalone([coffee, salary]) == salary.text + "\n" + coffee.text
    assert render_standalone([coffee, salary], sort=False) == coffee.text + "\n" + salary.text
    assert render_standalone([]) == ""
