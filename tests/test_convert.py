# ruff: noqa: E501
from __future__ import annotations

import logging
import textwrap

import pytest
from csv_ledger.api import convert
from csv_ledger.config import parse_config
from csv_ledger.errors import UnknownColumn
from csv_ledger.row_source import CsvRowSource
from helpers.fakes import FakeRowSource, FakeTemplateEngine

CSV_TEXT = "date,desc,amount\n2024-01-05,Coffee,-3.50\n2024-01-03,Salary,1500.00\n"

SALARY = '2024-01-03 * "Salary"\n  Assets:Bank:Checking  1500.00 EUR\n  Expenses:Unknown\n'
COFFEE = '2024-01-05 * "Coffee"\n  Assets:Bank:Checking  -3.50 EUR\n  Expenses:Unknown\n'


@pytest.fixture
def config(scenario_config_text):
    return parse_config(scenario_config_text)


def _rows(config, text: str = CSV_TEXT):
    return CsvRowSource.from_text(text, config.settings)


def test_standalone_output_is_sorted_by_date(config):
    result = convert(config, _rows(config))
    assert result.text == SALARY + "\n" + COFFEE
    assert [e.row_number for e in result.rendered] == [2, 3]
    assert result.summary.skipped == 0


def test_sort_output_false_keeps_csv_order(scenario_config_text):
    config = parse_config(
        scenario_config_text.replace("  currency: EUR\n", "  currency: EUR\n  sort_output: false\n")
    )
    assert convert(config, _rows(config)).text == COFFEE + "\n" + SALARY


def test_append_to_empty_ledger_matches_standalone(config):
    result = convert(config, _rows(config), existing="")
    assert result.text == SALARY + "\n" + COFFEE
    assert len(result.inserted) == 2


def test_second_append_adds_nothing(config):
    first = convert(config, _rows(config), existing="")
    second = convert(config, _rows(config), existing=first.text)
    assert second.text == first.text
    assert second.inserted == ()
    assert len(second.duplicates) == 2
    assert second.text.count("Expenses:Unknown") == 2


def test_bad_amount_row_is_skipped_and_reported(config):
    text = CSV_TEXT + "2024-01-07,Refund,N/A\n"
    result = convert(config, _rows(config, text))
    assert result.text == SALARY + "\n" + COFFEE
    assert result.summary.rows_seen == 3
    assert result.summary.skipped == 1
    (failure,) = result.summary.failures
    assert (failure.row_number, failure.kind, failure.field) == (4, "BadAmount", "amount")


def test_repeated_failures_are_bucketed(config):
    text = "date,desc,amount\n" + "".join(f"2024-01-0{d},X,bad\n" for d in range(1, 5))
    result = convert(config, _rows(config, text), max_examples=2)
    assert result.summary.counts() == [("BadAmount", "amount", 4)]
    assert len(result.summary.failures) == 2
    lines = result.summary.format()
    assert lines[0].endswith("4 rows skipped")
    assert "  4 x BadAmount (amount)" in lines


def test_malformed_record_does_not_stop_the_batch(config):
    rows = FakeRowSource(
        [
            ["date", "desc", "amount"],
            ["2024-01-05", "Coffee", "-3.50"],
            None,
            ["2024-01-03", "Salary", "1500.00"],
        ]
    )
    result = convert(config, rows, engine=FakeTemplateEngine())
    assert result.text == SALARY + "\n" + COFFEE
    assert [f.kind for f in result.summary.failures] == ["MalformedRow"]
    assert result.summary.failures[0].row_number == 3


def test_csv_tokenizer_reports_malformed_quotes(scenario_config_text):
    config = parse_config(scenario_config_text.replace("  has_header: true\n", "  has_header: true\n  quote: '\"'\n"))
    text = 'date,desc,amount\n2024-01-05,"Coffee"x,-3.50\n2024-01-03,Salary,1500.00\n'
    result = convert(config, _rows(config, text))
    assert result.text == SALARY
    assert [f.kind for f in result.summary.failures] == ["MalformedRow"]


def test_unknown_column_aborts(scenario_config_text):
    config = parse_config(scenario_config_text.replace("{column: desc}", "{column: memo}"))
    with pytest.raises(UnknownColumn):
        convert(config, _rows(config))


def test_preamble_is_skipped_and_row_numbers_count_it(scenario_config_text):
    config = parse_config(scenario_config_text.replace("  has_header: true\n", "  has_header: true\n  skip: 2\n"))
    text = "Bank export\nAccount 123\n" + CSV_TEXT
    result = convert(config, _rows(config, text))
    assert result.text == SALARY + "\n" + COFFEE
    assert [e.row_number for e in result.rendered] == [4, 5]


def test_headerless_positional_config():
    config = parse_config(
        textwrap.dedent(
            """
            settings:
              delimiter: ";"
              date_format: "%d.%m.%Y"
              decimal_separator: ","
            input:
              date: {column: 0, kind: date}
              narration: 1
              amount: {column: 2, kind: amount}
              currency: 3
            output:
              flag: "*"
              narration: "{{narration}}"
              postings:
                - account: Assets:Bank
                  amount: "{{amount}} {{currency}}"
                - account: Expenses:Unknown
            """
        )
    )
    rows = CsvRowSource.from_text("03.01.2024;Salary;1500,00;EUR\n", config.settings)
    assert convert(config, rows).text == (
        '2024-01-03 * "Salary"\n  Assets:Bank  1500.00 EUR\n  Expenses:Unknown\n'
    )


def test_empty_input_produces_empty_output(config):
    result = convert(config, _rows(config, ""))
    assert result.text == ""
    assert result.rendered == ()


def test_unknown_template_label_warns_once_and_fails_rows(scenario_config_text, caplog):
    caplog.set_level(logging.WARNING)
    config = parse_config(scenario_config_text.replace('narration: "{{desc}}"', 'narration: "{{memo}}"'))
    result = convert(config, _rows(config))
    assert result.text == ""
    assert result.summary.counts() == [("UnknownPlaceholder", "memo", 2)]
    warnings = [r for r in caplog.records if "not declared in input" in r.getMessage()]
    assert len(warnings) == 1
