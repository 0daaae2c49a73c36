"""YAML configuration model for ``csv_ledger``.

The document has three sections:

``settings``
    CSV dialect and per-kind parse options (date format, separators,
    negative-number convention) plus output knobs.
``input``
    Ordered mapping ``label -> column``. A bare integer is a positional text
    column and a bare string a header-named text column (the historical
    shape); a mapping spells out ``column``/``kind``/``required``/``trim``/
    ``negate``.
``output``
    The transaction template and its posting templates, rendered in the
    declared order.

Shape validation is done with Pydantic; any failure surfaces as a single
:class:`~csv_ledger.errors.ConfigError`.
"""

from __future__ import annotations

import codecs
from os import PathLike
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError, IoFailure
from .models import FieldSpec, ValueKind

IdentityField = Literal["date", "flag", "payee", "narration", "amount", "accounts"]

DEFAULT_IDENTITY_FIELDS: tuple[IdentityField, ...] = ("date", "narration", "amount")

_RESERVED_LABELS = frozenset(
    {"and", "else", "false", "False", "if", "in", "is", "none", "None", "not", "or", "true", "True"}
)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    delimiter: str = ","
    quote: str = "'"
    skip: int = Field(default=0, ge=0)
    has_header: bool = False
    encoding: str = "utf-8"

    date_format: str
    decimal_separator: str = "."
    thousands_separator: str | None = None
    negative_style: Literal["minus", "parentheses", "both"] = "both"
    currency_symbols: str = "$€£"
    trim: bool = False

    amount_decimals: int = Field(default=2, ge=0, le=12)
    currency: str | None = None
    identity_fields: tuple[IdentityField, ...] = DEFAULT_IDENTITY_FIELDS
    # Without an append target: order output by date (true) or keep CSV order.
    sort_output: bool = True

    @field_validator("delimiter", "quote", "decimal_separator")
    @classmethod
    def _single_char(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("must be exactly one character")
        return v

    @field_validator("thousands_separator")
    @classmethod
    def _optional_single_char(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        if len(v) != 1:
            raise ValueError("must be exactly one character")
        return v

    @field_validator("identity_fields")
    @classmethod
    def _identity_non_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("at least one identity field is required")
        if len(set(v)) != len(v):
            raise ValueError("identity fields must be unique")
        return v

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError as e:
            raise ValueError(f"unknown encoding {v!r}") from e
        return v


class InputField(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    column: str | int
    kind: ValueKind = ValueKind.TEXT
    required: bool = True
    trim: bool | None = None
    negate: bool = False

    @field_validator("kind", mode="before")
    @classmethod
    def _kind_casefold(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("column")
    @classmethod
    def _column_valid(cls, v: str | int) -> str | int:
        if isinstance(v, bool):
            raise ValueError("column must be a header name or a non-negative index")
        if isinstance(v, int) and v < 0:
            raise ValueError("column index must be non-negative")
        if isinstance(v, str) and not v.strip():
            raise ValueError("column name must be non-empty")
        return v


class PostingTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    account: str
    flag: str | None = None
    amount: str | None = None
    cost: str | None = None
    price: str | None = None
    # Drop the posting when its amount renders empty / to zero.
    skip_if_empty: bool = False
    skip_if_zero: bool = False


class TransactionTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str = "{{date}}"
    flag: str = "!"
    payee: str | None = None
    narration: str
    tags: str | None = None
    links: str | None = None
    postings: tuple[PostingTemplate, ...] = Field(min_length=1)


class Configuration(BaseModel):
    """Top-level configuration document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    settings: Settings
    input: dict[str, InputField]
    output: TransactionTemplate

    @field_validator("input", mode="before")
    @classmethod
    def _expand_shorthand(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        expanded: dict[str, Any] = {}
        for label, spec in v.items():
            if isinstance(spec, (int, str)) and not isinstance(spec, bool):
                expanded[str(label)] = {"column": spec}
            else:
                expanded[str(label)] = spec
        return expanded

    @field_validator("input")
    @classmethod
    def _input_non_empty(cls, v: dict[str, InputField]) -> dict[str, InputField]:
        if not v:
            raise ValueError("at least one input column is required")
        for label in v:
            # Labels are template variable names: {{pay-ee}} would read as pay - ee.
            if not label.isidentifier() or label in _RESERVED_LABELS:
                raise ValueError(
                    f"label {label!r} must be a name made of letters, digits and "
                    "underscores, not starting with a digit or being a template keyword"
                )
        return v

    def field_schema(self) -> tuple[FieldSpec, ...]:
        """Return the input section as an ordered :data:`FieldSchema`."""

        return tuple(
            FieldSpec(
                label=label,
                column=spec.column,
                kind=spec.kind,
                required=spec.required,
                trim=spec.trim,
                negate=spec.negate,
            )
            for label, spec in self.input.items()
        )


def _format_validation_error(err: ValidationError) -> str:
    parts: list[str] = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg')}" if loc else str(e.get("msg")))
    return "; ".join(parts)


def parse_config(text: str, *, source: str = "<config>") -> Configuration:
    """Parse and validate a YAML configuration document."""

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        # PyYAML messages span several lines; diagnostics are one line.
        detail = " ".join(str(e).split())
        raise ConfigError(f"{source}: invalid YAML: {detail}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: expected a mapping at top level")
    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{source}: {_format_validation_error(e)}") from e


def load_config(path: str | PathLike[str]) -> Configuration:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise IoFailure(p, e) from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"{p}: not valid UTF-8 ({e.reason} at byte {e.start})") from e
    return parse_config(text, source=str(p))


__all__ = [
    "Configuration",
    "Settings",
    "InputField",
    "PostingTemplate",
    "TransactionTemplate",
    "IdentityField",
    "DEFAULT_IDENTITY_FIELDS",
    "parse_config",
    "load_config",
]
