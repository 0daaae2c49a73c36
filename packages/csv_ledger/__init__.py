"""Public interface for the ``csv_ledger`` package.

Symbol re-exports only; see the individual modules for behavior.
"""

from .api import ConvertResult, convert, convert_files
from .config import Configuration, Settings, load_config, parse_config
from .decoder import decode
from .errors import (
    ConfigError,
    CsvLedgerError,
    DecodeError,
    IoFailure,
    RenderError,
    SchemaError,
)
from .ledger import LedgerDocument, merge, parse_ledger, serialize
from .models import DecodedRow, FieldSpec, RenderedEntry, RowFailure, ValueKind
from .render import Renderer
from .row_source import CsvRowSource, RawRow, RowSource
from .schema import resolve
from .templates import JinjaTemplateEngine, TemplateEngine

__all__ = [
    # API
    "convert",
    "convert_files",
    "ConvertResult",
    # Stages
    "resolve",
    "decode",
    "Renderer",
    "parse_ledger",
    "merge",
    "serialize",
    # Capabilities
    "RowSource",
    "CsvRowSource",
    "RawRow",
    "TemplateEngine",
    "JinjaTemplateEngine",
    # Config / models
    "Configuration",
    "Settings",
    "load_config",
    "parse_config",
    "FieldSpec",
    "ValueKind",
    "DecodedRow",
    "RenderedEntry",
    "RowFailure",
    "LedgerDocument",
    # Errors
    "CsvLedgerError",
    "ConfigError",
    "SchemaError",
    "DecodeError",
    "RenderError",
    "IoFailure",
]
