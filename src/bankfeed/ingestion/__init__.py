"""Ingestion module for parsing statement exports."""

from .base import BaseParser, RawRecord, RecordStream
from .detect import detect_format, parser_for
from .parsers import CsvStatementParser, OfxStatementParser
from .profiles import CsvProfile, resolve_profile

__all__ = [
    "BaseParser",
    "RawRecord",
    "RecordStream",
    "CsvProfile",
    "resolve_profile",
    "detect_format",
    "parser_for",
    "CsvStatementParser",
    "OfxStatementParser",
]
