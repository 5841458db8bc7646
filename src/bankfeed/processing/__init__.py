"""Normalization, deduplication and reporting of parsed statements."""

from .checksum import compute_checksum, normalize_description
from .deduplicator import dedupe, group_duplicates, select_canonical
from .normalizer import normalize, normalize_all, parse_amount, parse_date
from .pipeline import Diagnostic, StatementResult, StatementSource, ingest_statement
from .reporter import duplicate_set_labels, report

__all__ = [
    "compute_checksum",
    "normalize_description",
    "dedupe",
    "group_duplicates",
    "select_canonical",
    "normalize",
    "normalize_all",
    "parse_amount",
    "parse_date",
    "Diagnostic",
    "StatementResult",
    "StatementSource",
    "ingest_statement",
    "duplicate_set_labels",
    "report",
]
