"""Core module - canonical models, errors and settings."""

from bankfeed.core.errors import (
    BankfeedError,
    EmptyStatement,
    InvalidAmount,
    InvalidCurrency,
    InvalidDate,
    InvalidProfileFormat,
    MalformedRow,
    MissingColumn,
    MissingRequiredField,
    MissingValue,
    NormalizationError,
    ParseError,
    ProfileError,
    StructuralError,
)
from bankfeed.core.models import (
    DedupeMetrics,
    DedupeOutcome,
    DuplicateGroup,
    NormalizedBankTransaction,
    StatementFormat,
    TieBreak,
)

__all__ = [
    "BankfeedError",
    "EmptyStatement",
    "InvalidAmount",
    "InvalidCurrency",
    "InvalidDate",
    "InvalidProfileFormat",
    "MalformedRow",
    "MissingColumn",
    "MissingRequiredField",
    "MissingValue",
    "NormalizationError",
    "ParseError",
    "ProfileError",
    "StructuralError",
    "DedupeMetrics",
    "DedupeOutcome",
    "DuplicateGroup",
    "NormalizedBankTransaction",
    "StatementFormat",
    "TieBreak",
]
