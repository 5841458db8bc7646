"""Error hierarchy for profile resolution, parsing and normalization.

Every error carries a stable ``code`` so callers can turn exceptions into
diagnostics without string matching. Row-level errors also carry the
``line_number`` they refer to.
"""

from __future__ import annotations

from typing import Optional


class BankfeedError(Exception):
    """Base class for all bankfeed errors."""

    code: str = "error"
    stage: str = "ingest"

    def __init__(self, message: str, *, line_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "code": self.code,
            "line_number": self.line_number,
            "message": self.message,
        }


# ---- Profile errors ----


class ProfileError(BankfeedError):
    """Invalid or incomplete provider mapping configuration."""

    code = "profile_error"
    stage = "profile"


class MissingRequiredField(ProfileError):
    code = "missing_required_field"

    def __init__(self, field: str) -> None:
        super().__init__(f"profile has no mapping for required field {field!r}")
        self.field = field


class InvalidProfileFormat(ProfileError):
    code = "invalid_profile_format"


# ---- Parse errors ----


class ParseError(BankfeedError):
    """Structural problem with a statement file or one of its rows."""

    code = "parse_error"
    stage = "parse"


class MissingColumn(ParseError):
    code = "missing_column"

    def __init__(self, field: str, column: str | int) -> None:
        super().__init__(
            f"column {column!r} mapped to {field!r} not found in header",
            line_number=1,
        )
        self.field = field
        self.column = column


class EmptyStatement(ParseError):
    code = "empty_statement"


class MalformedRow(ParseError):
    """A single row that cannot be read; parsing continues after it."""

    code = "malformed_row"

    def __init__(self, line_number: int, detail: str = "") -> None:
        message = f"malformed row at line {line_number}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, line_number=line_number)


class StructuralError(ParseError):
    """The file cannot be read past this point."""

    code = "structural_error"

    def __init__(self, line_number: int, detail: str = "") -> None:
        message = f"unreadable content at line {line_number}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, line_number=line_number)


# ---- Normalization errors ----


class NormalizationError(BankfeedError):
    """A parsed record failed conversion to the canonical schema."""

    code = "normalization_error"
    stage = "normalize"


class InvalidAmount(NormalizationError):
    code = "invalid_amount"


class InvalidCurrency(NormalizationError):
    code = "invalid_currency"


class InvalidDate(NormalizationError):
    code = "invalid_date"


class MissingValue(NormalizationError):
    code = "missing_value"
