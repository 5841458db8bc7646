"""Parse and normalize a single statement, collecting per-row diagnostics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from bankfeed.core.config import settings
from bankfeed.core.errors import (
    BankfeedError,
    NormalizationError,
    ParseError,
    ProfileError,
)
from bankfeed.core.models import NormalizedBankTransaction, StatementFormat
from bankfeed.ingestion.base import StatementInput
from bankfeed.ingestion.detect import detect_format, parser_for
from bankfeed.ingestion.profiles import CsvProfile
from bankfeed.processing.normalizer import normalize


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """A problem found while ingesting one file or one of its rows."""

    source: str
    stage: str
    code: str
    message: str
    line_number: Optional[int] = None

    @classmethod
    def from_error(cls, error: BankfeedError, source: str) -> "Diagnostic":
        return cls(
            source=source,
            stage=error.stage,
            code=error.code,
            message=error.message,
            line_number=error.line_number,
        )

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "stage": self.stage,
            "code": self.code,
            "line_number": self.line_number,
            "message": self.message,
        }


@dataclass
class StatementSource:
    """Raw statement handed over by the ingestion transport."""

    name: str
    data: StatementInput
    provider_id: Optional[str] = None
    format: Optional[StatementFormat] = None


@dataclass(frozen=True)
class StatementResult:
    """Normalized transactions and diagnostics for one statement file."""

    source: str
    format: Optional[StatementFormat]
    transactions: tuple[NormalizedBankTransaction, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    records_read: int = 0
    stopped_at: Optional[int] = None
    complete: bool = False
    failed: bool = False
    metadata: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed and not self.diagnostics

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "format": self.format.value if self.format else None,
            "transactions": len(self.transactions),
            "records_read": self.records_read,
            "stopped_at": self.stopped_at,
            "complete": self.complete,
            "failed": self.failed,
            "diagnostics": len(self.diagnostics),
        }


def _failed(
    source: StatementSource,
    fmt: Optional[StatementFormat],
    error: BankfeedError,
    diagnostics: list[Diagnostic],
    records_read: int = 0,
) -> StatementResult:
    logger.warning("Statement %s failed: %s", source.name, error)
    return StatementResult(
        source=source.name,
        format=fmt,
        diagnostics=tuple(diagnostics) + (Diagnostic.from_error(error, source.name),),
        records_read=records_read,
        stopped_at=error.line_number,
        complete=False,
        failed=True,
    )


def ingest_statement(
    source: StatementSource,
    profile: Optional[CsvProfile] = None,
    *,
    strict: Optional[bool] = None,
) -> StatementResult:
    """Run parse → normalize over one statement.

    Profile and header problems fail the file before any row is normalized.
    Row-level parse and normalization failures become diagnostics. Without
    strict mode a structural stop keeps every record read before it; with
    strict mode any parse error fails the whole file and its records are
    discarded.
    """
    strict = settings.STRICT_PARSING if strict is None else strict
    fmt = source.format
    diagnostics: list[Diagnostic] = []

    try:
        fmt = fmt or detect_format(source.data, source.name)
        parser = parser_for(fmt, strict=strict)
        norm_profile = parser.normalization_profile(profile)
        stream = parser.parse(source.data, norm_profile, source=source.name)
    except (ProfileError, ParseError) as exc:
        return _failed(source, fmt, exc, diagnostics)

    transactions: list[NormalizedBankTransaction] = []
    try:
        for item in stream:
            if isinstance(item, ParseError):
                diagnostics.append(Diagnostic.from_error(item, source.name))
                continue
            try:
                transactions.append(normalize(item, norm_profile))
            except NormalizationError as exc:
                diagnostics.append(Diagnostic.from_error(exc, source.name))
    except ParseError as exc:
        return _failed(source, fmt, exc, diagnostics, stream.records_read)

    if strict and stream.stop_error is not None:
        # The structural error was the stream's last item
        diagnostics.pop()
        return _failed(source, fmt, stream.stop_error, diagnostics, stream.records_read)

    logger.debug(
        "Statement %s: %d records read, %d normalized, %d diagnostics",
        source.name,
        stream.records_read,
        len(transactions),
        len(diagnostics),
    )
    return StatementResult(
        source=source.name,
        format=fmt,
        transactions=tuple(transactions),
        diagnostics=tuple(diagnostics),
        records_read=stream.records_read,
        stopped_at=stream.stopped_at,
        complete=stream.complete,
        metadata={"profile": norm_profile.name},
    )
