"""Profile-driven CSV statement parser."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator, Mapping
from typing import Optional

from bankfeed.core.errors import (
    EmptyStatement,
    InvalidProfileFormat,
    MalformedRow,
    MissingColumn,
    StructuralError,
)
from bankfeed.core.models import StatementFormat
from bankfeed.ingestion.base import (
    BaseParser,
    RawRecord,
    RecordStream,
    RowResult,
    StatementInput,
    iter_text_lines,
)
from bankfeed.ingestion.profiles import ColumnRef, CsvProfile
from bankfeed.ingestion.registry import ParserRegistry


logger = logging.getLogger(__name__)


def _clean_header(header: list[str]) -> list[str]:
    return [h.replace("\ufeff", "").strip().casefold() for h in header]


def resolve_positions(header: list[str], profile: CsvProfile) -> dict[str, int]:
    """Map each canonical field in the profile onto a header position.

    Names match case-insensitively; integer mappings are zero-based indexes.
    Required fields must resolve; optional fields missing from this file are
    left out.

    Raises:
        MissingColumn: a required column is absent from the header
    """
    cleaned = _clean_header(header)
    required = set(profile.required_fields)
    positions: dict[str, int] = {}

    for field_name, column in profile.column_mapping.items():
        position = _find_position(cleaned, column)
        if position is None:
            if field_name in required:
                raise MissingColumn(field_name, column)
            logger.debug("Optional column %r for %s not in header", column, field_name)
            continue
        positions[field_name] = position
    return positions


def _find_position(cleaned_header: list[str], column: ColumnRef) -> Optional[int]:
    if isinstance(column, int):
        return column if column < len(cleaned_header) else None
    wanted = column.strip().casefold()
    for idx, name in enumerate(cleaned_header):
        if name == wanted:
            return idx
    return None


@ParserRegistry.register("csv")
class CsvStatementParser(BaseParser):
    """Parser for CSV exports (including PDF-derived CSV) using provider profiles."""

    format = StatementFormat.CSV
    description = "Profile-mapped CSV bank statement"
    supported_formats = ["csv", "txt"]
    requires_profile = True
    detection_priority = 10

    def can_parse(self, head: str, filename: Optional[str] = None) -> bool:
        if filename and filename.lower().endswith((".csv", ".txt")):
            return True
        first_line = head.lstrip("\ufeff").splitlines()[0] if head.strip() else ""
        return "," in first_line or ";" in first_line or "\t" in first_line

    def normalization_profile(self, profile: Optional[CsvProfile] = None) -> CsvProfile:
        if profile is None:
            raise InvalidProfileFormat("CSV statements require a provider profile")
        return profile

    def parse(
        self,
        raw: StatementInput,
        profile: Optional[CsvProfile] = None,
        *,
        source: Optional[str] = None,
    ) -> RecordStream:
        profile = self.normalization_profile(profile)
        reader = csv.reader(
            iter_text_lines(raw, profile.encoding),
            delimiter=profile.delimiter,
            strict=True,
        )

        header = self._read_header(reader)
        positions = resolve_positions(header, profile)
        logger.debug(
            "CSV header for %s resolved with profile %s: %s",
            source or "<input>",
            profile.name,
            positions,
        )
        return RecordStream(self._iter_rows(reader, len(header), positions, source), source=source)

    @staticmethod
    def _read_header(reader) -> list[str]:
        """Return the first non-blank row; blank leading lines are skipped."""
        try:
            for row in reader:
                if any(cell.strip() for cell in row):
                    return row
        except (csv.Error, UnicodeDecodeError) as exc:
            raise StructuralError(max(reader.line_num, 1), str(exc)) from exc
        raise EmptyStatement("statement has no header row")

    def _iter_rows(
        self,
        reader,
        width: int,
        positions: Mapping[str, int],
        source: Optional[str],
    ) -> Iterator[RowResult]:
        while True:
            # Quoted fields may span lines; report where the record starts
            line_number = reader.line_num + 1
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                yield StructuralError(reader.line_num, str(exc))
                return
            except UnicodeDecodeError as exc:
                # Undecodable bytes sit past the last line the reader consumed
                yield StructuralError(reader.line_num + 1, str(exc))
                return

            if not any(cell.strip() for cell in row):
                continue

            if len(row) != width:
                error = MalformedRow(
                    line_number, f"expected {width} columns, found {len(row)}"
                )
                if self.strict:
                    raise error
                yield error
                continue

            values = {field_name: row[idx].strip() for field_name, idx in positions.items()}
            yield RawRecord.from_values(values, line_number=line_number, source=source)
