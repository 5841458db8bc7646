"""Base classes for statement parsers."""

from __future__ import annotations

import codecs
import io
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import IO, Any, Optional, Union

from bankfeed.core.errors import ParseError, StructuralError
from bankfeed.core.models import StatementFormat
from bankfeed.ingestion.profiles import CsvProfile


StatementInput = Union[bytes, bytearray, memoryview, str, IO[bytes]]


@dataclass(frozen=True)
class RawRecord:
    """One parsed row: canonical field name to raw string value."""

    values: Mapping[str, str]
    line_number: int
    source: Optional[str] = None

    def get(self, field_name: str, default: str = "") -> str:
        value = self.values.get(field_name)
        return default if value is None else value

    def __contains__(self, field_name: object) -> bool:
        return field_name in self.values

    @classmethod
    def from_values(
        cls, values: Mapping[str, str], line_number: int, source: Optional[str] = None
    ) -> "RawRecord":
        return cls(values=MappingProxyType(dict(values)), line_number=line_number, source=source)


RowResult = Union[RawRecord, ParseError]


class RecordStream:
    """Lazy, single-pass stream of parsed rows.

    Yields ``RawRecord`` for readable rows and ``ParseError`` instances for
    rows that could not be read. A ``StructuralError`` is always the last
    item; ``stopped_at`` then holds its line number. In strict mode the
    underlying parser raises instead of yielding, and the stream records
    the stopping point before re-raising.
    """

    def __init__(self, rows: Iterator[RowResult], source: Optional[str] = None) -> None:
        self._rows = rows
        self.source = source
        self.stopped_at: Optional[int] = None
        self.stop_error: Optional[ParseError] = None
        self.exhausted = False
        self.records_read = 0

    def __iter__(self) -> "RecordStream":
        return self

    def __next__(self) -> RowResult:
        if self.exhausted:
            raise StopIteration
        try:
            item = next(self._rows)
        except StopIteration:
            self.exhausted = True
            raise
        except ParseError as exc:
            self.exhausted = True
            self._mark_stop(exc)
            raise

        if isinstance(item, StructuralError):
            self._mark_stop(item)
        elif isinstance(item, RawRecord):
            self.records_read += 1
        return item

    def _mark_stop(self, error: ParseError) -> None:
        self.stopped_at = error.line_number
        self.stop_error = error

    @property
    def complete(self) -> bool:
        """True once the stream ran to the end of the file without stopping early."""
        return self.exhausted and self.stop_error is None


def iter_text_lines(raw: StatementInput, encoding: str = "utf-8-sig") -> Iterator[str]:
    """Yield decoded lines, line endings included, without reading ahead.

    Decoding happens line by line so an undecodable byte surfaces as a
    ``UnicodeDecodeError`` only after every earlier line was yielded.
    """
    if isinstance(raw, str):
        yield from io.StringIO(raw, newline="")
        return
    if isinstance(raw, (bytes, bytearray, memoryview)):
        raw = io.BytesIO(bytes(raw))

    decoder = codecs.getincrementaldecoder(encoding)()
    for chunk in _iter_byte_lines(raw):
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


_BYTE_LINE_RE = re.compile(rb"[^\r\n]*(?:\r\n|\r|\n)")


def _iter_byte_lines(stream: IO[bytes], size: int = 65536) -> Iterator[bytes]:
    """Split a binary stream on ``\\r\\n``, ``\\r`` and ``\\n``, endings kept."""
    buffer = b""
    while True:
        chunk = stream.read(size)
        if not chunk:
            break
        buffer += chunk
        pos = 0
        for match in _BYTE_LINE_RE.finditer(buffer):
            # A trailing CR may be the first half of a CRLF in the next chunk
            if match.end() == len(buffer) and buffer.endswith(b"\r"):
                break
            yield match.group(0)
            pos = match.end()
        buffer = buffer[pos:]
    if buffer:
        yield buffer


def read_head(raw: StatementInput, size: int = 2048) -> str:
    """Return the first ``size`` characters of the input for probing."""
    if isinstance(raw, str):
        return raw[:size]
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw[:size]).decode("utf-8", errors="replace")
    if hasattr(raw, "peek"):
        return raw.peek(size)[:size].decode("utf-8", errors="replace")
    if raw.seekable():
        position = raw.tell()
        head = raw.read(size)
        raw.seek(position)
        return head.decode("utf-8", errors="replace")
    return ""


@dataclass
class ParserProbeResult:
    """Result of lightweight parser relevance probing."""

    matched: bool
    reason: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseParser(ABC):
    """Abstract base class for statement parsers.

    Parsers turn raw statement input into a ``RecordStream`` of canonical
    field values. They never normalize values; that is the normalizer's job.
    """

    format: StatementFormat
    description: str = "Base parser"
    supported_formats: list[str] = []
    requires_profile: bool = False
    detection_priority: int = 50  # higher = probed first
    parser_version: str = "1.0"

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    @abstractmethod
    def parse(
        self,
        raw: StatementInput,
        profile: Optional[CsvProfile] = None,
        *,
        source: Optional[str] = None,
    ) -> RecordStream:
        """Parse statement input into a lazy stream of rows.

        Args:
            raw: Statement bytes, text or binary stream
            profile: Resolved provider profile, for formats that need one
            source: Label attached to every record for provenance

        Returns:
            RecordStream yielding RawRecord or ParseError items

        Raises:
            ParseError: when the file as a whole cannot be parsed
        """

    @abstractmethod
    def can_parse(self, head: str, filename: Optional[str] = None) -> bool:
        """Cheap check on the start of the file and its name."""

    @abstractmethod
    def normalization_profile(self, profile: Optional[CsvProfile] = None) -> CsvProfile:
        """Profile the normalizer should use for records from this parser."""

    def probe(self, head: str, filename: Optional[str] = None) -> ParserProbeResult:
        """Uniform detection interface used by format detection."""
        try:
            matched = self.can_parse(head, filename)
            return ParserProbeResult(matched=matched, reason="can_parse")
        except Exception as exc:  # noqa: BLE001
            return ParserProbeResult(matched=False, reason=f"probe_error:{exc}")

    @classmethod
    def get_metadata(cls) -> dict[str, Any]:
        return {
            "format": cls.format.value,
            "description": cls.description,
            "supported_formats": list(cls.supported_formats),
            "requires_profile": cls.requires_profile,
            "detection_priority": cls.detection_priority,
            "parser_version": cls.parser_version,
        }
