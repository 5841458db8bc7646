"""OFX/QFX statement parser (SGML 1.x and XML 2.x bodies).

OFX embeds its own schema, so no provider profile is needed. Transactions
live in ``<STMTTRN>`` blocks; the account (``ACCTID``) and default currency
(``CURDEF``) are declared once per statement and carried into each block.
SGML bodies leave leaf elements unclosed, so the scanner works on tags and
the text that follows them rather than on a document tree.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Iterator
from types import MappingProxyType
from typing import Optional

from bankfeed.core.config import settings
from bankfeed.core.errors import EmptyStatement, MalformedRow, StructuralError
from bankfeed.core.models import StatementFormat
from bankfeed.ingestion.base import (
    BaseParser,
    RawRecord,
    RecordStream,
    RowResult,
    StatementInput,
)
from bankfeed.ingestion.profiles import CsvProfile, compile_date_format
from bankfeed.ingestion.registry import ParserRegistry


logger = logging.getLogger(__name__)

_ROOT_RE = re.compile(r"<OFX>", re.IGNORECASE)
_TAG_RE = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9._]*)>")
_DIGITS_RE = re.compile(r"^\d+")

OFX_FIELDS = (
    "transaction_id",
    "account_id",
    "posted_date",
    "transaction_date",
    "amount",
    "currency",
    "description",
    "source_reference",
    "void",
)

# Aggregates whose end also ends an unclosed SGML STMTTRN
_TRANSACTION_CONTAINERS = {"BANKTRANLIST", "STMTRS", "CCSTMTRS", "OFX"}


def decode_ofx(raw: StatementInput) -> str:
    """Decode OFX bytes; 1.x files without UTF-8 content default to cp1252."""
    if isinstance(raw, str):
        return raw
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raw = raw.read()
    data = bytes(raw)
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def ofx_date(raw: str) -> str:
    """Keep the ``YYYYMMDD`` part of an OFX datetime like ``20240105120000[-5:EST]``."""
    match = _DIGITS_RE.match(raw.strip())
    if match and len(match.group(0)) >= 8:
        return match.group(0)[:8]
    return raw.strip()


class _StrayMarkup(Exception):
    def __init__(self, line_number: int) -> None:
        super().__init__(line_number)
        self.line_number = line_number


def _iter_tags(text: str, start: int) -> Iterator[tuple[int, bool, str, str]]:
    """Yield ``(line_number, closing, TAG, text_after_tag)`` from ``start``.

    Raises:
        _StrayMarkup: a ``<`` that does not open a tag, comment or
            processing instruction
    """
    pos = start
    line = 1 + text.count("\n", 0, start)
    while True:
        lt = text.find("<", pos)
        if lt == -1:
            return
        line += text.count("\n", pos, lt)
        pos = lt

        if text.startswith("<!--", lt) or text.startswith("<?", lt):
            closer = "-->" if text.startswith("<!--", lt) else "?>"
            end = text.find(closer, lt)
            if end == -1:
                raise _StrayMarkup(line)
            end += len(closer)
            line += text.count("\n", lt, end)
            pos = end
            continue

        match = _TAG_RE.match(text, lt)
        if not match:
            raise _StrayMarkup(line)
        next_lt = text.find("<", match.end())
        value_end = len(text) if next_lt == -1 else next_lt
        value = html.unescape(text[match.end():value_end]).strip()
        yield line, bool(match.group(1)), match.group(2).upper(), value
        pos = match.end()


@ParserRegistry.register("ofx")
class OfxStatementParser(BaseParser):
    """Parser for OFX and QFX bank/credit-card statements."""

    format = StatementFormat.OFX
    description = "OFX/QFX bank statement"
    supported_formats = ["ofx", "qfx"]
    requires_profile = False
    detection_priority = 60

    def __init__(self, strict: bool = False, amount_minor_factor: Optional[int] = None) -> None:
        super().__init__(strict=strict)
        self.amount_minor_factor = amount_minor_factor or settings.DEFAULT_AMOUNT_MINOR_FACTOR
        self._profile = CsvProfile(
            name="ofx",
            column_mapping=MappingProxyType({name: name for name in OFX_FIELDS}),
            date_format="YYYYMMDD",
            strptime_format=compile_date_format("YYYYMMDD"),
            amount_minor_factor=self.amount_minor_factor,
        )

    def can_parse(self, head: str, filename: Optional[str] = None) -> bool:
        if filename and filename.lower().endswith((".ofx", ".qfx")):
            return True
        upper = head.upper()
        return "OFXHEADER" in upper or "<OFX>" in upper

    def normalization_profile(self, profile: Optional[CsvProfile] = None) -> CsvProfile:
        # OFX ignores provider profiles; the schema is fixed
        return self._profile

    def parse(
        self,
        raw: StatementInput,
        profile: Optional[CsvProfile] = None,
        *,
        source: Optional[str] = None,
    ) -> RecordStream:
        text = decode_ofx(raw)
        root = _ROOT_RE.search(text)
        if not root:
            raise EmptyStatement("payload has no <OFX> root element")
        logger.debug("OFX root found at offset %d in %s", root.start(), source or "<input>")
        return RecordStream(self._iter_rows(text, root.start(), source), source=source)

    def _iter_rows(self, text: str, start: int, source: Optional[str]) -> Iterator[RowResult]:
        account_id = ""
        currency = ""
        current: Optional[dict[str, str]] = None
        current_account = ""
        current_line = 0
        currency_context: Optional[str] = None

        tags = _iter_tags(text, start)
        while True:
            try:
                line, closing, tag, value = next(tags)
            except StopIteration:
                break
            except _StrayMarkup as exc:
                if current is not None:
                    yield self._build(current, current_account, currency, current_line, source)
                yield StructuralError(exc.line_number, "stray '<' outside a tag")
                return

            if tag == "STMTTRN":
                if current is not None:
                    yield self._build(current, current_account, currency, current_line, source)
                if closing:
                    current = None
                else:
                    current = {}
                    current_account = account_id
                    current_line = line
                continue

            if closing:
                if tag in ("CURRENCY", "ORIGCURRENCY"):
                    currency_context = None
                elif tag in _TRANSACTION_CONTAINERS and current is not None:
                    yield self._build(current, current_account, currency, current_line, source)
                    current = None
                continue

            if tag in ("CURRENCY", "ORIGCURRENCY"):
                if not value:
                    currency_context = tag
                elif tag == "CURRENCY":
                    if current is not None:
                        current["CURRENCY"] = value
                    else:
                        currency = value
                continue

            if tag == "CURSYM":
                # ORIGCURRENCY amounts are already converted into CURDEF
                if currency_context == "CURRENCY" and current is not None:
                    current["CURRENCY"] = value
                continue

            if current is not None:
                if value:
                    current.setdefault(tag, value)
                continue

            if tag == "ACCTID" and value:
                account_id = value
            elif tag == "CURDEF" and value:
                currency = value

        if current is not None:
            yield self._build(current, current_account, currency, current_line, source)

    def _build(
        self,
        fields: dict[str, str],
        account_id: str,
        currency: str,
        line_number: int,
        source: Optional[str],
    ) -> RowResult:
        missing = [tag for tag in ("TRNAMT", "DTPOSTED") if not fields.get(tag)]
        if missing:
            error = MalformedRow(line_number, f"STMTTRN missing {', '.join(missing)}")
            if self.strict:
                raise error
            return error

        values = {
            "account_id": account_id,
            "amount": fields["TRNAMT"],
            "posted_date": ofx_date(fields["DTPOSTED"]),
            "currency": fields.get("CURRENCY") or currency,
            "description": fields.get("NAME") or fields.get("MEMO") or "",
            "void": "true" if fields.get("TRNTYPE", "").upper() == "VOID" else "false",
        }
        if fields.get("FITID"):
            values["transaction_id"] = fields["FITID"]
        if fields.get("DTUSER"):
            values["transaction_date"] = ofx_date(fields["DTUSER"])
        reference = fields.get("CHECKNUM") or fields.get("REFNUM")
        if reference:
            values["source_reference"] = reference
        return RawRecord.from_values(values, line_number=line_number, source=source)
