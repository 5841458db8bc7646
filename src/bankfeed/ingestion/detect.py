"""Deterministic statement format detection based on parser-owned rules."""

from __future__ import annotations

from typing import Optional

from bankfeed.core.errors import EmptyStatement
from bankfeed.core.models import StatementFormat
from bankfeed.ingestion.base import BaseParser, StatementInput, read_head
from bankfeed.ingestion.registry import ParserRegistry


def _iter_parsers_in_order() -> list[tuple[str, type[BaseParser]]]:
    return [(name, ParserRegistry.get(name)) for name in ParserRegistry.names()]


def detect_format(raw: StatementInput, filename: Optional[str] = None) -> StatementFormat:
    """Pick the statement format by ordered first-match over parser probes.

    Parsers with a higher ``detection_priority`` are probed first, so the
    OFX check on content wins over the permissive CSV fallback.

    Raises:
        EmptyStatement: no parser recognises the input
    """
    head = read_head(raw)
    for _, parser_cls in _iter_parsers_in_order():
        probe = parser_cls().probe(head, filename)
        if probe.matched:
            return parser_cls.format
    raise EmptyStatement("unrecognised statement format")


def parser_for(fmt: StatementFormat, *, strict: bool = False) -> BaseParser:
    """Instantiate the registered parser for ``fmt``."""
    for _, parser_cls in _iter_parsers_in_order():
        if parser_cls.format == fmt:
            return parser_cls(strict=strict)
    raise KeyError(f"no parser registered for {fmt.value}")
