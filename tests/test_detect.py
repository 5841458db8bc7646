"""Tests for statement format detection and the parser registry."""

import io

import pytest

from bankfeed.core.errors import EmptyStatement
from bankfeed.core.models import StatementFormat
from bankfeed.ingestion.detect import detect_format, parser_for
from bankfeed.ingestion.parsers import CsvStatementParser, OfxStatementParser
from bankfeed.ingestion.registry import ParserRegistry


def test_registry_lists_ofx_before_csv():
    assert ParserRegistry.names()[:2] == ["ofx", "csv"]
    meta = ParserRegistry.get_parser_metadata("csv")
    assert meta["requires_profile"] is True
    assert meta["format"] == "csv"


def test_detect_ofx_by_content():
    assert detect_format(b"OFXHEADER:100\n<OFX>") == StatementFormat.OFX


def test_detect_ofx_by_extension():
    assert detect_format(b"", "export.qfx") == StatementFormat.OFX


def test_detect_csv():
    assert detect_format("Date,Amount\n2024-01-01,1.00\n") == StatementFormat.CSV
    assert detect_format(b"anything", "statement.txt") == StatementFormat.CSV


def test_detect_does_not_consume_stream():
    stream = io.BytesIO(b"Date,Amount\n2024-01-01,1.00\n")
    assert detect_format(stream) == StatementFormat.CSV
    assert stream.read().startswith(b"Date,Amount")


def test_undetectable_input():
    with pytest.raises(EmptyStatement):
        detect_format(b"just some words")


def test_parser_for():
    assert isinstance(parser_for(StatementFormat.CSV), CsvStatementParser)
    parser = parser_for(StatementFormat.OFX, strict=True)
    assert isinstance(parser, OfxStatementParser)
    assert parser.strict
