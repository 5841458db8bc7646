"""
Parser auto-discovery module.

Every module in this directory is imported on package import, and parsers
self-register via the @ParserRegistry.register decorator. Adding a format
means adding a module here; nothing else needs to change.
"""

import importlib
import warnings
from pathlib import Path

_parsers_dir = Path(__file__).parent

_parser_modules = []

for file_path in sorted(_parsers_dir.glob("*.py")):
    # Skip __init__.py and any private files
    if file_path.stem == "__init__" or file_path.stem.startswith("_"):
        continue

    module_name = f"bankfeed.ingestion.parsers.{file_path.stem}"

    try:
        module = importlib.import_module(module_name)
        _parser_modules.append(module)
    except ImportError as e:
        warnings.warn(f"Failed to import parser module {module_name}: {e}")

from .csv_statement import CsvStatementParser
from .ofx import OfxStatementParser

__all__ = [
    "CsvStatementParser",
    "OfxStatementParser",
]
