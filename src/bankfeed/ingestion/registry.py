"""Registry for statement parsers."""
from typing import Dict, Type, List, Any
from bankfeed.ingestion.base import BaseParser

class ParserRegistry:
    _parsers: Dict[str, Type[BaseParser]] = {}

    @classmethod
    def register(cls, name: str):
        """Decorator to register a parser."""
        def decorator(parser_cls: Type[BaseParser]):
            cls._parsers[name] = parser_cls
            return parser_cls
        return decorator

    @classmethod
    def get(cls, name: str) -> Type[BaseParser]:
        """Get a parser class by name."""
        return cls._parsers[name]

    @classmethod
    def names(cls) -> List[str]:
        """Registered names, highest detection priority first."""
        return sorted(
            cls._parsers,
            key=lambda name: (-cls._parsers[name].detection_priority, name),
        )

    @classmethod
    def list_parsers(cls) -> List[Dict[str, Any]]:
        """List all available parsers with metadata."""
        return [cls.get_parser_metadata(name) for name in cls.names()]

    @classmethod
    def get_parser_metadata(cls, name: str) -> Dict[str, Any]:
        """Get full metadata for a specific parser.

        Raises:
            KeyError: If parser not found
        """
        parser = cls.get(name)
        return {
            "name": name,
            **parser.get_metadata(),
        }
