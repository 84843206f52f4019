"""Content parsers producing ParsedContent units."""

from .narrative import NarrativeParser
from .structured import StructuredSpecParser

__all__ = ["NarrativeParser", "StructuredSpecParser"]
