"""Boundary lexer: delimiter tables and the streaming span parser."""

from todo_origin.lexer.boundaries import Boundary, BoundaryTable, ConfigError
from todo_origin.lexer.languages import LanguageRegistry, load_language_file
from todo_origin.lexer.parser import (
    BoundaryParser,
    Collection,
    Location,
    ParseError,
    parse,
    parse_text,
)

__all__ = [
    "Boundary",
    "BoundaryParser",
    "BoundaryTable",
    "Collection",
    "ConfigError",
    "LanguageRegistry",
    "Location",
    "ParseError",
    "load_language_file",
    "parse",
    "parse_text",
]
