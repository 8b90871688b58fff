"""
Entry points of the Squirrel toolchain: source text in, formatted text or
diagnostics out. Every call lexes and parses afresh and shares no state with
other calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from lark import Tree

from .analyzer import analyze_tree
from .diagnostics import Diagnostic, sort_diagnostics
from .formatter import FormatOptions, format_tree
from .parser_rd import parse_source

logger = logging.getLogger(__name__)


@dataclass
class ParsedDocument:
    source: str
    tree: Tree
    # Lex and syntax errors, ordered by position
    diagnostics: List[Diagnostic]

    @property
    def has_errors(self) -> bool:
        return bool(self.diagnostics)


def parse_document(source: str) -> ParsedDocument:
    tree, diagnostics = parse_source(source)
    return ParsedDocument(source, tree, diagnostics)


def format_source(source: str, options: Optional[FormatOptions] = None) -> str:
    """Canonical text for source; malformed regions are echoed unchanged"""
    doc = parse_document(source)

    try:
        text = format_tree(doc.tree, source, options)
    except RecursionError:
        logger.debug("nesting too deep to format, returning input unchanged")
        return source

    logger.debug("formatted %d chars into %d chars", len(source), len(text))
    return text


def format_or_diagnostics(
    source: str,
    options: Optional[FormatOptions] = None,
    strict: bool = True,
) -> Union[str, List[Diagnostic]]:
    """Like format_source, but with strict set a source with lex or syntax
    errors yields those diagnostics instead of text."""
    doc = parse_document(source)
    if strict and doc.has_errors:
        return doc.diagnostics

    try:
        return format_tree(doc.tree, source, options)
    except RecursionError:
        return source


def analyze(source: str, known_globals: Iterable[str] = ()) -> List[Diagnostic]:
    """All diagnostics for source: lex, syntax and semantic, by position"""
    doc = parse_document(source)
    semantic = analyze_tree(doc.tree, known_globals)

    logger.debug("%d syntax and %d semantic diagnostics", len(doc.diagnostics), len(semantic))
    return sort_diagnostics(doc.diagnostics + semantic)
