"""Formatter and scope analyzer for Squirrel sources."""

from .diagnostics import Diagnostic, DiagnosticKind, Severity, Span
from .formatter import FormatOptions
from .pipeline import analyze, format_or_diagnostics, format_source, parse_document

format = format_source

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "FormatOptions",
    "Severity",
    "Span",
    "analyze",
    "format",
    "format_or_diagnostics",
    "format_source",
    "parse_document",
]
