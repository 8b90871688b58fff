"""Diagnostic records shared by the lexer, parser and analyzer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, List


class DiagnosticKind(Enum):
    LEX_ERROR = "LexError"
    SYNTAX_ERROR = "SyntaxError"
    UNDECLARED_REFERENCE = "UndeclaredReference"
    UNUSED_LOCAL = "UnusedLocal"
    DUPLICATE_DECLARATION = "DuplicateDeclaration"

    @property
    def is_semantic(self) -> bool:
        return self not in (DiagnosticKind.LEX_ERROR, DiagnosticKind.SYNTAX_ERROR)

    @property
    def code(self) -> str:
        return {
            DiagnosticKind.LEX_ERROR: "lex-error",
            DiagnosticKind.SYNTAX_ERROR: "syntax-error",
            DiagnosticKind.UNDECLARED_REFERENCE: "undeclared-variable",
            DiagnosticKind.UNUSED_LOCAL: "unused-variable",
            DiagnosticKind.DUPLICATE_DECLARATION: "duplicate-declaration",
        }[self]


class Severity(IntEnum):
    # Same numbering as LSP DiagnosticSeverity
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end) plus 1-based start line/column."""

    start: int
    end: int
    line: int = 1
    column: int = 1

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    severity: Severity
    message: str
    span: Span

    @property
    def source(self) -> str:
        return "squirrel-semantic" if self.kind.is_semantic else "squirrel-syntax"

    @property
    def code(self) -> str:
        return self.kind.code

    def __str__(self) -> str:
        return (
            f"{self.span.line}:{self.span.column}: "
            f"{self.severity.name.lower()}: {self.message}"
        )


def sort_diagnostics(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    """Order by ascending source position; ties keep their emission order."""
    return sorted(diagnostics, key=lambda d: (d.span.start, d.span.end))
