"""
Token Types for the Squirrel toolchain

Shared between lexer, parser, formatter and highlighter to avoid circular
dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List


class TT(Enum):
    """Token Types"""

    # Literals
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()
    VERBATIM_STRING = auto()  # @"..."
    CHAR = auto()  # 'a'
    IDENT = auto()

    # Keywords
    LOCAL = auto()
    CONST = auto()
    FUNCTION = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    DO = auto()
    FOR = auto()
    FOREACH = auto()
    IN = auto()
    SWITCH = auto()
    CASE = auto()
    DEFAULT = auto()
    RETURN = auto()
    BREAK = auto()
    CONTINUE = auto()
    TRY = auto()
    CATCH = auto()
    THROW = auto()
    TYPEOF = auto()
    CLONE = auto()
    DELETE = auto()
    RESUME = auto()
    INSTANCEOF = auto()
    THIS = auto()
    BASE = auto()

    # Literal keywords
    NULL = auto()
    TRUE = auto()
    FALSE = auto()

    # Arithmetic
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    MOD = auto()

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()
    CMP3 = auto()  # <=>

    # Logical
    AND = auto()
    OR = auto()
    NOT = auto()  # !

    # Bitwise
    BITAND = auto()
    BITOR = auto()
    BITXOR = auto()
    BITNOT = auto()  # ~
    SHL = auto()
    SHR = auto()
    USHR = auto()  # >>>

    # Assignment
    ASSIGN = auto()  # =
    NEWSLOT = auto()  # <-
    PLUSEQ = auto()
    MINUSEQ = auto()
    STAREQ = auto()
    SLASHEQ = auto()
    MODEQ = auto()
    SHLEQ = auto()
    SHREQ = auto()

    # Increment/Decrement
    INCR = auto()  # ++
    DECR = auto()  # --

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    COMMA = auto()
    COLON = auto()
    SEMI = auto()
    QMARK = auto()
    AT = auto()  # lambda introducer
    DOUBLECOLON = auto()  # root namespace
    ELLIPSIS = auto()  # ...

    # Special
    ERROR = auto()
    EOF = auto()


class TriviaKind(Enum):
    WHITESPACE = auto()
    NEWLINE = auto()
    LINE_COMMENT = auto()
    BLOCK_COMMENT = auto()


COMMENT_KINDS = frozenset({TriviaKind.LINE_COMMENT, TriviaKind.BLOCK_COMMENT})


@dataclass(frozen=True)
class Trivia:
    """Inert source text between tokens"""

    kind: TriviaKind
    text: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def is_comment(self) -> bool:
        return self.kind in COMMENT_KINDS


@dataclass(eq=False)
class Tok:
    """Token with position info and attached trivia.

    ``leading`` holds everything between the previous token's trailing
    trivia and this token; ``trailing`` holds inline whitespace and comments
    on the same line after it, up to (not including) the line break.
    """

    type: TT
    value: str
    start: int = 0
    end: int = 0
    line: int = 0
    column: int = 0
    leading: List[Trivia] = field(default_factory=list)
    trailing: List[Trivia] = field(default_factory=list)

    @property
    def newlines_before(self) -> int:
        return sum(1 for t in self.leading if t.kind is TriviaKind.NEWLINE)

    @property
    def comments(self) -> List[Trivia]:
        return [t for t in self.leading + self.trailing if t.is_comment]

    def full_text(self) -> str:
        """Token text with its trivia, as it appeared in the source."""
        return (
            "".join(t.text for t in self.leading)
            + self.value
            + "".join(t.text for t in self.trailing)
        )

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"
