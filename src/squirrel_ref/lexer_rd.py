"""
Lexer for Squirrel - Recursive Descent Parser

Tokenizes Squirrel source code into a stream of tokens.

Features:
- Single-pass tokenization
- Lossless: every character of the input ends up either in a token or in
  the trivia attached to one
- Position tracking (offset, line, column)
- Error tokens instead of exceptions for malformed input
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .diagnostics import Diagnostic, DiagnosticKind, Severity, Span
from .token_types import TT, Tok, Trivia, TriviaKind

logger = logging.getLogger(__name__)

# ============================================================================
# Lexer Implementation
# ============================================================================

_VALID_ESCAPES = set("tabnrvf0\\\"'xuU")


class Lexer:
    """
    Squirrel lexer with trivia attachment.

    Whitespace and comments that follow a token on the same line become that
    token's trailing trivia; everything from the first line break onward is
    collected as leading trivia of the next token.
    """

    # Keyword mapping
    KEYWORDS = {
        'local': TT.LOCAL,
        'const': TT.CONST,
        'function': TT.FUNCTION,
        'if': TT.IF,
        'else': TT.ELSE,
        'while': TT.WHILE,
        'do': TT.DO,
        'for': TT.FOR,
        'foreach': TT.FOREACH,
        'in': TT.IN,
        'switch': TT.SWITCH,
        'case': TT.CASE,
        'default': TT.DEFAULT,
        'return': TT.RETURN,
        'break': TT.BREAK,
        'continue': TT.CONTINUE,
        'try': TT.TRY,
        'catch': TT.CATCH,
        'throw': TT.THROW,
        'typeof': TT.TYPEOF,
        'clone': TT.CLONE,
        'delete': TT.DELETE,
        'resume': TT.RESUME,
        'instanceof': TT.INSTANCEOF,
        'this': TT.THIS,
        'base': TT.BASE,
        'null': TT.NULL,
        'true': TT.TRUE,
        'false': TT.FALSE,
    }

    # Operator mapping: longest matches first to handle prefixes correctly
    OPERATORS = [
        # Three-character operators
        ('<<=', TT.SHLEQ),
        ('>>=', TT.SHREQ),
        ('>>>', TT.USHR),
        ('<=>', TT.CMP3),
        ('...', TT.ELLIPSIS),

        # Two-character operators
        ('::', TT.DOUBLECOLON),
        ('<-', TT.NEWSLOT),
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('&&', TT.AND),
        ('||', TT.OR),
        ('++', TT.INCR),
        ('--', TT.DECR),
        ('+=', TT.PLUSEQ),
        ('-=', TT.MINUSEQ),
        ('*=', TT.STAREQ),
        ('/=', TT.SLASHEQ),
        ('%=', TT.MODEQ),
        ('<<', TT.SHL),
        ('>>', TT.SHR),

        # Single-character operators
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('/', TT.SLASH),
        ('%', TT.MOD),
        ('&', TT.BITAND),
        ('|', TT.BITOR),
        ('^', TT.BITXOR),
        ('~', TT.BITNOT),
        ('!', TT.NOT),
        ('=', TT.ASSIGN),
        ('<', TT.LT),
        ('>', TT.GT),
        ('?', TT.QMARK),
        (':', TT.COLON),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (';', TT.SEMI),
        ('@', TT.AT),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('{', TT.LBRACE),
        ('}', TT.RBRACE),
    ]

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []
        self.diagnostics: List[Diagnostic] = []

        # Trivia waiting for the next token
        self.pending: List[Trivia] = []
        # Token still collecting same-line trailing trivia
        self.trailing_owner: Optional[Tok] = None

        # Start of the token being scanned
        self.tok_start = 0
        self.tok_line = 1
        self.tok_column = 1

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list ending with EOF"""
        while self.pos < len(self.source):
            self.scan_token()

        self.mark()
        self.emit(TT.EOF, '')
        logger.debug("lexed %d tokens, %d diagnostics", len(self.tokens), len(self.diagnostics))
        return self.tokens

    def scan_token(self):
        """Scan next token or piece of trivia"""
        self.mark()
        ch = self.peek()

        if ch in (' ', '\t', '\f', '\v'):
            self.scan_whitespace()
            return

        if ch in ('\n', '\r'):
            self.scan_newline()
            return

        # Comments
        if ch == '#' or (ch == '/' and self.peek(1) == '/'):
            self.scan_line_comment()
            return

        if ch == '/' and self.peek(1) == '*':
            self.scan_block_comment()
            return

        # String literals
        if ch == '"':
            self.scan_string()
            return

        if ch == '@' and self.peek(1) == '"':
            self.scan_verbatim_string()
            return

        if ch == "'":
            self.scan_char()
            return

        # Numbers
        if self.is_digit(ch):
            self.scan_number()
            return

        # Identifiers and keywords
        if ch.isalpha() or ch == '_':
            self.scan_identifier()
            return

        # Operators and punctuation
        self.scan_operator()

    # ========================================================================
    # Trivia Scanners
    # ========================================================================

    def scan_whitespace(self):
        while self.peek() in (' ', '\t', '\f', '\v'):
            self.advance()
        self.add_trivia(TriviaKind.WHITESPACE)

    def scan_newline(self):
        """Scan newline character"""
        if self.peek() == '\r' and self.peek(1) == '\n':
            self.advance(2)  # consume CRLF
        else:
            self.advance()

        self.line += 1
        self.column = 1

        # The line break itself always leads the next token
        self.trailing_owner = None
        self.add_trivia(TriviaKind.NEWLINE)

    def scan_line_comment(self):
        """Scan // or # comment until end of line"""
        while self.pos < len(self.source) and self.peek() not in ('\n', '\r'):
            self.advance()
        self.add_trivia(TriviaKind.LINE_COMMENT)

    def scan_block_comment(self):
        """Scan /* ... */ comment"""
        self.advance(2)
        while self.pos < len(self.source):
            if self.peek() == '*' and self.peek(1) == '/':
                self.advance(2)
                self.add_trivia(TriviaKind.BLOCK_COMMENT)
                return
            self.advance_tracking_lines()

        self.error_token("Unterminated block comment")

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_string(self):
        """Scan string literal: "..." with backslash escapes"""
        self.advance()  # opening quote

        while self.pos < len(self.source) and self.peek() != '"':
            if self.peek() in ('\n', '\r'):
                break
            if self.peek() == '\\':
                self.check_escape()
                continue
            self.advance()

        if self.peek() != '"':
            self.error_token("Unterminated string literal")
            return

        self.advance()  # closing quote
        self.emit(TT.STRING)

    def scan_verbatim_string(self):
        """Scan verbatim string: @"..." where "" is an escaped quote"""
        self.advance(2)

        while self.pos < len(self.source):
            if self.peek() == '"':
                if self.peek(1) == '"':
                    self.advance(2)
                    continue
                self.advance()
                self.emit(TT.VERBATIM_STRING)
                return
            self.advance_tracking_lines()

        self.error_token("Unterminated verbatim string literal")

    def scan_char(self):
        """Scan character literal: 'a' or '\\n'"""
        self.advance()

        while self.pos < len(self.source) and self.peek() != "'":
            if self.peek() in ('\n', '\r'):
                break
            if self.peek() == '\\':
                self.check_escape()
                continue
            self.advance()

        if self.peek() != "'":
            self.error_token("Unterminated character literal")
            return

        self.advance()
        self.emit(TT.CHAR)

    def check_escape(self):
        """Consume a backslash escape, recording a diagnostic for unknown ones"""
        line, column, start = self.line, self.column, self.pos
        self.advance()  # backslash
        if self.pos >= len(self.source) or self.peek() in ('\n', '\r'):
            return
        esc = self.advance()
        if esc not in _VALID_ESCAPES:
            self.diagnostics.append(Diagnostic(
                DiagnosticKind.LEX_ERROR,
                Severity.ERROR,
                f"Unrecognised escape sequence '\\{esc}'",
                Span(start, start + 2, line, column),
            ))

    def scan_number(self):
        """Scan number literal"""
        token_type = TT.INTEGER

        if self.peek() == '0' and self.peek(1) in ('x', 'X'):
            self.advance(2)
            if not self.is_hex(self.peek()):
                self.error_token("Malformed hexadecimal literal", to_line_end=False)
                return
            while self.is_hex(self.peek()):
                self.advance()
            self.emit(token_type)
            return

        # Integer part
        while self.is_digit(self.peek()):
            self.advance()

        # Decimal part
        if self.peek() == '.' and self.is_digit(self.peek(1)):
            token_type = TT.FLOAT
            self.advance()
            while self.is_digit(self.peek()):
                self.advance()

        # Scientific notation
        if self.peek() in ('e', 'E') and (
            self.is_digit(self.peek(1)) or (self.peek(1) in ('+', '-') and self.is_digit(self.peek(2)))
        ):
            token_type = TT.FLOAT
            self.advance()
            if self.peek() in ('+', '-'):
                self.advance()
            while self.is_digit(self.peek()):
                self.advance()

        self.emit(token_type)

    def scan_identifier(self):
        """Scan identifier or keyword"""
        while self.peek().isalnum() or self.peek() == '_':
            self.advance()

        value = self.source[self.tok_start:self.pos]
        self.emit(self.KEYWORDS.get(value, TT.IDENT))

    def scan_operator(self):
        """Scan operators and punctuation"""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.emit(op_type)
                return

        ch = self.peek()
        self.advance()
        self.error_token(f"Unexpected character '{ch}'", to_line_end=False)

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters on the current line and return them"""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")
        result = self.source[self.pos:self.pos + n]
        self.pos += len(result)
        self.column += len(result)
        return result

    def advance_tracking_lines(self):
        """Consume one character that may be a line break"""
        ch = self.advance()
        if ch == '\n' or (ch == '\r' and self.peek() != '\n'):
            self.line += 1
            self.column = 1

    @staticmethod
    def is_digit(ch: str) -> bool:
        return '0' <= ch <= '9'

    @staticmethod
    def is_hex(ch: str) -> bool:
        return ch in '0123456789abcdefABCDEF'

    def mark(self):
        self.tok_start = self.pos
        self.tok_line = self.line
        self.tok_column = self.column

    def add_trivia(self, kind: TriviaKind):
        trivia = Trivia(kind, self.source[self.tok_start:self.pos], self.tok_start)
        if self.trailing_owner is not None:
            self.trailing_owner.trailing.append(trivia)
        else:
            self.pending.append(trivia)

    def emit(self, token_type: TT, value: Optional[str] = None):
        """Emit a token spanning from the last mark to the current position"""
        tok = Tok(
            type=token_type,
            value=self.source[self.tok_start:self.pos] if value is None else value,
            start=self.tok_start,
            end=self.pos,
            line=self.tok_line,
            column=self.tok_column,
            leading=self.pending,
        )
        self.pending = []
        self.tokens.append(tok)
        self.trailing_owner = tok

    def error_token(self, message: str, to_line_end: bool = True):
        """Emit an ERROR token and record a LexError instead of raising.

        Unterminated single-line constructs extend to the end of the line;
        multi-line ones have already consumed the rest of the input.
        """
        if to_line_end:
            while self.pos < len(self.source) and self.peek() not in ('\n', '\r'):
                self.advance()

        self.diagnostics.append(Diagnostic(
            DiagnosticKind.LEX_ERROR,
            Severity.ERROR,
            message,
            Span(self.tok_start, self.pos, self.tok_line, self.tok_column),
        ))
        self.emit(TT.ERROR)


def tokenize(source: str) -> List[Tok]:
    """Convenience function to tokenize source"""
    return Lexer(source).tokenize()


def tokenize_with_diagnostics(source: str) -> Tuple[List[Tok], List[Diagnostic]]:
    """Tokenize and also return the LexError diagnostics"""
    lexer = Lexer(source)
    tokens = lexer.tokenize()
    return tokens, lexer.diagnostics
