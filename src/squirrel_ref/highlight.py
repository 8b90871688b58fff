"""Semantic token classification and a prompt_toolkit lexer for Squirrel."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, Dict, List

from lark import Tree
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.formatted_text.utils import split_lines
from prompt_toolkit.lexers import Lexer

from .lexer_rd import Lexer as SquirrelTokenizer
from .parser_rd import parse_source
from .token_types import TT, Tok
from .tree import is_token_type, iter_tokens, tree_label

# Map semantic kinds → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "string": "ansigreen",
    "number": "ansimagenta",
    "comment": "italic ansigray",
    "operator": "",
    "function": "bold ansiyellow",
    "parameter": "italic",
    "variable": "",
    "property": "ansiblue",
    "error": "bold ansired",
}

KEYWORD_TYPES = frozenset(SquirrelTokenizer.KEYWORDS.values())

PUNCTUATION = frozenset({
    TT.LPAR, TT.RPAR, TT.LSQB, TT.RSQB, TT.LBRACE, TT.RBRACE,
    TT.DOT, TT.COMMA, TT.SEMI, TT.COLON, TT.AT, TT.DOUBLECOLON, TT.ELLIPSIS,
})

OPERATOR_TYPES = frozenset(tt for _, tt in SquirrelTokenizer.OPERATORS) - PUNCTUATION

_TT_GROUP = {
    TT.INTEGER: "number",
    TT.FLOAT: "number",
    TT.STRING: "string",
    TT.VERBATIM_STRING: "string",
    TT.CHAR: "string",
    TT.ERROR: "error",
}


@dataclass(frozen=True)
class SemanticToken:
    start: int
    length: int
    # 1-based
    line: int
    column: int
    kind: str


def _ident_roles(tree: Tree) -> Dict[int, str]:
    """Role of each identifier that is not a plain variable, keyed by id(tok)"""
    roles: Dict[int, str] = {}

    def mark(node, role: str) -> None:
        if is_token_type(node, TT.IDENT):
            roles.setdefault(id(node), role)

    for sub in tree.iter_subtrees_topdown():
        label = sub.data
        kids = sub.children

        if label == 'fn_name':
            for kid in kids:
                mark(kid, "function")
        elif label == 'table_method':
            mark(kids[1], "function")
        elif label in ('call', 'inherit_call'):
            callee = kids[0]
            if tree_label(callee) in ('name', 'root_ref', 'member'):
                mark(callee.children[-1], "function")
        elif label == 'member':
            mark(kids[-1], "property")
        elif label == 'table_slot':
            mark(kids[0], "property")
        elif label == 'param':
            mark(kids[0], "parameter")
        elif label == 'try_stmt':
            for kid in kids:
                if is_token_type(kid, TT.IDENT):
                    mark(kid, "parameter")

    return roles


def _classify(tok: Tok, roles: Dict[int, str]) -> str:
    if tok.type is TT.IDENT:
        return roles.get(id(tok), "variable")
    if tok.type in KEYWORD_TYPES:
        return "keyword"
    if tok.type in OPERATOR_TYPES:
        return "operator"
    return _TT_GROUP.get(tok.type, "")


def semantic_tokens(source: str) -> List[SemanticToken]:
    """Classify every token and comment of source, in source order.

    Punctuation is left out. Never raises for malformed input.
    """
    tree, _ = parse_source(source)
    roles = _ident_roles(tree)

    line_starts = [0]
    for i, ch in enumerate(source):
        if ch == '\n':
            line_starts.append(i + 1)

    def make(start: int, end: int, kind: str) -> SemanticToken:
        line = bisect_right(line_starts, start)
        return SemanticToken(start, end - start, line, start - line_starts[line - 1] + 1, kind)

    result: List[SemanticToken] = []
    for tok in iter_tokens(tree):
        for trivia in tok.leading:
            if trivia.is_comment:
                result.append(make(trivia.start, trivia.end, "comment"))

        kind = _classify(tok, roles)
        if kind and tok.end > tok.start:
            result.append(make(tok.start, tok.end, kind))

        for trivia in tok.trailing:
            if trivia.is_comment:
                result.append(make(trivia.start, trivia.end, "comment"))

    return result


def highlight_fragments(source: str) -> StyleAndTextTuples:
    """Styled fragments covering all of source"""
    result: StyleAndTextTuples = []
    pos = 0

    for st in semantic_tokens(source):
        if st.start < pos:
            continue
        if st.start > pos:
            result.append(("", source[pos:st.start]))
        end = st.start + st.length
        result.append((GROUP_STYLE.get(st.kind, ""), source[st.start:end]))
        pos = end

    if pos < len(source):
        result.append(("", source[pos:]))

    return result


class SquirrelLexer(Lexer):
    """prompt_toolkit Lexer that highlights Squirrel source using the RD parser."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        # Highlight the whole text at once so block comments spanning lines
        # keep their style.
        lines = list(split_lines(highlight_fragments(document.text)))

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno < len(lines):
                return lines[lineno]
            return [("", "")]

        return get_line
