"""
Canonical formatter for Squirrel source.

The syntax tree is turned into a layout document (see doc.py) by a lark
Interpreter with one method per tree label, then printed against the
configured width. Comments travel on the tokens they were attached to by the
lexer; statements, switch clauses and table entries that contain an error
node are echoed byte-identical from the source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from lark import Tree
from lark.visitors import Interpreter

from .doc import (
    BREAK_PARENT, FRESHLINE, HARDLINE, LINE, SOFTLINE, Doc, IfBreak, LineSuffix,
    group, indent, join, print_doc,
)
from .token_types import TT, Tok, Trivia, TriviaKind
from .tree import (
    Node, first_token, has_local_error, is_token, is_tree, iter_tokens, last_token,
    node_source, tree_label,
)

logger = logging.getLogger(__name__)

KEYWORD_UNARY = frozenset({TT.TYPEOF, TT.CLONE, TT.DELETE, TT.RESUME})
HUGGABLE = frozenset({'table', 'array', 'function_expr', 'lambda_expr', 'hook_wrap'})


@dataclass
class FormatOptions:
    indent: str = '\t'
    max_width: int = 100
    # Columns a tab counts for when measuring width
    tab_width: int = 4
    insert_final_newline: bool = True


class DocBuilder(Interpreter):
    """Builds the layout document for a parsed program"""

    def __init__(self, source: str):
        self.source = source
        # Tokens whose leading/trailing comments were already placed by an
        # enclosing statement list
        self.leading_done: Set[int] = set()
        self.trailing_done: Set[int] = set()

    # ========================================================================
    # Tokens and Comments
    # ========================================================================

    def fmt(self, node: Node) -> Doc:
        if is_token(node):
            return self.tok(node)
        return self.visit(node)

    def tok(self, t: Tok) -> Doc:
        parts: List[Doc] = []
        if id(t) not in self.leading_done:
            parts.extend(self.inline_leading(t))
        parts.append(t.value)
        if id(t) not in self.trailing_done:
            parts.extend(self.trailing_comments(t))
        return parts

    def inline_leading(self, t: Tok) -> List[Doc]:
        """Comments before a token in the middle of a construct"""
        parts: List[Doc] = []
        newline = False

        for trivia in t.leading:
            if trivia.kind is TriviaKind.NEWLINE:
                newline = True
            elif trivia.is_comment:
                if newline:
                    parts.append(FRESHLINE)
                parts.append(trivia.text)
                parts.append(HARDLINE if trivia.kind is TriviaKind.LINE_COMMENT else ' ')
                newline = False

        if newline and parts and parts[-1] == ' ':
            parts[-1] = HARDLINE
        return parts

    def trailing_comments(self, t: Tok) -> List[Doc]:
        parts: List[Doc] = []
        for trivia in t.trailing:
            if trivia.kind is TriviaKind.LINE_COMMENT:
                parts.extend([LineSuffix(' ' + trivia.text), BREAK_PARENT])
            elif trivia.kind is TriviaKind.BLOCK_COMMENT:
                parts.append(' ' + trivia.text)
        return parts

    def comment_lines(self, leading: List[Trivia], seen: bool) -> Tuple[List[Doc], Optional[TriviaKind], int]:
        """Lay out comments found in leading trivia, one per line.

        Returns the parts, the kind of the last comment and the number of
        line breaks after it. A blank line before a comment is kept (as one)
        only when seen says something precedes it in the same list.
        """
        parts: List[Doc] = []
        prev: Optional[TriviaKind] = None
        newlines = 0

        for trivia in leading:
            if trivia.kind is TriviaKind.NEWLINE:
                newlines += 1
                continue
            if not trivia.is_comment:
                continue

            parts.extend(self.separator(prev, newlines, seen))
            parts.append(trivia.text)
            prev = trivia.kind
            newlines = 0
            seen = True

        return parts, prev, newlines

    @staticmethod
    def separator(prev: Optional[TriviaKind], newlines: int, seen: bool) -> List[Doc]:
        parts: List[Doc] = []
        if prev is TriviaKind.LINE_COMMENT or (prev is TriviaKind.BLOCK_COMMENT and newlines):
            parts.append(HARDLINE)
        elif prev is TriviaKind.BLOCK_COMMENT:
            parts.append(' ')

        if newlines >= 2 and seen:
            parts.append(HARDLINE)
        return parts

    def unit_leading(self, first: Tok, seen: bool) -> List[Doc]:
        """Comments and at most one blank line before a statement or entry"""
        self.leading_done.add(id(first))
        parts, prev, newlines = self.comment_lines(first.leading, seen)
        parts.extend(self.separator(prev, newlines, seen or prev is not None))
        return parts

    def dangling(self, closing: Tok, after_units: bool) -> List[Doc]:
        """Comments before a closing token, blank lines before it dropped"""
        self.leading_done.add(id(closing))
        parts, _, _ = self.comment_lines(closing.leading, after_units)
        if parts and after_units:
            parts.insert(0, HARDLINE)
        return parts

    # ========================================================================
    # Units
    # ========================================================================

    def verbatim(self, node: Tree) -> Doc:
        """Source text of a malformed region, comments inside it included"""
        return [node_source(node, self.source), BREAK_PARENT]

    def unit_doc(self, unit: Tree) -> Doc:
        last = last_token(unit)
        owned = last is not None and id(last) not in self.trailing_done
        if owned:
            self.trailing_done.add(id(last))

        if has_local_error(unit):
            logger.debug("echoing malformed %s verbatim", unit.data)
            doc = self.verbatim(unit)
        else:
            doc = self.visit(unit)

        if owned:
            return [doc, self.trailing_comments(last)]
        return doc

    def statement_list(self, stmts: List[Tree]) -> List[Doc]:
        parts: List[Doc] = []
        for i, stmt in enumerate(stmts):
            if i:
                parts.append(HARDLINE)
            parts.extend(self.unit_leading(first_token(stmt), seen=i > 0))
            parts.append(self.unit_doc(stmt))
        return parts

    def enclosed(self, open_tok: Tok, inner: List[Doc], close_tok: Tok) -> Doc:
        """Brackets around an indented run of lines"""
        return [self.tok(open_tok), indent(HARDLINE, inner), HARDLINE, self.tok(close_tok)]

    def gap_after(self, stmt: Tree) -> Doc:
        """Separator between a body and the keyword continuing its statement"""
        if tree_label(stmt) != 'block':
            return HARDLINE
        rbrace = last_token(stmt)
        if rbrace is not None and any(t.kind is TriviaKind.LINE_COMMENT for t in rbrace.trailing):
            return HARDLINE
        return ' '

    def body(self, stmt: Tree) -> Doc:
        """Body of a control statement: cuddled block or indented statement"""
        label = tree_label(stmt)
        if label == 'block':
            return [' ', self.visit(stmt)]
        if label == 'empty_stmt':
            return self.visit(stmt)
        return indent(HARDLINE, self.visit(stmt))

    def sequence(self, open_tok: Tok, items: list, close_tok: Tok, pad: Doc) -> Doc:
        """Comma-optional list of entries between brackets (tables, arrays)"""
        pairs: List[Tuple[Tree, Optional[Tok]]] = []
        for item in items:
            if is_tree(item):
                pairs.append((item, None))
            elif pairs and pairs[-1][1] is None:
                pairs[-1] = (pairs[-1][0], item)

        dangling = self.dangling(close_tok, bool(pairs))
        if not pairs and not dangling:
            return [self.tok(open_tok), self.tok(close_tok)]
        if not pairs:
            return self.enclosed(open_tok, dangling, close_tok)

        any_comma = any(comma is not None for _, comma in pairs)
        parts: List[Doc] = []

        for i, (entry, comma) in enumerate(pairs):
            if i:
                parts.append(LINE)
            parts.extend(self.unit_leading(first_token(entry), seen=i > 0))
            parts.append(self.unit_doc(entry))

            if i == len(pairs) - 1:
                if comma is not None:
                    # Trailing comma survives only when the list is broken
                    parts.append(IfBreak(self.tok(comma), ''))
            elif comma is not None:
                parts.append(self.tok(comma))
            else:
                parts.append(',' if any_comma else IfBreak('', ','))

        parts.extend(dangling)
        return group(self.tok(open_tok), indent(pad, parts), pad, self.tok(close_tok))

    # ========================================================================
    # Program and Statements
    # ========================================================================

    def program(self, tree: Tree) -> Doc:
        *stmts, eof = tree.children
        return [self.statement_list(stmts), self.dangling(eof, bool(stmts))]

    def block(self, tree: Tree) -> Doc:
        lbrace, *stmts, rbrace = tree.children
        body = self.statement_list(stmts)
        dangling = self.dangling(rbrace, bool(stmts))

        if not stmts and not dangling:
            return [self.tok(lbrace), self.tok(rbrace)]
        return self.enclosed(lbrace, [body, dangling], rbrace)

    def error(self, tree: Tree) -> Doc:
        return self.verbatim(tree)

    def expr_stmt(self, tree: Tree) -> Doc:
        return [self.fmt(ch) for ch in tree.children]

    def empty_stmt(self, tree: Tree) -> Doc:
        return self.tok(tree.children[0])

    def local_decl(self, tree: Tree) -> Doc:
        parts: List[Doc] = []
        for ch in tree.children:
            if is_token(ch) and ch.type is TT.LOCAL:
                parts.extend([self.tok(ch), ' '])
            elif is_token(ch) and ch.type is TT.COMMA:
                parts.extend([self.tok(ch), ' '])
            else:
                parts.append(self.fmt(ch))
        return parts

    def declarator(self, tree: Tree) -> Doc:
        name, *init = tree.children
        if not init:
            return self.tok(name)
        assign, value = init
        return [self.tok(name), ' ', self.tok(assign), ' ', self.fmt(value)]

    def const_decl(self, tree: Tree) -> Doc:
        const, name, assign, value, *semi = tree.children
        parts = [self.tok(const), ' ', self.tok(name), ' ', self.tok(assign), ' ', self.fmt(value)]
        return parts + [self.tok(s) for s in semi]

    def if_stmt(self, tree: Tree) -> Doc:
        kw, lpar, cond, rpar, then, *rest = tree.children
        parts = [self.tok(kw), ' ', self.tok(lpar), self.fmt(cond), self.tok(rpar), self.body(then)]

        if rest:
            else_tok, other = rest
            parts.extend([self.gap_after(then), self.tok(else_tok)])
            if tree_label(other) == 'if_stmt':
                parts.extend([' ', self.visit(other)])
            else:
                parts.append(self.body(other))

        return parts

    def while_stmt(self, tree: Tree) -> Doc:
        kw, lpar, cond, rpar, stmt = tree.children
        return [self.tok(kw), ' ', self.tok(lpar), self.fmt(cond), self.tok(rpar), self.body(stmt)]

    def do_while_stmt(self, tree: Tree) -> Doc:
        do, stmt, kw, lpar, cond, rpar, *semi = tree.children
        parts = [self.tok(do), self.body(stmt), self.gap_after(stmt), self.tok(kw), ' ']
        parts.extend([self.tok(lpar), self.fmt(cond), self.tok(rpar)])
        return parts + [self.tok(s) for s in semi]

    def for_stmt(self, tree: Tree) -> Doc:
        kw, lpar, init, semi1, cond, semi2, step, rpar, stmt = tree.children
        parts = [self.tok(kw), ' ', self.tok(lpar), self.visit(init), self.tok(semi1)]
        if cond.children:
            parts.append(' ')
        parts.extend([self.visit(cond), self.tok(semi2)])
        if step.children:
            parts.append(' ')
        parts.extend([self.visit(step), self.tok(rpar), self.body(stmt)])
        return parts

    def for_init(self, tree: Tree) -> Doc:
        return [self.fmt(ch) for ch in tree.children]

    for_cond = for_init
    for_step = for_init

    def foreach_stmt(self, tree: Tree) -> Doc:
        kw, lpar, names, in_tok, expr, rpar, stmt = tree.children
        parts = [self.tok(kw), ' ', self.tok(lpar), self.visit(names), ' ', self.tok(in_tok), ' ']
        return parts + [self.fmt(expr), self.tok(rpar), self.body(stmt)]

    def foreach_vars(self, tree: Tree) -> Doc:
        parts: List[Doc] = []
        for ch in tree.children:
            parts.append(self.tok(ch))
            if ch.type is TT.COMMA:
                parts.append(' ')
        return parts

    def switch_stmt(self, tree: Tree) -> Doc:
        kw, lpar, subject, rpar, lbrace, *clauses, rbrace = tree.children
        head = [self.tok(kw), ' ', self.tok(lpar), self.fmt(subject), self.tok(rpar), ' ']

        dangling = self.dangling(rbrace, bool(clauses))
        if not clauses:
            if not dangling:
                return head + [self.tok(lbrace), self.tok(rbrace)]
            return head + [self.enclosed(lbrace, dangling, rbrace)]

        parts = head + [self.tok(lbrace)]

        # Labels stay at the switch's own indent
        for i, clause in enumerate(clauses):
            parts.append(HARDLINE)
            parts.extend(self.unit_leading(first_token(clause), seen=i > 0))
            parts.append(self.unit_doc(clause))

        return parts + dangling + [HARDLINE, self.tok(rbrace)]

    def case_clause(self, tree: Tree) -> Doc:
        kw, value, colon, body = tree.children
        return [self.tok(kw), ' ', self.fmt(value), self.tok(colon), self.visit(body)]

    def default_clause(self, tree: Tree) -> Doc:
        kw, colon, body = tree.children
        return [self.tok(kw), self.tok(colon), self.visit(body)]

    def case_body(self, tree: Tree) -> Doc:
        if not tree.children:
            return []
        return indent(HARDLINE, self.statement_list(tree.children))

    def try_stmt(self, tree: Tree) -> Doc:
        kw, stmt, catch, lpar, name, rpar, handler = tree.children
        parts = [self.tok(kw), self.body(stmt), self.gap_after(stmt), self.tok(catch), ' ']
        return parts + [self.tok(lpar), self.tok(name), self.tok(rpar), self.body(handler)]

    def return_stmt(self, tree: Tree) -> Doc:
        kw, *rest = tree.children
        parts = [self.tok(kw)]
        for ch in rest:
            if is_tree(ch):
                parts.extend([' ', self.visit(ch)])
            else:
                parts.append(self.tok(ch))
        return parts

    def throw_stmt(self, tree: Tree) -> Doc:
        kw, value, *semi = tree.children
        return [self.tok(kw), ' ', self.fmt(value)] + [self.tok(s) for s in semi]

    def break_stmt(self, tree: Tree) -> Doc:
        return [self.tok(ch) for ch in tree.children]

    continue_stmt = break_stmt

    def function_decl(self, tree: Tree) -> Doc:
        parts: List[Doc] = []
        for ch in tree.children:
            label = tree_label(ch)
            if label == 'block':
                parts.extend([' ', self.visit(ch)])
            elif is_tree(ch):
                parts.append(self.visit(ch))
            elif ch.type in (TT.LOCAL, TT.FUNCTION):
                parts.extend([self.tok(ch), ' '])
            else:
                parts.append(self.tok(ch))
        return parts

    def fn_name(self, tree: Tree) -> Doc:
        return [self.tok(ch) for ch in tree.children]

    # ========================================================================
    # Expressions
    # ========================================================================

    def name(self, tree: Tree) -> Doc:
        return self.tok(tree.children[0])

    literal = name
    this = name
    base = name

    def root_ref(self, tree: Tree) -> Doc:
        return [self.tok(ch) for ch in tree.children]

    def paren(self, tree: Tree) -> Doc:
        lpar, expr, rpar = tree.children
        return [self.tok(lpar), self.fmt(expr), self.tok(rpar)]

    def binary(self, tree: Tree) -> Doc:
        left, op, right = tree.children
        return [self.fmt(left), ' ', self.tok(op), ' ', self.fmt(right)]

    assign = binary
    newslot = binary

    def logical(self, tree: Tree) -> Doc:
        """Same-operator chains flatten; every operand shares one indent and
        a broken chain puts the operator first on each continuation line"""
        op_type = tree.children[1].type
        rest: List[Tuple[Tok, Node]] = []
        node: Node = tree

        while tree_label(node) == 'logical' and node.children[1].type is op_type:
            left, op, right = node.children
            rest.append((op, right))
            node = left

        rest.reverse()
        tail = [[LINE, self.tok(op), ' ', self.fmt(operand)] for op, operand in rest]
        return group(self.fmt(node), indent(tail))

    def ternary(self, tree: Tree) -> Doc:
        cond, qmark, then, colon, other = tree.children
        return group(
            self.fmt(cond),
            indent(LINE, self.tok(qmark), ' ', self.fmt(then), LINE, self.tok(colon), ' ', self.fmt(other)),
        )

    def unary(self, tree: Tree) -> Doc:
        op, operand = tree.children
        if op.type in KEYWORD_UNARY:
            return [self.tok(op), ' ', self.fmt(operand)]

        first = first_token(operand)
        # Keep `- -x` and `- --x` from gluing into a different operator
        if first is not None and first.value[:1] in ('-', '+') and op.value[-1] == first.value[0]:
            return [self.tok(op), ' ', self.fmt(operand)]
        return [self.tok(op), self.fmt(operand)]

    def postfix(self, tree: Tree) -> Doc:
        expr, op = tree.children
        return [self.fmt(expr), self.tok(op)]

    def member(self, tree: Tree) -> Doc:
        obj, dot, name = tree.children
        return [self.fmt(obj), self.tok(dot), self.tok(name)]

    def index(self, tree: Tree) -> Doc:
        obj, lsqb, key, rsqb = tree.children
        return [self.fmt(obj), self.tok(lsqb), self.fmt(key), self.tok(rsqb)]

    def call(self, tree: Tree) -> Doc:
        callee, args = tree.children
        return [self.fmt(callee), self.visit(args)]

    inherit_call = call

    def args(self, tree: Tree) -> Doc:
        lpar, *rest, rpar = tree.children
        values = [ch for ch in rest if is_tree(ch)]
        commas = [ch for ch in rest if is_token(ch)]

        if not values:
            return self.empty_parens(lpar, rpar)

        if self.can_hug(tree, values):
            parts: List[Doc] = [self.tok(lpar)]
            for value, comma in zip(values[:-1], commas):
                parts.extend([self.fmt(value), self.tok(comma), ' '])
            return parts + [self.fmt(values[-1]), self.tok(rpar)]

        return self.comma_group(lpar, values, commas, rpar)

    def can_hug(self, tree: Tree, values: List[Tree]) -> bool:
        """Last argument is a literal that may break on its own"""
        if tree_label(values[-1]) not in HUGGABLE:
            return False
        if any(tree_label(v) in HUGGABLE for v in values[:-1]):
            return False

        last = values[-1]
        for ch in tree.children:
            if ch is last:
                continue
            if any(t.comments for t in iter_tokens(ch)):
                return False
        return True

    def empty_parens(self, lpar: Tok, rpar: Tok) -> Doc:
        dangling = self.dangling(rpar, False)
        if not dangling:
            return [self.tok(lpar), self.tok(rpar)]
        return self.enclosed(lpar, dangling, rpar)

    def comma_group(self, lpar: Tok, values: List[Tree], commas: List[Tok], rpar: Tok) -> Doc:
        items: List[Doc] = []
        for i, value in enumerate(values):
            item = [self.fmt(value)]
            if i < len(commas):
                item.append(self.tok(commas[i]))
            items.append(item)
        return group(self.tok(lpar), indent(SOFTLINE, join(LINE, items)), SOFTLINE, self.tok(rpar))

    def params(self, tree: Tree) -> Doc:
        lpar, *rest, rpar = tree.children
        values = [ch for ch in rest if is_tree(ch)]
        if not values:
            return self.empty_parens(lpar, rpar)
        return self.comma_group(lpar, values, [ch for ch in rest if is_token(ch)], rpar)

    def param(self, tree: Tree) -> Doc:
        name, *default = tree.children
        if not default:
            return self.tok(name)
        assign, value = default
        return [self.tok(name), ' ', self.tok(assign), ' ', self.fmt(value)]

    def function_expr(self, tree: Tree) -> Doc:
        kw, params, block = tree.children
        return [self.tok(kw), self.visit(params), ' ', self.visit(block)]

    def lambda_expr(self, tree: Tree) -> Doc:
        at, params, body = tree.children
        return [self.tok(at), self.visit(params), ' ', self.fmt(body)]

    hook_wrap = lambda_expr

    def table(self, tree: Tree) -> Doc:
        lbrace, *items, rbrace = tree.children
        return self.sequence(lbrace, items, rbrace, LINE)

    def array(self, tree: Tree) -> Doc:
        lsqb, *items, rsqb = tree.children
        return self.sequence(lsqb, items, rsqb, SOFTLINE)

    def table_slot(self, tree: Tree) -> Doc:
        key, assign, value = tree.children
        return [self.tok(key), ' ', self.tok(assign), ' ', self.fmt(value)]

    def table_computed(self, tree: Tree) -> Doc:
        lsqb, key, rsqb, assign, value = tree.children
        return [self.tok(lsqb), self.fmt(key), self.tok(rsqb), ' ', self.tok(assign), ' ', self.fmt(value)]

    def table_json(self, tree: Tree) -> Doc:
        key, colon, value = tree.children
        return [self.tok(key), self.tok(colon), ' ', self.fmt(value)]

    def table_method(self, tree: Tree) -> Doc:
        kw, name, params, block = tree.children
        return [self.tok(kw), ' ', self.tok(name), self.visit(params), ' ', self.visit(block)]


def format_tree(tree: Tree, source: str, options: Optional[FormatOptions] = None) -> str:
    """Print a parsed program in canonical layout"""
    options = options or FormatOptions()

    doc = DocBuilder(source).visit(tree)
    text = print_doc(doc, options.max_width, options.indent, options.tab_width)

    if text and options.insert_final_newline:
        text += '\n'
    return text
