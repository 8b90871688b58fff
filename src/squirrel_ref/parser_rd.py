"""
Recursive Descent Parser for Squirrel

Structure:
- Lexer: Token stream from source (lexer_rd)
- Parser: Recursive descent for statements, precedence climbing for
  binary operators
- Tree: lark.Tree nodes whose leaves are the lexer's tokens, punctuation
  and keywords included, so the tree is a lossless concrete syntax tree

Malformed input never raises out of this module: a failing statement (or
table entry) is recorded as a SyntaxError diagnostic and its tokens are
wrapped in an ``error`` node.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from lark import Tree

from .diagnostics import Diagnostic, DiagnosticKind, Severity, sort_diagnostics
from .lexer_rd import Lexer, tokenize_with_diagnostics
from .token_types import TT, Tok
from .tree import ident_value, token_span, tree_label

logger = logging.getLogger(__name__)

# ============================================================================
# Parser
# ============================================================================

class ParseError(Exception):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        super().__init__(
            f"{message} at line {token.line}, col {token.column}" if token else message
        )


SPELLING: Dict[TT, str] = {tt: text for text, tt in Lexer.OPERATORS}
SPELLING.update({tt: word for word, tt in Lexer.KEYWORDS.items()})

# Binding power of infix operators (higher binds tighter)
BINARY_PRECEDENCE: Dict[TT, int] = {
    TT.OR: 1,
    TT.AND: 2,
    TT.BITOR: 3,
    TT.BITXOR: 4,
    TT.BITAND: 5,
    TT.EQ: 6, TT.NEQ: 6, TT.CMP3: 6,
    TT.LT: 7, TT.LTE: 7, TT.GT: 7, TT.GTE: 7, TT.IN: 7, TT.INSTANCEOF: 7,
    TT.SHL: 8, TT.SHR: 8, TT.USHR: 8,
    TT.PLUS: 9, TT.MINUS: 9,
    TT.STAR: 10, TT.SLASH: 10, TT.MOD: 10,
}

ASSIGN_OPS = frozenset({
    TT.ASSIGN, TT.NEWSLOT, TT.PLUSEQ, TT.MINUSEQ, TT.STAREQ, TT.SLASHEQ,
    TT.MODEQ, TT.SHLEQ, TT.SHREQ,
})

UNARY_OPS = frozenset({
    TT.MINUS, TT.NOT, TT.BITNOT, TT.TYPEOF, TT.CLONE, TT.DELETE, TT.RESUME,
    TT.INCR, TT.DECR,
})

LITERALS = frozenset({
    TT.INTEGER, TT.FLOAT, TT.STRING, TT.VERBATIM_STRING, TT.CHAR,
    TT.NULL, TT.TRUE, TT.FALSE,
})

OPENERS = frozenset({TT.LPAR, TT.LSQB, TT.LBRACE})
CLOSERS = frozenset({TT.RPAR, TT.RSQB, TT.RBRACE})

HOOK_PARAMETER = '__original'


def describe(tok: Tok) -> str:
    if tok.type is TT.EOF:
        return "end of input"
    return repr(tok.value)


class Parser:
    """
    Recursive descent parser for Squirrel.

    Expression precedence (lowest to highest):
    1. assignment (=, <-, +=, ...), right associative
    2. ternary (? :), right associative
    3. or (||)
    4. and (&&)
    5. bitwise or, xor, and (| ^ &)
    6. equality (==, !=, <=>)
    7. relational (<, <=, >, >=, in, instanceof)
    8. shift (<<, >>, >>>)
    9. additive (+, -)
    10. multiplicative (*, /, %)
    11. unary (-, !, ~, typeof, clone, delete, resume, ++, --)
    12. postfix (.member, [index], (call), ++, --)
    13. primary (literals, names, ::root, parens, tables, arrays, functions)
    """

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else Tok(TT.EOF, '')
        self.diagnostics: List[Diagnostic] = []

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
            self.current = self.tokens[self.pos]
        return prev

    def at_end(self) -> bool:
        return self.current.type is TT.EOF

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> Optional[Tok]:
        """Consume and return the current token if it matches"""
        if self.check(*types):
            return self.advance()
        return None

    def expect(self, token_type: TT, message: Optional[str] = None) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            wanted = SPELLING.get(token_type, token_type.name.lower())
            msg = message or f"Expected '{wanted}' but found {describe(self.current)}"
            raise ParseError(msg, self.current)
        return self.advance()

    def on_new_line(self) -> bool:
        return self.current.newlines_before > 0

    # ========================================================================
    # Diagnostics and Recovery
    # ========================================================================

    def report(self, error: ParseError) -> None:
        span = token_span(error.token or self.current)
        self.diagnostics.append(
            Diagnostic(DiagnosticKind.SYNTAX_ERROR, Severity.ERROR, error.message, span)
        )
        logger.debug("syntax error: %s", error)

    def error_node(self, start: int) -> Tree:
        return Tree('error', self.tokens[start:self.pos])

    def synchronize(self, start: int) -> None:
        """Skip past the failing statement that began at token index start.

        Guarantees progress, then stops after a ';' or before a '}' or a
        line-starting token, all at bracket depth zero.
        """
        depth = 0

        while not self.at_end():
            tok = self.current
            if self.pos > start and depth == 0:
                if tok.type is TT.RBRACE or tok.newlines_before:
                    return

            self.advance()
            if tok.type in OPENERS:
                depth += 1
            elif tok.type in CLOSERS:
                depth = max(depth - 1, 0)
            elif tok.type is TT.SEMI and depth == 0:
                return

    def skip_table_entry(self, start: int) -> None:
        """Skip to the next ',' or '}' (or line start) at the entry's depth."""
        depth = 0

        if self.pos == start:
            tok = self.advance()
            if tok.type is TT.COMMA:
                return
            if tok.type in OPENERS:
                depth = 1

        while not self.at_end():
            tok = self.current
            if depth == 0:
                if tok.type in (TT.COMMA, TT.RBRACE) or tok.newlines_before:
                    return

            self.advance()
            if tok.type in OPENERS:
                depth += 1
            elif tok.type in CLOSERS:
                depth = max(depth - 1, 0)

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Tree:
        """Parse entire program"""
        try:
            stmts = self.parse_statements()
        except RecursionError:
            # Pathological nesting: keep every token, give up on structure
            first = self.tokens[0]
            self.diagnostics.append(Diagnostic(
                DiagnosticKind.SYNTAX_ERROR, Severity.ERROR, "Nesting too deep",
                token_span(first),
            ))
            stmts = [Tree('error', self.tokens[:-1])] if len(self.tokens) > 1 else []
            self.pos = len(self.tokens) - 1
            self.current = self.tokens[-1]

        return Tree('program', stmts + [self.tokens[-1]])

    def parse_statements(self, *closers: TT) -> List[Tree]:
        """Parse statements until EOF or one of closers, recovering per statement"""
        stmts: List[Tree] = []

        while not self.at_end() and not self.check(*closers):
            start = self.pos
            try:
                stmts.append(self.parse_statement())
            except ParseError as e:
                self.report(e)
                self.synchronize(start)
                stmts.append(self.error_node(start))

        return stmts

    def end_statement(self, children: list) -> None:
        """Optional ';', otherwise the statement must end at '}', EOF or a line break"""
        semi = self.match(TT.SEMI)
        if semi is not None:
            children.append(semi)
            return

        if self.check(TT.RBRACE, TT.EOF) or self.on_new_line():
            return

        raise ParseError(f"Expected ';' or newline before {describe(self.current)}", self.current)

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statement(self) -> Tree:
        """
        Parse a single statement.

        Statements include:
        - Blocks and empty statements
        - Control flow (if, while, do, for, foreach, switch, try)
        - Declarations (local, const, function)
        - Jumps (return, break, continue, throw)
        - Expression statements, slot creation and assignment among them
        """
        tt = self.current.type

        if tt is TT.LBRACE:
            return self.parse_block()
        if tt is TT.SEMI:
            return Tree('empty_stmt', [self.advance()])

        # Control flow
        if tt is TT.IF:
            return self.parse_if_stmt()
        if tt is TT.WHILE:
            return self.parse_while_stmt()
        if tt is TT.DO:
            return self.parse_do_while_stmt()
        if tt is TT.FOR:
            return self.parse_for_stmt()
        if tt is TT.FOREACH:
            return self.parse_foreach_stmt()
        if tt is TT.SWITCH:
            return self.parse_switch_stmt()
        if tt is TT.TRY:
            return self.parse_try_stmt()

        # Declarations
        if tt is TT.LOCAL:
            if self.peek(1).type is TT.FUNCTION:
                return self.parse_function_decl()
            return self.parse_local_decl()
        if tt is TT.CONST:
            return self.parse_const_decl()
        if tt is TT.FUNCTION and self.peek(1).type is not TT.LPAR:
            return self.parse_function_decl()

        # Simple statements
        if tt is TT.RETURN:
            return self.parse_return_stmt()
        if tt in (TT.BREAK, TT.CONTINUE):
            children = [self.advance()]
            self.end_statement(children)
            return Tree('break_stmt' if tt is TT.BREAK else 'continue_stmt', children)
        if tt is TT.THROW:
            children = [self.advance(), self.parse_expr()]
            self.end_statement(children)
            return Tree('throw_stmt', children)

        children = [self.parse_expr()]
        self.end_statement(children)
        return Tree('expr_stmt', children)

    def parse_block(self) -> Tree:
        """Parse { statements }"""
        lbrace = self.expect(TT.LBRACE)
        stmts = self.parse_statements(TT.RBRACE)
        rbrace = self.expect(TT.RBRACE)
        return Tree('block', [lbrace, *stmts, rbrace])

    def parse_paren_expr(self) -> List:
        lpar = self.expect(TT.LPAR)
        expr = self.parse_expr()
        rpar = self.expect(TT.RPAR)
        return [lpar, expr, rpar]

    def parse_if_stmt(self) -> Tree:
        """Parse if (cond) stmt [else stmt]"""
        children = [self.expect(TT.IF), *self.parse_paren_expr(), self.parse_statement()]

        else_tok = self.match(TT.ELSE)
        if else_tok is not None:
            children.extend([else_tok, self.parse_statement()])

        return Tree('if_stmt', children)

    def parse_while_stmt(self) -> Tree:
        children = [self.expect(TT.WHILE), *self.parse_paren_expr(), self.parse_statement()]
        return Tree('while_stmt', children)

    def parse_do_while_stmt(self) -> Tree:
        """Parse do stmt while (cond)"""
        children = [self.expect(TT.DO), self.parse_statement(), self.expect(TT.WHILE)]
        children.extend(self.parse_paren_expr())
        self.end_statement(children)
        return Tree('do_while_stmt', children)

    def parse_for_stmt(self) -> Tree:
        """Parse for (init; cond; step) stmt; every clause may be empty"""
        children = [self.expect(TT.FOR), self.expect(TT.LPAR)]

        init: list = []
        if self.check(TT.LOCAL):
            init.append(self.parse_local_decl(terminated=False))
        elif not self.check(TT.SEMI):
            init.append(self.parse_expr())
        children.extend([Tree('for_init', init), self.expect(TT.SEMI)])

        cond = [] if self.check(TT.SEMI) else [self.parse_expr()]
        children.extend([Tree('for_cond', cond), self.expect(TT.SEMI)])

        step = [] if self.check(TT.RPAR) else [self.parse_expr()]
        children.extend([Tree('for_step', step), self.expect(TT.RPAR)])

        children.append(self.parse_statement())
        return Tree('for_stmt', children)

    def parse_foreach_stmt(self) -> Tree:
        """Parse foreach ([key,] value in expr) stmt"""
        children = [self.expect(TT.FOREACH), self.expect(TT.LPAR)]

        names = [self.expect(TT.IDENT, "Expected loop variable name")]
        comma = self.match(TT.COMMA)
        if comma is not None:
            names.extend([comma, self.expect(TT.IDENT, "Expected loop variable name")])
        children.append(Tree('foreach_vars', names))

        children.extend([self.expect(TT.IN), self.parse_expr(), self.expect(TT.RPAR)])
        children.append(self.parse_statement())
        return Tree('foreach_stmt', children)

    def parse_switch_stmt(self) -> Tree:
        """Parse switch (expr) { case ...: ... default: ... }"""
        children = [self.expect(TT.SWITCH), *self.parse_paren_expr(), self.expect(TT.LBRACE)]

        while not self.check(TT.RBRACE, TT.EOF):
            if self.check(TT.CASE):
                clause = [self.advance(), self.parse_expr(), self.expect(TT.COLON)]
                label = 'case_clause'
            elif self.check(TT.DEFAULT):
                clause = [self.advance(), self.expect(TT.COLON)]
                label = 'default_clause'
            else:
                raise ParseError(
                    f"Expected 'case' or 'default' but found {describe(self.current)}",
                    self.current,
                )

            body = self.parse_statements(TT.CASE, TT.DEFAULT, TT.RBRACE)
            clause.append(Tree('case_body', body))
            children.append(Tree(label, clause))

        children.append(self.expect(TT.RBRACE))
        return Tree('switch_stmt', children)

    def parse_try_stmt(self) -> Tree:
        """Parse try stmt catch (name) stmt"""
        children = [self.expect(TT.TRY), self.parse_statement(), self.expect(TT.CATCH)]
        children.extend([
            self.expect(TT.LPAR),
            self.expect(TT.IDENT, "Expected catch variable name"),
            self.expect(TT.RPAR),
            self.parse_statement(),
        ])
        return Tree('try_stmt', children)

    def parse_local_decl(self, terminated: bool = True) -> Tree:
        """Parse local a [= expr] (, b [= expr])*"""
        children = [self.expect(TT.LOCAL), self.parse_declarator()]

        while self.check(TT.COMMA):
            children.extend([self.advance(), self.parse_declarator()])

        if terminated:
            self.end_statement(children)
        return Tree('local_decl', children)

    def parse_declarator(self) -> Tree:
        parts = [self.expect(TT.IDENT, f"Expected variable name but found {describe(self.current)}")]

        assign = self.match(TT.ASSIGN)
        if assign is not None:
            parts.extend([assign, self.parse_expr()])

        return Tree('declarator', parts)

    def parse_const_decl(self) -> Tree:
        children = [
            self.expect(TT.CONST),
            self.expect(TT.IDENT, "Expected constant name"),
            self.expect(TT.ASSIGN),
            self.parse_expr(),
        ]
        self.end_statement(children)
        return Tree('const_decl', children)

    def parse_function_decl(self) -> Tree:
        """Parse [local] function name[::name|.name]* (params) { body }"""
        children = []
        local = self.match(TT.LOCAL)
        if local is not None:
            children.append(local)
        children.append(self.expect(TT.FUNCTION))

        name = []
        root = self.match(TT.DOUBLECOLON)
        if root is not None:
            name.append(root)
        name.append(self.expect(TT.IDENT, "Expected function name"))
        while self.check(TT.DOUBLECOLON, TT.DOT):
            name.extend([self.advance(), self.expect(TT.IDENT, "Expected function name")])
        children.append(Tree('fn_name', name))

        children.extend([self.parse_params(), self.parse_block()])

        # Tolerate `function f() {};`
        if self.check(TT.SEMI) and not self.on_new_line():
            children.append(self.advance())

        return Tree('function_decl', children)

    def parse_return_stmt(self) -> Tree:
        children = [self.expect(TT.RETURN)]

        # The value must start on the same line as `return`
        if not self.check(TT.SEMI, TT.RBRACE, TT.EOF) and not self.on_new_line():
            children.append(self.parse_expr())

        self.end_statement(children)
        return Tree('return_stmt', children)

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expr(self) -> Tree:
        """Parse expression (entry point)"""
        return self.parse_assign_expr()

    def parse_assign_expr(self) -> Tree:
        """Parse target op value where op is =, <- or a compound assignment"""
        target = self.parse_ternary_expr()

        if self.check(*ASSIGN_OPS):
            op = self.advance()
            value = self.parse_assign_expr()
            label = 'newslot' if op.type is TT.NEWSLOT else 'assign'
            return Tree(label, [target, op, value])

        return target

    def parse_ternary_expr(self) -> Tree:
        """Parse cond ? a : b"""
        cond = self.parse_binary_expr(1)

        qmark = self.match(TT.QMARK)
        if qmark is None:
            return cond

        then = self.parse_assign_expr()
        colon = self.expect(TT.COLON)
        other = self.parse_assign_expr()
        return Tree('ternary', [cond, qmark, then, colon, other])

    def parse_binary_expr(self, min_prec: int) -> Tree:
        """Precedence climbing over BINARY_PRECEDENCE, left associative"""
        left = self.parse_unary_expr()

        while True:
            prec = BINARY_PRECEDENCE.get(self.current.type)
            if prec is None or prec < min_prec:
                return left

            op = self.advance()
            right = self.parse_binary_expr(prec + 1)
            label = 'logical' if op.type in (TT.AND, TT.OR) else 'binary'
            left = Tree(label, [left, op, right])

    def parse_unary_expr(self) -> Tree:
        if self.check(*UNARY_OPS):
            op = self.advance()
            return Tree('unary', [op, self.parse_unary_expr()])

        return self.parse_postfix_expr()

    def parse_postfix_expr(self) -> Tree:
        """Parse primary followed by .member, (args), [index], ++ or --"""
        expr = self.parse_primary_expr()

        while True:
            if self.check(TT.DOT):
                dot = self.advance()
                name = self.expect(TT.IDENT, f"Expected member name after '.' but found {describe(self.current)}")
                expr = Tree('member', [expr, dot, name])
            elif self.check(TT.LPAR):
                expr = self.make_call(expr, self.parse_args())
            elif self.check(TT.LSQB) and not self.on_new_line():
                # A '[' on a new line starts an array literal statement
                expr = Tree('index', [expr, self.advance(), self.parse_expr(), self.expect(TT.RSQB)])
            elif self.check(TT.INCR, TT.DECR) and not self.on_new_line():
                expr = Tree('postfix', [expr, self.advance()])
            else:
                return expr

    def parse_args(self) -> Tree:
        """Parse ( expr, expr, ... )"""
        children = [self.expect(TT.LPAR)]

        if not self.check(TT.RPAR):
            children.append(self.parse_expr())
            while self.check(TT.COMMA):
                children.extend([self.advance(), self.parse_expr()])

        children.append(self.expect(TT.RPAR))
        return Tree('args', children)

    def make_call(self, callee: Tree, args: Tree) -> Tree:
        """Build a call node, capturing inherit(base, { ... }) structurally"""
        values = [ch for ch in args.children if isinstance(ch, Tree)]

        if (
            len(values) == 2
            and tree_label(values[1]) == 'table'
            and self.callee_name(callee) == 'inherit'
        ):
            return Tree('inherit_call', [callee, args])

        return Tree('call', [callee, args])

    @staticmethod
    def callee_name(callee: Tree) -> Optional[str]:
        label = tree_label(callee)
        if label == 'name':
            return ident_value(callee)
        if label in ('member', 'root_ref'):
            return callee.children[-1].value
        return None

    def parse_primary_expr(self) -> Tree:
        """Parse primary expression"""
        tok = self.current
        tt = tok.type

        if tt is TT.IDENT:
            return Tree('name', [self.advance()])
        if tt in LITERALS:
            return Tree('literal', [self.advance()])
        if tt is TT.THIS:
            return Tree('this', [self.advance()])
        if tt is TT.BASE:
            return Tree('base', [self.advance()])
        if tt is TT.DOUBLECOLON:
            return Tree('root_ref', [self.advance(), self.expect(TT.IDENT, "Expected name after '::'")])
        if tt is TT.LPAR:
            return Tree('paren', self.parse_paren_expr())
        if tt is TT.LBRACE:
            return self.parse_table()
        if tt is TT.LSQB:
            return self.parse_array()
        if tt is TT.FUNCTION:
            return Tree('function_expr', [self.advance(), self.parse_params(), self.parse_block()])
        if tt is TT.AT:
            return self.parse_lambda()
        if tt is TT.ERROR:
            # Already reported by the lexer
            return Tree('error', [self.advance()])

        raise ParseError(f"Unexpected token {describe(tok)}", tok)

    def parse_params(self) -> Tree:
        """Parse ( name [= default], ..., [...] )"""
        children = [self.expect(TT.LPAR)]

        while not self.check(TT.RPAR):
            if self.check(TT.ELLIPSIS):
                children.append(Tree('param', [self.advance()]))
            else:
                param = [self.expect(TT.IDENT, f"Expected parameter name but found {describe(self.current)}")]
                assign = self.match(TT.ASSIGN)
                if assign is not None:
                    param.extend([assign, self.parse_ternary_expr()])
                children.append(Tree('param', param))

            comma = self.match(TT.COMMA)
            if comma is None:
                break
            children.append(comma)

        children.append(self.expect(TT.RPAR))
        return Tree('params', children)

    def parse_lambda(self) -> Tree:
        """Parse @(params) expr, @(params) { block }, or the hook wrapper
        @(__original) function(...) { ... }"""
        at = self.expect(TT.AT)
        params = self.parse_params()
        body = self.parse_block() if self.check(TT.LBRACE) else self.parse_assign_expr()

        names = [ident_value(p.children[0]) for p in params.children if isinstance(p, Tree)]
        if names == [HOOK_PARAMETER] and tree_label(body) == 'function_expr':
            return Tree('hook_wrap', [at, params, body])

        return Tree('lambda_expr', [at, params, body])

    def parse_array(self) -> Tree:
        """Parse [a, b, c]; separating commas are optional"""
        children = [self.expect(TT.LSQB)]

        while not self.check(TT.RSQB, TT.EOF):
            children.append(self.parse_expr())
            comma = self.match(TT.COMMA)
            if comma is not None:
                children.append(comma)

        children.append(self.expect(TT.RSQB))
        return Tree('array', children)

    def parse_table(self) -> Tree:
        """Parse { entries }; separating commas are optional, bad entries recover"""
        children = [self.expect(TT.LBRACE)]

        while not self.check(TT.RBRACE, TT.EOF):
            start = self.pos
            try:
                children.append(self.parse_table_entry())
            except ParseError as e:
                self.report(e)
                self.skip_table_entry(start)
                children.append(self.error_node(start))

            comma = self.match(TT.COMMA)
            if comma is not None:
                children.append(comma)

        children.append(self.expect(TT.RBRACE))
        return Tree('table', children)

    def parse_table_entry(self) -> Tree:
        tok = self.current

        if tok.type is TT.IDENT and self.peek(1).type is TT.ASSIGN:
            return Tree('table_slot', [self.advance(), self.advance(), self.parse_expr()])

        if tok.type is TT.LSQB:
            key = [self.advance(), self.parse_expr(), self.expect(TT.RSQB)]
            return Tree('table_computed', [*key, self.expect(TT.ASSIGN), self.parse_expr()])

        if tok.type is TT.STRING and self.peek(1).type is TT.COLON:
            return Tree('table_json', [self.advance(), self.advance(), self.parse_expr()])

        if tok.type is TT.FUNCTION:
            children = [self.advance(), self.expect(TT.IDENT, "Expected method name")]
            children.extend([self.parse_params(), self.parse_block()])
            return Tree('table_method', children)

        raise ParseError(f"Expected table entry but found {describe(tok)}", tok)


# ============================================================================
# Entry Points
# ============================================================================

def parse_tokens(tokens: List[Tok]) -> Tuple[Tree, List[Diagnostic]]:
    parser = Parser(tokens)
    tree = parser.parse()
    return tree, parser.diagnostics


def parse_source(source: str) -> Tuple[Tree, List[Diagnostic]]:
    """
    Parse Squirrel source code to a concrete syntax tree.

    Returns the tree and the lexer and parser diagnostics ordered by source
    position. Never raises for malformed input.
    """
    tokens, lex_diagnostics = tokenize_with_diagnostics(source)
    tree, parse_diagnostics = parse_tokens(tokens)

    logger.debug("parsed %d statements, %d syntax errors",
                 len(tree.children) - 1, len(parse_diagnostics))
    return tree, sort_diagnostics(lex_diagnostics + parse_diagnostics)


# ============================================================================
# Main
# ============================================================================

if __name__ == '__main__':
    import sys

    args = [arg for arg in sys.argv[1:] if not arg.startswith('--')]

    # Read source from file or stdin
    if len(args) > 0 and args[0] != '-':
        with open(args[0], 'r') as f:
            source = f.read()
    else:
        source = sys.stdin.read()

    tree, diagnostics = parse_source(source)
    print(tree.pretty())
    for diagnostic in diagnostics:
        print(diagnostic, file=sys.stderr)
    sys.exit(1 if diagnostics else 0)
