"""
Scope-resolving semantic analyzer.

One walk over the syntax tree builds the scope graph and records every
identifier reference; inheritance edges and references are resolved after
the walk, so lookups see the finished graph. Produces UndeclaredReference,
UnusedLocal and DuplicateDeclaration diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from lark import Tree
from lark.visitors import Interpreter

from .diagnostics import Diagnostic, DiagnosticKind, Severity, Span
from .scopes import DeclKind, ScopeGraph, ScopeKind
from .token_types import TT, Tok
from .tree import (
    ident_value, is_token_type, is_tree, iter_tokens, node_diagnostic_span,
    subtrees, token_span, tree_label,
)

logger = logging.getLogger(__name__)

BUILTINS: FrozenSet[str] = frozenset({
    'array', 'assert', 'callee', 'clone', 'collectgarbage', 'compilestring',
    'enabledebuginfo', 'error', 'format', 'getconsttable', 'getroottable',
    'getstackinfos', 'newthread', 'print', 'regexp', 'resurrectunreachable',
    'setconsttable', 'setdebughook', 'seterrorhandler', 'setroottable',
    'suspend', 'type', 'typeof', 'this', 'base', 'Math', 'inherit', 'vargv',
})

# Per-instance mutable state table; its members are never checked
STATE_BAG = 'm'

# Name that may be left unused on purpose
DISCARD = '_'


@dataclass
class Reference:
    name: str
    scope: int
    seq: int
    deferred: bool
    span: Span
    is_call: bool = False
    is_read: bool = True
    is_write: bool = False


@dataclass
class PendingInherit:
    table_scope: int
    base: Tree
    scope: int
    seq: int
    deferred: bool


class SemanticAnalyzer(Interpreter):
    """Walks a program, building the scope graph and collecting references.

    Visit methods of expressions return the id of the table scope the
    expression evaluates to (a table literal or an inheritance call), so
    declarations can remember which table they name.
    """

    def __init__(self, known_globals: Iterable[str] = ()):
        self.graph = ScopeGraph()
        self.known = BUILTINS | frozenset(known_globals)
        self.scope = self.graph.new_scope(ScopeKind.ROOT, None)
        self.seq = 0
        self.function_depth = 0
        self.refs: List[Reference] = []
        self.inherits: List[PendingInherit] = []
        self.diagnostics: List[Diagnostic] = []

    # ========================================================================
    # Bookkeeping
    # ========================================================================

    def next_seq(self) -> int:
        self.seq += 1
        return self.seq

    def push_scope(self, kind: ScopeKind) -> int:
        outer = self.scope
        self.scope = self.graph.new_scope(kind, outer)
        return outer

    def declare(self, tok: Tok, kind: DeclKind, scope: Optional[int] = None) -> int:
        scope_id = self.scope if scope is None else scope
        decl_id, previous = self.graph.declare(scope_id, tok.value, kind, token_span(tok), self.next_seq())

        # Root slots may be redefined freely
        if previous is not None and self.graph.scopes[scope_id].kind is not ScopeKind.ROOT:
            self.graph.decls[previous].quiet = True
            self.diagnostics.append(Diagnostic(
                DiagnosticKind.DUPLICATE_DECLARATION, Severity.ERROR,
                f"Duplicate declaration of '{tok.value}'", token_span(tok),
            ))
        return decl_id

    def reference(self, tok: Tok, is_call: bool = False, is_read: bool = True, is_write: bool = False) -> None:
        self.refs.append(Reference(
            tok.value, self.scope, self.next_seq(), self.function_depth > 0,
            token_span(tok), is_call, is_read, is_write,
        ))

    def recover(self, tok: Tok, kind: DeclKind, scope: int) -> None:
        """Bind a name found in a malformed statement, without reports"""
        decl_id, _ = self.graph.declare(scope, tok.value, kind, token_span(tok), self.next_seq())
        self.graph.decls[decl_id].quiet = True

    def walk(self, node) -> Optional[int]:
        if is_tree(node):
            return self.visit(node)
        return None

    def walk_all(self, nodes) -> None:
        for node in nodes:
            self.walk(node)

    def nested(self, stmt: Tree) -> None:
        """Statement body in its own block scope"""
        outer = self.push_scope(ScopeKind.BLOCK)
        if tree_label(stmt) == 'block':
            self.walk_all(stmt.children)
        else:
            self.walk(stmt)
        self.scope = outer

    def function(self, params: Tree, body: Tree, hook: Optional[Tok] = None) -> None:
        """Function scope holding parameters and the body's statements"""
        outer = self.push_scope(ScopeKind.FUNCTION)
        self.function_depth += 1

        if hook is not None:
            # Implicit handle on the replaced implementation
            self.declare(hook, DeclKind.HOOK_PARAMETER)

        for param in subtrees(params):
            name = param.children[0]
            if is_token_type(name, TT.IDENT):
                self.declare(name, DeclKind.PARAMETER)
            if len(param.children) == 3:
                self.walk(param.children[2])

        if tree_label(body) == 'block':
            self.walk_all(body.children)
        else:
            self.walk(body)

        self.function_depth -= 1
        self.scope = outer

    # ========================================================================
    # Statements
    # ========================================================================

    def program(self, tree: Tree) -> None:
        # Top-level locals live in the file body, a function scope under root
        self.push_scope(ScopeKind.FUNCTION)
        self.walk_all(tree.children)

    def block(self, tree: Tree) -> None:
        self.nested(tree)

    def error(self, tree: Tree) -> None:
        """Names a malformed statement still visibly declares"""
        toks = list(iter_tokens(tree))
        at_top = self.graph.scopes[self.scope].parent == self.graph.root

        for i, tok in enumerate(toks):
            if tok.type is not TT.IDENT:
                continue
            prev = toks[i - 1] if i else None
            after = toks[i + 1] if i + 1 < len(toks) else None

            if is_token_type(prev, TT.LOCAL):
                self.recover(tok, DeclKind.LOCAL, self.scope)
            elif is_token_type(prev, TT.FUNCTION) and not is_token_type(after, TT.DOT, TT.DOUBLECOLON):
                is_local = i >= 2 and is_token_type(toks[i - 2], TT.LOCAL)
                scope = self.graph.root if at_top and not is_local else self.scope
                self.recover(tok, DeclKind.FUNCTION, scope)
            elif is_token_type(after, TT.NEWSLOT) and not is_token_type(prev, TT.DOT):
                self.recover(tok, DeclKind.TABLE_SLOT, self.graph.root)

    def expr_stmt(self, tree: Tree) -> None:
        self.walk_all(tree.children)

    def empty_stmt(self, tree: Tree) -> None:
        pass

    break_stmt = empty_stmt
    continue_stmt = empty_stmt

    def return_stmt(self, tree: Tree) -> None:
        self.walk_all(tree.children)

    throw_stmt = return_stmt

    def local_decl(self, tree: Tree) -> None:
        for declarator in subtrees(tree):
            name = declarator.children[0]
            table_scope = self.walk(declarator.children[2]) if len(declarator.children) == 3 else None
            decl_id = self.declare(name, DeclKind.LOCAL)
            self.graph.decls[decl_id].table_scope = table_scope

    def const_decl(self, tree: Tree) -> None:
        _, name, _, value, *_ = tree.children
        self.walk(value)
        self.declare(name, DeclKind.CONSTANT, self.graph.root)

    def function_decl(self, tree: Tree) -> None:
        is_local = is_token_type(tree.children[0], TT.LOCAL)
        fn_name = next(ch for ch in tree.children if tree_label(ch) == 'fn_name')
        params, body = [ch for ch in subtrees(tree) if ch is not fn_name]

        # Only plain names bind; `function A::b()` and `function A.b()` extend A
        if len(fn_name.children) == 1:
            name = fn_name.children[0]
            at_top = self.graph.scopes[self.scope].parent == self.graph.root
            scope = self.graph.root if at_top and not is_local else self.scope
            self.declare(name, DeclKind.FUNCTION, scope)
        else:
            first = fn_name.children[0]
            if is_token_type(first, TT.IDENT):
                self.reference(first)

        self.function(params, body)

    def if_stmt(self, tree: Tree) -> None:
        _, _, cond, _, then, *rest = tree.children
        self.walk(cond)
        self.nested(then)
        if rest:
            self.nested(rest[1])

    def while_stmt(self, tree: Tree) -> None:
        _, _, cond, _, body = tree.children
        self.walk(cond)
        self.nested(body)

    def do_while_stmt(self, tree: Tree) -> None:
        _, body, _, _, cond, *_ = tree.children
        self.nested(body)
        self.walk(cond)

    def for_stmt(self, tree: Tree) -> None:
        _, _, init, _, cond, _, step, _, body = tree.children
        outer = self.push_scope(ScopeKind.BLOCK)
        self.walk_all(init.children)
        self.walk_all(cond.children)
        self.walk_all(step.children)
        self.nested(body)
        self.scope = outer

    def foreach_stmt(self, tree: Tree) -> None:
        _, _, names, _, container, _, body = tree.children
        self.walk(container)

        outer = self.push_scope(ScopeKind.BLOCK)
        for name in names.children:
            if is_token_type(name, TT.IDENT):
                self.declare(name, DeclKind.LOCAL)
        self.nested(body)
        self.scope = outer

    def switch_stmt(self, tree: Tree) -> None:
        subject = tree.children[2]
        self.walk(subject)

        outer = self.push_scope(ScopeKind.BLOCK)
        for clause in subtrees(tree)[1:]:
            if clause.data == 'case_clause':
                self.walk(clause.children[1])
            self.walk_all(clause.children[-1].children)
        self.scope = outer

    def try_stmt(self, tree: Tree) -> None:
        _, body, _, _, name, _, handler = tree.children
        self.nested(body)

        outer = self.push_scope(ScopeKind.BLOCK)
        # The caught value must be named even when unused
        decl_id = self.declare(name, DeclKind.PARAMETER)
        self.graph.decls[decl_id].quiet = True
        self.nested(handler)
        self.scope = outer

    # ========================================================================
    # Expressions
    # ========================================================================

    def name(self, tree: Tree) -> None:
        self.reference(tree.children[0])

    def literal(self, tree: Tree) -> None:
        pass

    this = literal
    base = literal
    root_ref = literal

    def paren(self, tree: Tree) -> Optional[int]:
        return self.walk(tree.children[1])

    def binary(self, tree: Tree) -> None:
        self.walk_all(tree.children)

    logical = binary
    ternary = binary
    array = binary
    args = binary

    def unary(self, tree: Tree) -> None:
        op, operand = tree.children
        self.update(operand, op)

    def postfix(self, tree: Tree) -> None:
        operand, op = tree.children
        self.update(operand, op)

    def update(self, operand, op: Tok) -> None:
        """++/-- read and write a plain name; other operators just read"""
        if op.type in (TT.INCR, TT.DECR) and tree_label(operand) == 'name':
            self.reference(operand.children[0], is_write=True)
        else:
            self.walk(operand)

    def assign(self, tree: Tree) -> None:
        target, op, value = tree.children
        self.walk(value)
        if tree_label(target) == 'name':
            # Compound operators read the old value
            self.reference(target.children[0], is_read=op.type is not TT.ASSIGN, is_write=True)
        else:
            self.walk(target)

    def newslot(self, tree: Tree) -> None:
        target, _, value = tree.children
        table_scope = self.walk(value)

        label = tree_label(target)
        if label in ('name', 'root_ref'):
            decl_id = self.declare(target.children[-1], DeclKind.TABLE_SLOT, self.graph.root)
            self.graph.decls[decl_id].table_scope = table_scope
        else:
            self.walk(target)

    def member(self, tree: Tree) -> None:
        obj = tree.children[0]
        if ident_value(obj) == STATE_BAG and tree_label(obj) == 'name':
            return
        self.walk(obj)

    def index(self, tree: Tree) -> None:
        obj, _, key, _ = tree.children
        self.walk(obj)
        self.walk(key)

    def call(self, tree: Tree) -> None:
        callee, args = tree.children
        if tree_label(callee) == 'name':
            self.reference(callee.children[0], is_call=True)
        else:
            self.walk(callee)
        self.walk(args)

    def inherit_call(self, tree: Tree) -> Optional[int]:
        callee, args = tree.children
        base, body = subtrees(args)

        if tree_label(callee) == 'name':
            self.reference(callee.children[0], is_call=True)
        else:
            self.walk(callee)
        self.walk(base)

        table_scope = self.walk(body)
        self.inherits.append(PendingInherit(
            table_scope, base, self.scope, self.next_seq(), self.function_depth > 0,
        ))
        return table_scope

    def function_expr(self, tree: Tree) -> None:
        _, params, body = tree.children
        self.function(params, body)

    def lambda_expr(self, tree: Tree) -> None:
        _, params, body = tree.children
        self.function(params, body)

    def hook_wrap(self, tree: Tree) -> None:
        # The wrapper's own parameter is bound inside the wrapped function
        _, params, fn = tree.children
        _, inner_params, inner_body = fn.children
        hook = subtrees(params)[0].children[0]
        self.function(inner_params, inner_body, hook=hook)

    def table(self, tree: Tree) -> int:
        outer = self.push_scope(ScopeKind.TABLE)
        table_scope = self.scope

        # All slots exist before any entry is evaluated
        slots = {}
        for entry in subtrees(tree):
            key = self.slot_key(entry)
            if key is not None:
                slots[id(entry)] = self.declare(key, DeclKind.TABLE_SLOT)

        for entry in subtrees(tree):
            label = entry.data
            if label == 'table_method':
                _, _, params, body = entry.children
                self.function(params, body)
            elif label in ('table_slot', 'table_json'):
                result = self.walk(entry.children[2])
                self.graph.decls[slots[id(entry)]].table_scope = result
            elif label == 'table_computed':
                self.walk(entry.children[1])
                self.walk(entry.children[4])

        self.scope = outer
        return table_scope

    @staticmethod
    def slot_key(entry: Tree) -> Optional[Tok]:
        label = entry.data
        if label in ('table_slot', 'table_method'):
            return entry.children[1] if label == 'table_method' else entry.children[0]
        if label == 'table_json':
            key = entry.children[0]
            # "name": value binds name
            return Tok(TT.IDENT, key.value[1:-1], key.start, key.end, key.line, key.column)
        return None

    # ========================================================================
    # Resolution
    # ========================================================================

    def resolve_inherits(self) -> None:
        for pending in self.inherits:
            name, decl_id = self.resolve_base(pending)
            target = self.graph.decls[decl_id].table_scope if decl_id is not None else None

            if target is None:
                logger.debug("open inheritance from %r", name)
                self.graph.scopes[pending.table_scope].open_fallback = True
                continue

            if not self.graph.link_fallback(pending.table_scope, target):
                self.diagnostics.append(Diagnostic(
                    DiagnosticKind.DUPLICATE_DECLARATION, Severity.ERROR,
                    f"Cyclic inheritance involving '{name}'", node_diagnostic_span(pending.base),
                ))

    def resolve_base(self, pending: PendingInherit):
        """Name and declaration an inheritance base refers to"""
        base = pending.base
        label = tree_label(base)

        if label == 'name':
            name = ident_value(base)
            decl_id, _ = self.graph.lookup(pending.scope, name, pending.seq, pending.deferred)
            if decl_id is None:
                decl_id = self.graph.find_root(name, pending.seq)
            return name, decl_id

        if label in ('root_ref', 'member'):
            name = base.children[-1].value
            return name, self.graph.find_root(name, pending.seq)

        if label == 'literal' and is_token_type(base.children[0], TT.STRING, TT.VERBATIM_STRING):
            text = base.children[0].value
            # "scripts/skills/skill" names the slot `skill`
            name = text.strip('@"').rstrip('/').rsplit('/', 1)[-1]
            return name, self.graph.find_root(name, pending.seq)

        return None, None

    def resolve_references(self) -> None:
        for ref in self.refs:
            decl_id, open_seen = self.graph.lookup(ref.scope, ref.name, ref.seq, ref.deferred)

            if decl_id is not None:
                decl = self.graph.decls[decl_id]
                if ref.is_write:
                    decl.writes += 1
                if ref.is_read:
                    decl.reads += 1
                continue

            if ref.name in self.known:
                continue
            if ref.is_call and open_seen:
                continue

            self.diagnostics.append(Diagnostic(
                DiagnosticKind.UNDECLARED_REFERENCE, Severity.ERROR,
                f"Undeclared variable '{ref.name}'", ref.span,
            ))

    def report_unused(self) -> None:
        for decl in self.graph.decls:
            if decl.reads or decl.quiet or decl.name == DISCARD:
                continue

            if decl.kind is DeclKind.LOCAL:
                severity = Severity.WARNING
            elif decl.kind is DeclKind.PARAMETER:
                severity = Severity.HINT
            else:
                continue

            self.diagnostics.append(Diagnostic(
                DiagnosticKind.UNUSED_LOCAL, severity,
                f"Unused variable '{decl.name}'", decl.span,
            ))

    def analyze(self, tree: Tree) -> List[Diagnostic]:
        try:
            self.visit(tree)
        except RecursionError:
            # Keep whatever the walk collected before the nesting got too deep
            logger.debug("analysis stopped at nesting limit")

        self.resolve_inherits()
        self.resolve_references()
        self.report_unused()

        logger.debug(
            "analyzed %d scopes, %d declarations, %d references",
            len(self.graph.scopes), len(self.graph.decls), len(self.refs),
        )
        return self.diagnostics


def analyze_tree(tree: Tree, known_globals: Iterable[str] = ()) -> List[Diagnostic]:
    return SemanticAnalyzer(known_globals).analyze(tree)
