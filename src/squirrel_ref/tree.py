"""Shared helpers for working with the concrete syntax tree.

Interior nodes are ``lark.Tree`` instances labelled with the construct name
(``if_stmt``, ``table``, ``call`` ...); leaves are the lexer's ``Tok``
objects, punctuation included, so every token of the source appears exactly
once in the tree, in source order.
"""
from __future__ import annotations

from typing import Iterator, List, Optional, Union

from lark import Tree
from typing_extensions import TypeAlias, TypeGuard

from .diagnostics import Span
from .token_types import TT, Tok

Node: TypeAlias = Union[Tree, Tok]

# Nodes whose tree children are independently formatted and recovered units
STATEMENT_CONTAINERS = frozenset({'program', 'block', 'case_body'})


def is_tree(node: object) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: object) -> TypeGuard[Tok]:
    return isinstance(node, Tok)

def is_token_type(node: object, *types: TT) -> bool:
    return is_token(node) and node.type in types

def tree_label(node: Node) -> Optional[str]:
    return node.data if is_tree(node) else None

def tree_children(node: Node) -> List[Node]:
    if not is_tree(node):
        return []

    return list(node.children)

def subtrees(node: Node) -> List[Tree]:
    return [ch for ch in tree_children(node) if is_tree(ch)]

def iter_tokens(node: Node) -> Iterator[Tok]:
    """Yield every leaf token under node in source order."""
    stack: List[Node] = [node]
    while stack:
        current = stack.pop()
        if is_token(current):
            yield current
        elif is_tree(current):
            stack.extend(reversed(current.children))

def first_token(node: Node) -> Optional[Tok]:
    return next(iter_tokens(node), None)

def last_token(node: Node) -> Optional[Tok]:
    if is_token(node):
        return node

    for child in reversed(tree_children(node)):
        found = last_token(child)
        if found is not None:
            return found

    return None

def node_span(node: Node) -> tuple[int, int]:
    """Source offsets covered by node's tokens, trivia excluded."""
    first = first_token(node)
    last = last_token(node)
    if first is None or last is None:
        return (0, 0)

    return (first.start, last.end)

def token_span(tok: Tok) -> Span:
    return Span(tok.start, tok.end, tok.line, tok.column)

def node_diagnostic_span(node: Node) -> Span:
    first = first_token(node)
    start, end = node_span(node)
    if first is None:
        return Span(start, end)
    return Span(start, end, first.line, first.column)

def node_source(node: Node, source: str) -> str:
    start, end = node_span(node)
    return source[start:end]

def unit_children(node: Node) -> List[Tree]:
    """Children that are formatted and error-recovered on their own.

    Statements of a statement list, clauses of a switch and entries of a
    table literal.
    """
    label = tree_label(node)
    if label in STATEMENT_CONTAINERS:
        return subtrees(node)
    if label == 'switch_stmt':
        return [ch for ch in subtrees(node) if ch.data in ('case_clause', 'default_clause')]
    if label == 'table':
        return subtrees(node)

    return []

def has_local_error(node: Node) -> bool:
    """True if node contains an error node outside its nested units."""
    if tree_label(node) == 'error':
        return True

    units = {id(u) for u in unit_children(node)}
    for child in tree_children(node):
        if id(child) in units or not is_tree(child):
            continue
        if has_local_error(child):
            return True

    return False

def ident_value(node: Node) -> Optional[str]:
    """Name carried by an identifier token or a ``name`` node."""
    if is_token_type(node, TT.IDENT):
        return node.value

    if tree_label(node) == 'name':
        return node.children[0].value

    return None
