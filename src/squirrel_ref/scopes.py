"""
Scope graph for semantic analysis.

Scopes and declarations live in two flat lists and refer to each other by
integer index. Lexical parents form a tree; inheritance adds fallback edges
between table scopes, which are kept acyclic by ``link_fallback``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Set, Tuple

from .diagnostics import Span


class ScopeKind(Enum):
    ROOT = auto()
    FUNCTION = auto()
    TABLE = auto()
    BLOCK = auto()


class DeclKind(Enum):
    LOCAL = auto()
    TABLE_SLOT = auto()
    PARAMETER = auto()
    FUNCTION = auto()
    HOOK_PARAMETER = auto()
    CONSTANT = auto()


@dataclass
class Declaration:
    name: str
    kind: DeclKind
    span: Span
    scope: int
    # Position in walk order, compared against reference positions
    seq: int
    reads: int = 0
    writes: int = 0
    # Scope of the table literal this name was bound to, if any
    table_scope: Optional[int] = None
    # Never reported as unused
    quiet: bool = False


@dataclass
class Scope:
    id: int
    kind: ScopeKind
    parent: Optional[int]
    fallback: Optional[int] = None
    # Base of an inheritance call that could not be resolved
    open_fallback: bool = False
    names: Dict[str, List[int]] = field(default_factory=dict)


class ScopeGraph:
    def __init__(self) -> None:
        self.scopes: List[Scope] = []
        self.decls: List[Declaration] = []

    @property
    def root(self) -> int:
        return 0

    def new_scope(self, kind: ScopeKind, parent: Optional[int]) -> int:
        scope_id = len(self.scopes)
        self.scopes.append(Scope(scope_id, kind, parent))
        return scope_id

    def declare(self, scope_id: int, name: str, kind: DeclKind, span: Span, seq: int) -> Tuple[int, Optional[int]]:
        """Add a declaration; returns its id and the id of an earlier one
        with the same name in the same scope, if any."""
        decl_id = len(self.decls)
        self.decls.append(Declaration(name, kind, span, scope_id, seq))

        bucket = self.scopes[scope_id].names.setdefault(name, [])
        previous = bucket[-1] if bucket else None
        bucket.append(decl_id)
        return decl_id, previous

    # ========================================================================
    # Lookup
    # ========================================================================

    def visible(self, scope: Scope, name: str, seq: int, deferred: bool) -> Optional[int]:
        """Latest declaration of name in scope visible from position seq.

        Table slots exist before any of their siblings run, and code inside
        functions sees every root slot; everything else is visible from the
        point of declaration on.
        """
        for decl_id in reversed(scope.names.get(name, ())):
            if scope.kind is ScopeKind.TABLE:
                return decl_id
            if scope.kind is ScopeKind.ROOT and deferred:
                return decl_id
            if self.decls[decl_id].seq < seq:
                return decl_id
        return None

    def lookup(self, scope_id: int, name: str, seq: int, deferred: bool) -> Tuple[Optional[int], bool]:
        """Resolve name from scope_id: own names, then the fallback chain,
        then the lexical parent.

        Returns the declaration id (or None) and whether an open fallback was
        passed on the way, in which case an unknown base may provide the name.
        """
        open_seen = False
        current: Optional[int] = scope_id

        while current is not None:
            scope = self.scopes[current]
            found = self.visible(scope, name, seq, deferred)
            if found is not None:
                return found, open_seen

            found, open_chain = self.lookup_fallback(scope, name)
            open_seen = open_seen or open_chain
            if found is not None:
                return found, open_seen

            current = scope.parent

        return None, open_seen

    def lookup_fallback(self, scope: Scope, name: str) -> Tuple[Optional[int], bool]:
        open_seen = scope.open_fallback
        visited: Set[int] = {scope.id}
        fallback = scope.fallback

        while fallback is not None and fallback not in visited:
            visited.add(fallback)
            target = self.scopes[fallback]

            bucket = target.names.get(name)
            if bucket:
                return bucket[-1], open_seen

            open_seen = open_seen or target.open_fallback
            fallback = target.fallback

        return None, open_seen

    def find_root(self, name: str, seq: int) -> Optional[int]:
        """Root slot by name: the latest one before seq, else any later one"""
        bucket = self.scopes[self.root].names.get(name, [])
        for decl_id in reversed(bucket):
            if self.decls[decl_id].seq < seq:
                return decl_id
        return bucket[-1] if bucket else None

    # ========================================================================
    # Inheritance
    # ========================================================================

    def link_fallback(self, scope_id: int, target: int) -> bool:
        """Add a fallback edge unless it would close a cycle"""
        walk: Optional[int] = target
        visited: Set[int] = set()

        while walk is not None and walk not in visited:
            if walk == scope_id:
                return False
            visited.add(walk)
            walk = self.scopes[walk].fallback

        self.scopes[scope_id].fallback = target
        return True
