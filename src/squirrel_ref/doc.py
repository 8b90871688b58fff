"""
Document algebra and width-aware printer used by the formatter.

A document is a tree of layout primitives:

- ``str``: literal text
- ``list``: concatenation
- ``Group``: printed flat if the whole group fits in the remaining width,
  otherwise in break mode
- ``Indent``: raises the indentation of line breaks inside it by one level
- ``Line``: a space (or nothing, when soft) in flat mode, a newline in break
  mode; hard lines always break
- ``IfBreak``: chooses between two documents by the enclosing group's mode
- ``LineSuffix``: text deferred to just before the next newline, used for
  trailing line comments
- ``BreakParent``: forces every enclosing group into break mode
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Tuple, Union

from typing_extensions import TypeAlias

Doc: TypeAlias = Union[str, List['Doc'], 'Group', 'Indent', 'Line', 'IfBreak', 'LineSuffix', 'BreakParent']


@dataclass
class Group:
    contents: Doc
    should_break: bool = False


@dataclass
class Indent:
    contents: Doc


@dataclass(frozen=True)
class Line:
    soft: bool = False
    hard: bool = False
    # Hard line that is dropped when the current line is still empty
    fresh: bool = False


@dataclass
class IfBreak:
    break_contents: Doc
    flat_contents: Doc = ''


@dataclass
class LineSuffix:
    contents: Doc


@dataclass(frozen=True)
class BreakParent:
    pass


BREAK_PARENT = BreakParent()
LINE = Line()
SOFTLINE = Line(soft=True)
HARDLINE: Doc = [Line(hard=True), BREAK_PARENT]
FRESHLINE: Doc = [Line(hard=True, fresh=True), BREAK_PARENT]


# ============================================================================
# Builders
# ============================================================================

def group(*parts: Doc, should_break: bool = False) -> Group:
    return Group(list(parts), should_break)

def indent(*parts: Doc) -> Indent:
    return Indent(list(parts))

def join(separator: Doc, docs: List[Doc]) -> List[Doc]:
    out: List[Doc] = []
    for i, doc in enumerate(docs):
        if i:
            out.append(separator)
        out.append(doc)
    return out


# ============================================================================
# Break Propagation
# ============================================================================

def propagate_breaks(doc: Doc) -> bool:
    """Mark every group that contains a hard break; return whether doc does"""
    if isinstance(doc, str):
        return False
    if isinstance(doc, list):
        found = False
        for part in doc:
            if propagate_breaks(part):
                found = True
        return found
    if isinstance(doc, BreakParent):
        return True
    if isinstance(doc, Line):
        return doc.hard
    if isinstance(doc, Group):
        if propagate_breaks(doc.contents):
            doc.should_break = True
        return doc.should_break
    if isinstance(doc, Indent):
        return propagate_breaks(doc.contents)
    if isinstance(doc, IfBreak):
        in_break = propagate_breaks(doc.break_contents)
        in_flat = propagate_breaks(doc.flat_contents)
        return in_break or in_flat
    if isinstance(doc, LineSuffix):
        # Deferred text does not break the group it is attached in
        propagate_breaks(doc.contents)
        return False

    raise TypeError(f"Unknown doc element: {doc!r}")


# ============================================================================
# Printer
# ============================================================================

class Mode(Enum):
    BREAK = auto()
    FLAT = auto()


Command = Tuple[int, Mode, Doc]


class Printer:
    """Prettier-style printer: a command stack of (indent level, mode, doc)"""

    def __init__(self, width: int, indent_unit: str = '\t', tab_width: int = 4):
        self.width = width
        self.indent_unit = indent_unit
        self.tab_width = tab_width

        self.out: List[str] = []
        self.column = 0
        self.line_has_content = False
        self.line_suffix: List[Command] = []

    def text_width(self, text: str) -> int:
        return sum(self.tab_width if ch == '\t' else 1 for ch in text)

    def indent_width(self, level: int) -> int:
        return level * self.text_width(self.indent_unit)

    # ========================================================================
    # Output
    # ========================================================================

    def write(self, text: str) -> None:
        if not text:
            return

        # Never produce two spaces in a row, nor a space at line start
        if text[0] == ' ' and (not self.line_has_content or (self.out and self.out[-1].endswith(' '))):
            text = text[1:]
            if not text:
                return

        self.out.append(text)

        newline = text.rfind('\n')
        if newline < 0:
            self.column += self.text_width(text)
            if text.strip():
                self.line_has_content = True
        else:
            tail = text[newline + 1:]
            self.column = self.text_width(tail)
            self.line_has_content = bool(tail.strip())

    def trim(self) -> None:
        """Strip trailing spaces and tabs from the output"""
        while self.out:
            last = self.out[-1].rstrip(' \t')
            if last:
                self.out[-1] = last
                return
            self.out.pop()

    def newline(self, level: int) -> None:
        self.trim()
        self.out.append('\n' + self.indent_unit * level)
        self.column = self.indent_width(level)
        self.line_has_content = False

    # ========================================================================
    # Fitting
    # ========================================================================

    def fits(self, next_cmd: Command, rest: List[Command], width: int) -> bool:
        """True if next_cmd, in flat mode, fits before the next line break.

        Looks past next_cmd into the pending commands, in their own modes,
        until a line break is reached.
        """
        rest_idx = len(rest)
        cmds: List[Tuple[Mode, Doc]] = [(next_cmd[1], next_cmd[2])]

        while width >= 0:
            if not cmds:
                if rest_idx == 0:
                    return True
                rest_idx -= 1
                _, mode, doc = rest[rest_idx]
                cmds.append((mode, doc))
                continue

            mode, doc = cmds.pop()

            if isinstance(doc, str):
                newline = doc.find('\n')
                if newline >= 0:
                    return width - self.text_width(doc[:newline]) >= 0
                width -= self.text_width(doc)
            elif isinstance(doc, list):
                for part in reversed(doc):
                    cmds.append((mode, part))
            elif isinstance(doc, Indent):
                cmds.append((mode, doc.contents))
            elif isinstance(doc, Group):
                cmds.append((Mode.BREAK if doc.should_break else mode, doc.contents))
            elif isinstance(doc, IfBreak):
                cmds.append((mode, doc.break_contents if mode is Mode.BREAK else doc.flat_contents))
            elif isinstance(doc, Line):
                if mode is Mode.BREAK or doc.hard:
                    return True
                if not doc.soft:
                    width -= 1

        return False

    # ========================================================================
    # Printing
    # ========================================================================

    def print(self, doc: Doc) -> str:
        propagate_breaks(doc)
        cmds: List[Command] = [(0, Mode.BREAK, doc)]

        while cmds or self.line_suffix:
            if not cmds:
                cmds.extend(reversed(self.line_suffix))
                self.line_suffix = []
                continue

            level, mode, doc = cmds.pop()

            if isinstance(doc, str):
                self.write(doc)
            elif isinstance(doc, list):
                for part in reversed(doc):
                    cmds.append((level, mode, part))
            elif isinstance(doc, Indent):
                cmds.append((level + 1, mode, doc.contents))
            elif isinstance(doc, Group):
                if mode is Mode.FLAT and not doc.should_break:
                    cmds.append((level, Mode.FLAT, doc.contents))
                elif doc.should_break:
                    cmds.append((level, Mode.BREAK, doc.contents))
                else:
                    flat = (level, Mode.FLAT, doc.contents)
                    fits = self.fits(flat, cmds, self.width - self.column)
                    cmds.append(flat if fits else (level, Mode.BREAK, doc.contents))
            elif isinstance(doc, IfBreak):
                chosen = doc.break_contents if mode is Mode.BREAK else doc.flat_contents
                cmds.append((level, mode, chosen))
            elif isinstance(doc, LineSuffix):
                self.line_suffix.append((level, mode, doc.contents))
            elif isinstance(doc, BreakParent):
                pass
            elif isinstance(doc, Line):
                if mode is Mode.FLAT and not doc.hard:
                    if not doc.soft:
                        self.write(' ')
                    continue

                if self.line_suffix:
                    # Flush deferred comments before breaking the line
                    cmds.append((level, mode, doc))
                    cmds.extend(reversed(self.line_suffix))
                    self.line_suffix = []
                    continue

                if doc.fresh and not self.line_has_content:
                    continue

                self.newline(level)
            else:
                raise TypeError(f"Unknown doc element: {doc!r}")

        self.trim()
        return ''.join(self.out)


def print_doc(doc: Doc, width: int = 100, indent_unit: str = '\t', tab_width: int = 4) -> str:
    return Printer(width, indent_unit, tab_width).print(doc)


def show(doc: Optional[Doc]) -> str:
    """Debug rendering of a document tree"""
    if doc is None:
        return 'None'
    if isinstance(doc, str):
        return repr(doc)
    if isinstance(doc, list):
        return '[' + ', '.join(show(d) for d in doc) + ']'
    if isinstance(doc, Group):
        flag = '!' if doc.should_break else ''
        return f'group{flag}({show(doc.contents)})'
    if isinstance(doc, Indent):
        return f'indent({show(doc.contents)})'
    if isinstance(doc, IfBreak):
        return f'if_break({show(doc.break_contents)}, {show(doc.flat_contents)})'
    if isinstance(doc, LineSuffix):
        return f'line_suffix({show(doc.contents)})'
    if isinstance(doc, Line):
        if doc.hard:
            return 'freshline' if doc.fresh else 'hardline'
        return 'softline' if doc.soft else 'line'
    return 'break_parent'
