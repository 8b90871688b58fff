from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

from .diagnostics import Diagnostic, Severity
from .formatter import FormatOptions
from .pipeline import analyze, format_source, parse_document

USAGE = "usage: squirrel-ref {format,check,ast} [--width=N] [--spaces=N] [--global=NAME] [--verbose] [FILE|-|SOURCE]"

COMMANDS = ("format", "check", "ast")


def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg


def _int_flag(token: str) -> int:
    name, _, value = token.partition("=")
    try:
        number = int(value)
    except ValueError:
        raise SystemExit(f"{name} expects an integer, got {value!r}") from None
    if number <= 0:
        raise SystemExit(f"{name} must be positive")
    return number


def _report(diagnostics: List[Diagnostic]) -> None:
    for diag in diagnostics:
        print(diag)


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    options = FormatOptions()
    known_globals: List[str] = []
    verbose = False
    command = None
    arg = None

    for token in args:
        if token in ("-h", "--help"):
            print(USAGE)
            return 0

        if token == "--verbose":
            verbose = True
            continue

        if token.startswith("--width="):
            options.max_width = _int_flag(token)
            continue

        if token.startswith("--spaces="):
            options.indent = " " * _int_flag(token)
            continue

        if token.startswith("--global="):
            known_globals.append(token.split("=", 1)[1])
            continue

        if command is None:
            if token not in COMMANDS:
                raise SystemExit(f"Unknown command: {token}\n{USAGE}")
            command = token
        elif arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    if command is None:
        raise SystemExit(USAGE)

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    arg = arg or "-"
    source = _load_source(arg)

    if command == "format":
        sys.stdout.write(format_source(source, options))
        return 0

    if command == "ast":
        doc = parse_document(source)
        print(doc.tree.pretty())
        _report(doc.diagnostics)
        return 1 if doc.has_errors else 0

    diagnostics = analyze(source, known_globals)
    _report(diagnostics)
    return 1 if any(d.severity is Severity.ERROR for d in diagnostics) else 0


if __name__ == "__main__":
    sys.exit(main())
