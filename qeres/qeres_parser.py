"""
Statement parsing for Qeres requests.

A statement is a call-shaped string such as ``getUser(42, admin)``. Parsing is
pure: it never resolves names and never invokes anything. Request keys are
classified here too (variable declarations and destructuring patterns), so the
dispatcher only deals with already-decoded shapes.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

# First `name(` occurrence in a statement
CALL_RE = re.compile(r'(\w+)\(')
# Commas that are not escaped with a backslash
COMMA_RE = re.compile(r'(?<!\\),')
VARIABLE_RE = re.compile(r'^\$\{(\w+)\}$')
DECLARATION_RE = re.compile(r'^\$(\w+)$')
DESTRUCTURE_RE = re.compile(r'^\{\s*(\w+(?:\.\w+)*(?:\s*,\s*\w+(?:\.\w+)*)*)\s*\}$')


@dataclass(frozen=True)
class ParsedCall:
    """The decoded form of a statement: callable name and raw argument strings."""
    name: str
    args: Tuple[str, ...] = ()


def strip_argument(raw: str) -> str:
    """Trim surrounding whitespace from one argument."""
    return raw.strip()


def unescape_commas(arg: str) -> str:
    """Turn ``\\,`` back into a literal comma once the argument is split."""
    return arg.replace('\\,', ',')


def split_arguments(text: str) -> List[str]:
    """Split an argument list on unescaped commas.

    An empty (or all-whitespace) argument list yields no arguments, so that
    ``name()`` can call a callable that takes none.
    """
    if not text.strip():
        return []
    return [unescape_commas(strip_argument(piece)) for piece in COMMA_RE.split(text)]


def parse_statement(statement: Any) -> Optional[ParsedCall]:
    """Parse ``name(arg0, arg1, ...)``; returns None when it is not a statement.

    Only the matched ``name(`` is cut out of the text, so anything written
    before it stays part of the first argument.
    """
    if not isinstance(statement, str):
        return None
    text = statement.strip()
    m = CALL_RE.search(text)
    if not m:
        return None
    inner = text[:m.start()] + text[m.end():]
    if inner.endswith(')'):
        inner = inner[:-1]
    return ParsedCall(name=m.group(1), args=tuple(split_arguments(inner)))


def variable_reference(arg: Any) -> Optional[str]:
    """Return the variable name when the whole argument is ``${name}``."""
    if not isinstance(arg, str):
        return None
    m = VARIABLE_RE.match(arg)
    return m.group(1) if m else None


def unescape_literal(arg: str) -> str:
    # `\${x}` is the literal text `${x}`
    if arg.startswith('\\${'):
        return arg[1:]
    return arg


def declaration_name(key: Any) -> Optional[str]:
    """Return ``name`` for a ``$name`` declaration key."""
    if not isinstance(key, str):
        return None
    m = DECLARATION_RE.match(key)
    return m.group(1) if m else None


def destructuring_paths(key: Any) -> Optional[List[Tuple[str, ...]]]:
    """Decode ``{a, b.c}`` into ``[("a",), ("b", "c")]``; None for plain keys."""
    if not isinstance(key, str):
        return None
    m = DESTRUCTURE_RE.match(key.strip())
    if not m:
        return None
    return [tuple(part.strip().split('.')) for part in m.group(1).split(',')]


__all__ = [
    "ParsedCall",
    "parse_statement",
    "split_arguments",
    "strip_argument",
    "unescape_commas",
    "variable_reference",
    "unescape_literal",
    "declaration_name",
    "destructuring_paths",
]
