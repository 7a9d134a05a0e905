"""Parser for indentation-nested dumpsys output.

Dumpsys sections are written as ``key: value`` lines with nested sections
introduced by a bare ``key:`` line followed by deeper-indented content.
Anything else (call ids, free-form log lines, closing braces) is collected
under the reserved ``_items`` key of the enclosing section.

Parsed values are one of:

- a primitive (``bool``, ``int``, ``float`` or ``str``)
- ``None`` for a ``key:`` line with nothing nested under it
- a ``DumpNode`` (``dict``) for a nested section
- a ``list`` of the above when the same key repeats in one section
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

Primitive = Union[bool, int, float, str]
DumpNode = dict[str, Any]
DumpValue = Union[Primitive, None, DumpNode, list]

ITEMS_KEY = "_items"

_LINE_RE = re.compile(r"^([^:]+):\s*(.*)$")
_NEWLINE_RE = re.compile(r"\r?\n")
_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$")

# Longer numerals stay strings; int() on them is slow and eventually refused
MAX_NUMBER_LENGTH = 64


def parse_primitive(text: str) -> Primitive:
    """Coerce a raw value into a bool, number or string.

    Only plain decimal notation counts as numeric, so ``nan``, ``inf``,
    hex literals, non-ASCII digits, whitespace-only strings and numerals
    longer than MAX_NUMBER_LENGTH are returned unchanged.
    """
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if len(text) > MAX_NUMBER_LENGTH:
        return text
    if _INT_RE.fullmatch(text):
        return int(text)
    if _FLOAT_RE.fullmatch(text):
        return float(text)
    return text


def add_field(node: DumpNode, key: str, value: DumpValue) -> None:
    """Store value under key, turning repeated keys into a list."""
    if key not in node:
        node[key] = value
    elif isinstance(node[key], list):
        node[key].append(value)
    else:
        node[key] = [node[key], value]


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


@dataclass
class _Frame:
    """An open section and the indentation of the line that opened it."""
    indent: int
    node: DumpNode


def parse_dump(text: str) -> DumpNode:
    """
    Parse an indented dumpsys block into nested dicts.

    Args:
        text: Raw dump text

    Returns:
        Root DumpNode. Never raises; unrecognised lines end up in ``_items``.
    """
    lines = _NEWLINE_RE.split(text)
    root: DumpNode = {}
    stack = [_Frame(-1, root)]

    for index, raw in enumerate(lines):
        content = raw.strip()
        if not content:
            continue
        indent = _indent_of(raw)

        # Close every section at or deeper than this line
        while len(stack) > 1 and indent <= stack[-1].indent:
            stack.pop()
        parent = stack[-1].node

        match = _LINE_RE.match(content)
        if not match:
            add_field(parent, ITEMS_KEY, content)
            continue

        key, value = match.group(1), match.group(2)
        if value != "":
            add_field(parent, key, parse_primitive(value))
            continue

        # Bare "key:" only opens a section if deeper content follows
        next_indent = _next_indent(lines, index + 1)
        if next_indent is not None and next_indent > indent:
            child: DumpNode = {}
            add_field(parent, key, child)
            stack.append(_Frame(indent, child))
        else:
            add_field(parent, key, None)

    return root


def _next_indent(lines: list[str], start: int) -> Optional[int]:
    """Indentation of the first non-blank line at or after start."""
    for index in range(start, len(lines)):
        if lines[index].strip():
            return _indent_of(lines[index])
    return None


def as_list(value: DumpValue) -> list:
    """Normalise a single value or a repeated-key list to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def child_node(node: Optional[DumpNode], key: str) -> Optional[DumpNode]:
    """
    Return the nested section stored under key.

    Repeated sections resolve to the first one. Primitives, ``None`` and
    missing keys all resolve to ``None``.
    """
    if not isinstance(node, dict):
        return None
    for value in as_list(node.get(key)):
        if isinstance(value, dict):
            return value
    return None
