"""
Bind placeholder scanning for SQLite statements

Python's sqlite3 module does not expose sqlite3_bind_parameter_count() or
sqlite3_bind_parameter_name(), so the prepared statement registry recovers
them from the SQL text. Numbering follows SQLite:

- ``?``      next free index (largest index seen so far + 1), no name
- ``?NNN``   index NNN, named "?NNN"
- ``:name``, ``@name``, ``$name``  next free index the first time the name
  appears, the same index on every repeat

Placeholders inside string literals, quoted identifiers and comments are
ignored.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

NAMED_PREFIXES = (':', '@', '$')


@dataclass(frozen=True)
class Placeholder:
    """One placeholder occurrence in the SQL text"""

    index: int
    name: Optional[str]
    start: int
    end: int


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char == '_'


def scan_placeholders(sql: str) -> List[Placeholder]:
    """
    Find every bind placeholder in a SQL string.

    Args:
        sql: SQL text, possibly with string literals, quoted identifiers
            and comments

    Returns:
        Placeholder occurrences in text order, with their 1-based bind index
    """
    placeholders = []
    named_indexes: Dict[str, int] = {}
    max_index = 0
    closing = None
    in_line_comment = False
    in_block_comment = False
    length = len(sql)
    i = 0

    while i < length:
        char = sql[i]

        if in_line_comment:
            if char == '\n':
                in_line_comment = False
            i += 1
            continue

        if in_block_comment:
            if sql[i:i+2] == '*/':
                in_block_comment = False
                i += 2
            else:
                i += 1
            continue

        # Inside '...', "...", `...` or [...]; a doubled quote closes and
        # immediately reopens, which needs no special handling.
        if closing is not None:
            if char == closing:
                closing = None
            i += 1
            continue

        if sql[i:i+2] == '--':
            in_line_comment = True
            i += 2
            continue
        if sql[i:i+2] == '/*':
            in_block_comment = True
            i += 2
            continue

        if char in ("'", '"', '`'):
            closing = char
        elif char == '[':
            closing = ']'
        elif char == '?':
            end = i + 1
            while end < length and sql[end].isdigit():
                end += 1
            if end > i + 1:
                index = int(sql[i+1:end])
                name = sql[i:end]
            else:
                index = max_index + 1
                name = None
            max_index = max(max_index, index)
            placeholders.append(Placeholder(index=index, name=name, start=i, end=end))
            i = end
            continue
        elif (char in NAMED_PREFIXES
              and i + 1 < length and _is_name_char(sql[i+1])
              and not (i > 0 and _is_name_char(sql[i-1]))):
            end = i + 1
            while end < length and _is_name_char(sql[end]):
                end += 1
            name = sql[i:end]
            index = named_indexes.get(name)
            if index is None:
                max_index += 1
                index = max_index
                named_indexes[name] = index
            placeholders.append(Placeholder(index=index, name=name, start=i, end=end))
            i = end
            continue

        i += 1

    return placeholders


def parameter_names(placeholders: Sequence[Placeholder]) -> List[Optional[str]]:
    """
    Native name of every bind position, None where the position is anonymous.

    The list length is the statement's parameter count (the largest index).
    """
    count = max((p.index for p in placeholders), default=0)
    names: List[Optional[str]] = [None] * count
    for placeholder in placeholders:
        if placeholder.name is not None and names[placeholder.index - 1] is None:
            names[placeholder.index - 1] = placeholder.name
    return names


def substitute_nulls(sql: str, placeholders: Sequence[Placeholder]) -> str:
    """Replace every placeholder with a NULL literal"""
    parts = []
    pos = 0
    for placeholder in sorted(placeholders, key=lambda p: p.start):
        parts.append(sql[pos:placeholder.start])
        parts.append('NULL')
        pos = placeholder.end
    parts.append(sql[pos:])
    return ''.join(parts)


def bind_arguments(names: Sequence[Optional[str]],
                   values: Sequence[Any]) -> Union[Tuple[Any, ...], Dict[str, Any]]:
    """
    Shape positional bind values the way sqlite3.Cursor.execute() expects.

    Statements using ``:name``/``@name``/``$name`` placeholders get a mapping
    keyed by name (sqlite3 deprecates binding those from a sequence);
    everything else gets a tuple in bind-position order.
    """
    named = any(name is not None and name[0] in NAMED_PREFIXES for name in names)
    if named and all(name is not None for name in names):
        return {name[1:]: value for name, value in zip(names, values)}
    return tuple(values)
