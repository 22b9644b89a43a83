"""
======================================
MySQL escaping and templating helpers.
======================================

This module provides the low-level primitives the query builder renders
with. Identifiers are quoted with backticks and literals are escaped with
PyMySQL's escape table. Two template styles are supported.

Functions:
- escape_id: Quote an identifier (or a list of identifiers)
- escape: Render a Python value as a SQL literal (Raw values pass through)
- format_sql: Substitute positional ``?`` / ``??`` placeholders
- format_named: Substitute ``:name`` / ``::name`` / ``:$name`` tokens
- assignment_fragments: Render a mapping as ``column=literal`` pieces
- update_string: Render a mapping as an UPDATE assignment list
- limit_string: Render a LIMIT clause from skip/limit row counts

Placeholder styles:
    ?        next value, escaped as a literal
    ??       next value, escaped as an identifier
    :name    mapping value, escaped as a literal
    ::name   mapping value, escaped as an identifier
    :$name   mapping value, inserted verbatim (no escaping)

Usage:
    from sql.escape import escape, escape_id, format_sql, format_named

    format_sql('SELECT * FROM ?? WHERE `id`=?', ['users', 42])
    # SELECT * FROM `users` WHERE `id`=42

    format_named('`name`=:name', {'name': "O'Brien"})
    # `name`='O\\'Brien'
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Sequence

from pymysql.converters import escape_string as _escape_literal

from .exceptions import ValidationError

# MySQL needs a row count whenever an offset is given; this is its "no limit".
MAX_LIMIT_ROWS = 18446744073709551615

_POSITIONAL_PLACEHOLDER = re.compile(r"\?\??")
_NAMED_PLACEHOLDER = re.compile(r":(:?)([\w$]+)")


class Raw(str):
    """SQL text that escape() inserts verbatim, e.g. ``Raw('NOW()')``."""
    pass


def escape_id(name: Any) -> str:
    """
    Quote an identifier with backticks.

    Embedded backticks are doubled and dots split qualified names, so
    ``db.users`` becomes ```db`.`users```. Sequences render as a
    comma-separated identifier list.

    Args:
        name: Identifier or sequence of identifiers

    Returns:
        Quoted identifier text
    """
    if isinstance(name, (list, tuple)):
        return ", ".join(escape_id(item) for item in name)
    text = str(name).replace("`", "``").replace(".", "`.`")
    return f"`{text}`"


def escape_string(value: str) -> str:
    """Quote a string literal, backslash-escaping special characters."""
    return f"'{_escape_literal(value)}'"


def _format_datetime(value: datetime) -> str:
    millis = value.microsecond // 1000
    return f"{value:%Y-%m-%d %H:%M:%S}.{millis:03d}"


def _sequence_to_list(values: Sequence[Any]) -> str:
    parts = []
    for item in values:
        if isinstance(item, (list, tuple)):
            parts.append(f"({_sequence_to_list(item)})")
        else:
            parts.append(escape(item))
    return ", ".join(parts)


def escape(value: Any) -> str:
    """
    Render a Python value as a MySQL literal.

    Args:
        value: None, bool, number, string, date/datetime, bytes,
            sequence or mapping

    Returns:
        SQL literal text

    Raises:
        ValidationError: If a float is NaN or infinite
    """
    if value is None:
        return "NULL"
    if isinstance(value, Raw):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(f"cannot escape non-finite number {value}")
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValidationError(f"cannot escape non-finite number {value}")
        return str(value)
    if isinstance(value, datetime):
        return escape_string(_format_datetime(value))
    if isinstance(value, date):
        return escape_string(value.isoformat())
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    if isinstance(value, (list, tuple)):
        return _sequence_to_list(value)
    if isinstance(value, Mapping):
        return ", ".join(f"{escape_id(k)} = {escape(v)}" for k, v in value.items())
    return escape_string(str(value))


def format_sql(template: str, values: Sequence[Any]) -> str:
    """
    Substitute positional placeholders left to right.

    ``??`` takes the next value as an identifier, ``?`` as a literal.
    Placeholders left over once values run out are kept as written.

    Args:
        template: SQL text containing placeholders
        values: Positional values

    Returns:
        Rendered SQL text
    """
    remaining = iter(values)

    def _replace(match):
        try:
            value = next(remaining)
        except StopIteration:
            return match.group(0)
        if match.group(0) == "??":
            return escape_id(value)
        return escape(value)

    return _POSITIONAL_PLACEHOLDER.sub(_replace, template)


def format_named(template: str, values: Mapping[str, Any]) -> str:
    """
    Substitute named placeholders from a mapping.

    Keys beginning with ``$`` are inserted verbatim; they carry
    pre-rendered SQL such as an ORDER BY or LIMIT clause. Tokens whose
    key is missing from ``values`` stay in the text unchanged.

    Args:
        template: SQL text containing ``:name`` tokens
        values: Mapping of token name to value

    Returns:
        Rendered SQL text
    """
    def _replace(match):
        as_identifier, key = match.group(1), match.group(2)
        if key not in values:
            return match.group(0)
        value = values[key]
        if key.startswith("$"):
            return str(value)
        if as_identifier:
            return escape_id(value)
        return escape(value)

    return _NAMED_PLACEHOLDER.sub(_replace, template)


def assignment_fragments(data: Mapping[str, Any]) -> List[str]:
    """Render each key/value pair as a quoted ``column=literal`` fragment."""
    return [f"{escape_id(name)}={escape(value)}" for name, value in data.items()]


def update_string(data: Mapping[str, Any]) -> str:
    """
    Render an UPDATE assignment list.

    Args:
        data: Column to value mapping

    Returns:
        Assignments such as ```a`=1, `b`=2``
    """
    return ", ".join(assignment_fragments(data))


def limit_string(skip: int, limit: int) -> str:
    """
    Render the LIMIT clause for a skip/limit pair.

    Args:
        skip: Rows to skip (0 for none)
        limit: Rows to return (0 for unbounded)

    Returns:
        LIMIT clause, or an empty string when both values are 0
    """
    if limit > 0:
        if skip > 0:
            return f"LIMIT {skip},{limit}"
        return f"LIMIT {limit}"
    if skip > 0:
        return f"LIMIT {skip},{MAX_LIMIT_ROWS}"
    return ""
