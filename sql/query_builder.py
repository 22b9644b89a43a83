"""
===================
Fluent SQL builder.
===================

This module provides QueryBuilder, a stateful accumulator that renders one
SQL statement against one MySQL table. A builder is created per statement,
receives exactly one statement-establishing call, any number of modifier
calls in any order, and is finally rendered with build() or handed to an
executor with exec().

Statement-establishing methods (exactly one per builder):
- select: SELECT with an optional column list
- count: SELECT COUNT(*) AS alias
- insert: INSERT of one or many rows
- update: UPDATE with assignments (more can be added with set)
- delete: DELETE
- sql: custom SQL template with :$fields, :$orderBy and :$limit slots

Modifiers:
- where / and_: accumulate AND-joined conditions
- order: ORDER BY clause (last call wins)
- skip / limit: pagination, recomputed on every call
- fields: projection for SELECT or custom templates
- options: batch form of fields, order, skip and limit
- set: extra UPDATE assignments

Usage:
    from sql.query_builder import QueryBuilder

    sql = (
        QueryBuilder('users')
        .select('name', 'age')
        .where({'status': 'active'})
        .and_('`age` > ?', [18])
        .order('`id` DESC')
        .skip(10)
        .limit(20)
        .build()
    )
    # SELECT `name`, `age` FROM `users` WHERE `status`='active' AND `age` > 18
    #   ORDER BY `id` DESC LIMIT 10,20
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from .escape import (
    Raw,
    assignment_fragments,
    escape,
    escape_id,
    format_named,
    format_sql,
    limit_string,
)
from .exceptions import (
    ConfigurationError,
    InvalidStateError,
    UnsupportedKindError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ALL_COLUMNS = "*"
SORT_DIRECTIONS = {"ASC", "DESC"}

Values = Union[Sequence[Any], Mapping[str, Any]]
Executor = Callable[..., Any]


class QueryKind(Enum):
    """Statement shapes a builder can render."""

    UNSET = ""
    SELECT = "SELECT"
    COUNT = "COUNT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CUSTOM = "CUSTOM"


def render_template(template: str, values: Values) -> str:
    """
    Render a SQL template with positional or named values.

    Args:
        template: SQL text with ``?`` or ``:name`` placeholders
        values: List/tuple for positional, mapping for named substitution

    Returns:
        Rendered SQL text

    Raises:
        ValidationError: If template is not a string or values has the
            wrong type
    """
    if not isinstance(template, str):
        raise ValidationError("first parameter must be a string")
    if isinstance(values, Mapping):
        return format_named(template, values)
    if isinstance(values, (list, tuple)):
        return format_sql(template, values)
    raise ValidationError("second parameter must be a list or a mapping")


@dataclass(frozen=True)
class RawTemplate:
    """SQL text, optionally rendered with positional or named values."""

    text: str
    values: Optional[Values] = None

    def fragments(self) -> List[str]:
        if self.values is None:
            return [self.text]
        return [render_template(self.text, self.values)]


@dataclass(frozen=True)
class FieldMapping:
    """Column to value pairs, each rendered as ``column=literal``."""

    data: Mapping[str, Any]

    def fragments(self) -> List[str]:
        return assignment_fragments(self.data)


ClauseInput = Union[RawTemplate, FieldMapping]


def to_clause_input(payload: Any, values: Optional[Values] = None,
                    what: str = "condition") -> ClauseInput:
    """
    Normalise a where/update payload into a clause input variant.

    Args:
        payload: SQL string, mapping, or an existing RawTemplate/FieldMapping
        values: Values for a string payload
        what: Name used in error messages

    Returns:
        RawTemplate or FieldMapping

    Raises:
        ValidationError: For empty strings or unsupported payload types
    """
    if isinstance(payload, (RawTemplate, FieldMapping)):
        return payload
    if isinstance(payload, str):
        if not payload.strip():
            raise ValidationError(f"missing {what}")
        if values is not None and not isinstance(values, (list, tuple, Mapping)):
            raise ValidationError("second parameter must be a list or a mapping")
        return RawTemplate(payload, values)
    if isinstance(payload, Mapping):
        if values is not None:
            raise ValidationError(f"values are only accepted with a string {what}")
        return FieldMapping(payload)
    raise ValidationError(f"{what} must be a string or a mapping")


@dataclass
class QueryState:
    """Mutable state accumulated by a QueryBuilder.

    Attributes:
        kind: Statement kind, set once
        projection: Escaped column references, None until decided
        conditions: Rendered WHERE fragments, AND-joined
        count_alias: Escaped alias for COUNT statements
        update_fragments: Rendered ``column=expression`` assignments
        insert_columns: Escaped column names taken from the first row
        insert_rows: Escaped literals per row, in column order
        custom_template: Raw SQL for CUSTOM statements
        order_clause: Rendered ``ORDER BY ...`` text
        skip_rows: Rows to skip
        limit_rows: Rows to return, 0 for unbounded
        limit_clause: LIMIT clause derived from skip_rows/limit_rows
    """

    kind: QueryKind = QueryKind.UNSET
    projection: Optional[List[str]] = None
    conditions: List[str] = field(default_factory=list)
    count_alias: Optional[str] = None
    update_fragments: List[str] = field(default_factory=list)
    insert_columns: List[str] = field(default_factory=list)
    insert_rows: List[List[str]] = field(default_factory=list)
    custom_template: Optional[str] = None
    order_clause: str = ""
    skip_rows: int = 0
    limit_rows: int = 0
    limit_clause: str = ""


class QueryBuilder:
    """Build a single SQL statement for one table.

    Each method mutates the builder and returns it, so calls chain. The
    builder is not meant to be shared between concurrent callers or
    reused for a second statement.

    Attributes:
        table_name: Table the statement targets
        kind: Statement kind established so far

    Example:
        >>> query = QueryBuilder('test1')
        >>> query.update().set({'a': 123, 'b': 456}).where({'b': 777}).limit(12).build()
        'UPDATE `test1` SET `a`=123, `b`=456 WHERE `b`=777 LIMIT 12'
    """

    _RENDERERS = {
        QueryKind.SELECT: "_build_select",
        QueryKind.COUNT: "_build_count",
        QueryKind.INSERT: "_build_insert",
        QueryKind.UPDATE: "_build_update",
        QueryKind.DELETE: "_build_delete",
        QueryKind.CUSTOM: "_build_custom",
    }

    def __init__(self, table: str, executor: Optional[Executor] = None):
        """Initialize the builder.

        Args:
            table: Target table name
            executor: Optional callable ``(sql, callback=None)`` used by exec()

        Raises:
            ValidationError: If table is missing or not a string, or
                executor is not callable
        """
        if not table:
            raise ValidationError("must provide table name")
        if not isinstance(table, str):
            raise ValidationError("table name must be a string")
        if executor is not None and not callable(executor):
            raise ValidationError("executor must be callable")

        self._table_name = table
        self._executor = executor
        self._state = QueryState()

    def __repr__(self) -> str:
        return f"<QueryBuilder table={self._table_name!r} kind={self._state.kind.name}>"

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def kind(self) -> QueryKind:
        return self._state.kind

    # ------------------------------------------------------------------
    # Statement kinds
    # ------------------------------------------------------------------

    def _ensure_unset(self) -> None:
        if self._state.kind is not QueryKind.UNSET:
            raise InvalidStateError(
                f'cannot change query type after it was set to "{self._state.kind.value}"'
            )

    @staticmethod
    def _escape_columns(columns: Sequence[Any]) -> Optional[List[str]]:
        if not columns:
            return None
        escaped = []
        for name in columns:
            if not isinstance(name, str) or not name:
                raise ValidationError("field name must be a non-empty string")
            escaped.append(escape_id(name))
        return escaped

    def select(self, *columns: str) -> "QueryBuilder":
        """
        Start a SELECT statement.

        Args:
            *columns: Column names; none means every column unless
                fields() or options() supplies a list later

        Returns:
            The builder
        """
        self._ensure_unset()
        projection = self._escape_columns(columns)
        self._state.projection = projection
        self._state.kind = QueryKind.SELECT
        return self

    def count(self, alias: str) -> "QueryBuilder":
        """
        Start a ``SELECT COUNT(*) AS alias`` statement.

        Args:
            alias: Name of the result column

        Returns:
            The builder
        """
        self._ensure_unset()
        if not isinstance(alias, str) or not alias:
            raise ValidationError("count alias must be a non-empty string")
        self._state.count_alias = escape_id(alias)
        self._state.kind = QueryKind.COUNT
        return self

    def insert(self, data: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]) -> "QueryBuilder":
        """
        Start an INSERT statement.

        The column list is taken from the keys of the first row; every
        other row must have exactly the same keys.

        Args:
            data: One row mapping or a non-empty list of row mappings

        Returns:
            The builder

        Raises:
            ValidationError: If data is empty or rows disagree on columns
        """
        self._ensure_unset()
        if isinstance(data, Mapping):
            rows = [data]
        elif isinstance(data, (list, tuple)):
            if not data:
                raise ValidationError("data array must at least have 1 item")
            rows = list(data)
        else:
            raise ValidationError("data must be a mapping or a list of mappings")

        if not isinstance(rows[0], Mapping):
            raise ValidationError("every item of data array must be a mapping")
        columns = list(rows[0].keys())
        if not columns:
            raise ValidationError("insert data cannot be empty")
        expected = set(columns)

        rendered_rows = []
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise ValidationError("every item of data array must be a mapping")
            for name in columns:
                if name not in row:
                    raise ValidationError(f'every item of data array must have field "{name}"')
            extra = [name for name in row if name not in expected]
            if extra:
                raise ValidationError(f'item {index} of data array has unexpected field "{extra[0]}"')
            rendered_rows.append([escape(row[name]) for name in columns])

        self._state.insert_columns = [escape_id(name) for name in columns]
        self._state.insert_rows = rendered_rows
        self._state.kind = QueryKind.INSERT
        return self

    def update(self, data: Any = None, values: Optional[Values] = None) -> "QueryBuilder":
        """
        Start an UPDATE statement.

        Supported forms:
            update('`a`=`a`+1')
            update('`a`=:a+1', {'a': 123})
            update('`a`=?+1', [123])
            update({'a': 1})
            update()                      # assignments supplied via set()

        Args:
            data: Assignment template or column mapping
            values: Values for a template

        Returns:
            The builder
        """
        self._ensure_unset()
        fragments = []
        if data is not None:
            fragments = to_clause_input(data, values, "update data").fragments()
        self._state.update_fragments.extend(fragments)
        self._state.kind = QueryKind.UPDATE
        return self

    def set(self, data: Any, values: Optional[Values] = None) -> "QueryBuilder":
        """
        Append assignments to an UPDATE statement.

        Args:
            data: Column mapping (or assignment template)
            values: Values for a template

        Returns:
            The builder

        Raises:
            InvalidStateError: If the statement is not an UPDATE
        """
        if self._state.kind is not QueryKind.UPDATE:
            raise InvalidStateError("query type must be UPDATE, please call .update() before")
        fragments = to_clause_input(data, values, "update data").fragments()
        self._state.update_fragments.extend(fragments)
        return self

    def delete(self) -> "QueryBuilder":
        """Start a DELETE statement."""
        self._ensure_unset()
        self._state.kind = QueryKind.DELETE
        return self

    def sql(self, template: str) -> "QueryBuilder":
        """
        Start a custom statement from raw SQL.

        The template is stored as written. ``:$fields``, ``:$orderBy``,
        ``:$limit``, ``:$skipRows`` and ``:$limitRows`` are filled in by
        build() from the state at that moment, so modifiers called after
        sql() still apply.

        Args:
            template: Raw SQL text

        Returns:
            The builder
        """
        self._ensure_unset()
        if not isinstance(template, str) or not template.strip():
            raise ValidationError("sql template must be a non-empty string")
        self._state.custom_template = template
        self._state.kind = QueryKind.CUSTOM
        return self

    # ------------------------------------------------------------------
    # Modifiers
    # ------------------------------------------------------------------

    def format(self, template: str, values: Values) -> str:
        """
        Render a template with the builder's escaping rules.

        Args:
            template: SQL text
            values: List for ``?`` placeholders, mapping for ``:name``

        Returns:
            Rendered SQL text
        """
        return render_template(template, values)

    def where(self, condition: Any, values: Optional[Values] = None) -> "QueryBuilder":
        """
        Add conditions, AND-joined with any existing ones.

        Supported forms:
            where('`a`=1')
            where({'a': 1, 'b': 22})
            where('`a`=:a AND `b`=:b', {'a': 123, 'b': 456})
            where('`a`=? AND `b`=?', [123, 456])

        An empty mapping adds nothing.

        Args:
            condition: SQL template or column mapping
            values: Values for a template

        Returns:
            The builder
        """
        clause = to_clause_input(condition, values, "condition")
        self._state.conditions.extend(clause.fragments())
        return self

    and_ = where

    def order(self, template: str, values: Optional[Values] = None) -> "QueryBuilder":
        """
        Set the ORDER BY clause, replacing any previous one.

        Values equal to ``ASC`` or ``DESC`` (any case) are inserted as bare
        keywords, so ``order('`a` ?', ['DESC'])`` renders ``ORDER BY `a` DESC``.

        Args:
            template: Ordering expression, e.g. ``'`id` DESC'``
            values: Optional values substituted into the template

        Returns:
            The builder
        """
        if not isinstance(template, str) or not template.strip():
            raise ValidationError("order must be a non-empty string")
        if values is None:
            body = template
        else:
            body = render_template(template, self._sort_values(values))
        self._state.order_clause = f"ORDER BY {body}"
        return self

    @staticmethod
    def _sort_values(values: Any) -> Any:
        def _keyword(value):
            if isinstance(value, str) and value.upper() in SORT_DIRECTIONS:
                return Raw(value.upper())
            return value

        if isinstance(values, Mapping):
            return {key: _keyword(value) for key, value in values.items()}
        if isinstance(values, (list, tuple)):
            return [_keyword(value) for value in values]
        return values

    def fields(self, *columns: str) -> "QueryBuilder":
        """Set the projection used by SELECT and the ``:$fields`` slot."""
        self._state.projection = self._escape_columns(columns)
        return self

    @staticmethod
    def _row_count(rows: Any) -> int:
        if isinstance(rows, bool) or not isinstance(rows, int):
            raise ValidationError("rows must be an integer")
        if rows < 0:
            raise ValidationError("rows must be >= 0")
        return rows

    def _refresh_limit(self) -> None:
        self._state.limit_clause = limit_string(self._state.skip_rows, self._state.limit_rows)

    def skip(self, rows: int) -> "QueryBuilder":
        """
        Skip the first ``rows`` rows.

        Args:
            rows: Non-negative row count

        Returns:
            The builder
        """
        self._state.skip_rows = self._row_count(rows)
        self._refresh_limit()
        return self

    def limit(self, rows: int) -> "QueryBuilder":
        """
        Return at most ``rows`` rows (0 means no limit).

        Args:
            rows: Non-negative row count

        Returns:
            The builder
        """
        self._state.limit_rows = self._row_count(rows)
        self._refresh_limit()
        return self

    def options(self, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "QueryBuilder":
        """
        Apply several modifiers at once.

        Options are applied in the order fields, order, skip, limit.

        Args:
            options: Mapping with any of ``fields``, ``order``, ``skip``, ``limit``
            **kwargs: Same keys as keyword arguments

        Returns:
            The builder

        Example:
            >>> QueryBuilder('test1').select().options(
            ...     skip=1, limit=2, order='`id` DESC', fields=['id', 'name']
            ... ).build()
            'SELECT `id`, `name` FROM `test1`  ORDER BY `id` DESC LIMIT 1,2'
        """
        merged = dict(options or {})
        merged.update(kwargs)
        unknown = set(merged) - {"fields", "order", "skip", "limit"}
        if unknown:
            raise ValidationError(f"unknown options: {', '.join(sorted(unknown))}")

        if merged.get("fields") is not None:
            columns = merged["fields"]
            if isinstance(columns, str):
                self.fields(columns)
            else:
                self.fields(*columns)
        if merged.get("order") is not None:
            order = merged["order"]
            if isinstance(order, (list, tuple)):
                self.order(*order)
            else:
                self.order(order)
        if merged.get("skip") is not None:
            self.skip(merged["skip"])
        if merged.get("limit") is not None:
            self.limit(merged["limit"])
        return self

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _table(self) -> str:
        return escape_id(self._table_name)

    def _projection(self) -> str:
        if self._state.projection is None:
            return ALL_COLUMNS
        return ", ".join(self._state.projection)

    def _where(self) -> str:
        if not self._state.conditions:
            return ""
        return "WHERE " + " AND ".join(self._state.conditions)

    @staticmethod
    def _join_segments(*segments: str) -> str:
        # Empty segments still contribute a separator.
        return " ".join(segments)

    def _build_select(self) -> str:
        return self._join_segments(
            f"SELECT {self._projection()} FROM {self._table()}",
            self._where(),
            self._state.order_clause,
            self._state.limit_clause,
        )

    def _build_count(self) -> str:
        # COUNT keeps the ORDER BY slot but never fills it.
        return self._join_segments(
            f"SELECT COUNT(*) AS {self._state.count_alias} FROM {self._table()}",
            self._where(),
            "",
            self._state.limit_clause,
        )

    def _build_insert(self) -> str:
        columns = ", ".join(self._state.insert_columns)
        rows = ",\n".join(f"({', '.join(row)})" for row in self._state.insert_rows)
        return f"INSERT INTO {self._table()} ({columns}) VALUES {rows}"

    def _build_update(self) -> str:
        if not self._state.update_fragments:
            raise ValidationError("update data cannot be empty")
        return self._join_segments(
            f"UPDATE {self._table()} SET {', '.join(self._state.update_fragments)}",
            self._where(),
            self._state.limit_clause,
        )

    def _build_delete(self) -> str:
        return self._join_segments(
            f"DELETE FROM {self._table()}",
            self._where(),
            self._state.limit_clause,
        )

    def _build_custom(self) -> str:
        return format_named(self._state.custom_template, {
            "$fields": self._projection(),
            "$orderBy": self._state.order_clause,
            "$limit": self._state.limit_clause,
            "$skipRows": self._state.skip_rows,
            "$limitRows": self._state.limit_rows,
        })

    def build(self) -> str:
        """
        Render the statement.

        Returns:
            SQL text with leading/trailing whitespace removed

        Raises:
            InvalidStateError: If no statement kind was established
            ValidationError: If an UPDATE has no assignments
            UnsupportedKindError: If the kind has no renderer
        """
        kind = self._state.kind
        if kind is QueryKind.UNSET:
            raise InvalidStateError(
                "query type is not set, please call .select(), .count(), .insert(), "
                ".update(), .delete() or .sql() before"
            )
        renderer = self._RENDERERS.get(kind)
        if renderer is None:
            raise UnsupportedKindError(f'invalid query type "{kind.value}"')

        sql = getattr(self, renderer)().strip()
        logger.debug(f"Built {kind.value} statement for {self._table_name}: {sql}")
        return sql

    def exec(self, callback: Optional[Callable[[Any, Any], None]] = None) -> Any:
        """
        Render the statement and pass it to the executor.

        Args:
            callback: Optional ``(err, result)`` completion callback,
                forwarded to the executor untouched

        Returns:
            Whatever the executor returns

        Raises:
            ConfigurationError: If the builder was created without an executor
        """
        if self._executor is None:
            raise ConfigurationError(
                "please provide an executor when creating the QueryBuilder instance"
            )
        sql = self.build()
        logger.debug(f"Executing {self._state.kind.value} statement on {self._table_name}")
        return self._executor(sql, callback)


def create_query_builder(table: str, executor: Optional[Executor] = None) -> QueryBuilder:
    """
    Create a QueryBuilder.

    Args:
        table: Target table name
        executor: Optional callable ``(sql, callback=None)``

    Returns:
        New QueryBuilder instance
    """
    return QueryBuilder(table, executor=executor)
