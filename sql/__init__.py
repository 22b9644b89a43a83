"""
==========================================
SQL construction package for MySQL tables.
==========================================

This package renders single-table SQL statements from a fluent builder.
Nothing here opens a connection; execution is delegated to a callable
supplied by the caller (see utils.connection.Connection.executor).

The package follows a clear organization:
    - escape.py: Identifier/literal escaping and template substitution
    - exceptions.py: Error taxonomy shared by the package
    - query_builder.py: QueryBuilder and its statement renderers

Architecture:
    - query_builder.py imports from escape.py (not vice versa)
    - Every builder error is raised from the call that caused it
    - Rendering is deterministic: the same calls yield the same SQL text

Example:
    >>> from sql import QueryBuilder
    >>>
    >>> QueryBuilder('test1').insert({'a': 123, 'b': 456}).build()
    'INSERT INTO `test1` (`a`, `b`) VALUES (123, 456)'
    >>>
    >>> QueryBuilder('test1').sql('SELECT :$fields FROM `test1`').fields('a', 'b').build()
    'SELECT `a`, `b` FROM `test1`'
"""

__version__ = "1.0.0"
__all__ = [
    # Builder
    'QueryBuilder', 'QueryKind', 'QueryState', 'RawTemplate', 'FieldMapping',
    'create_query_builder', 'render_template',
    # Escaping
    'MAX_LIMIT_ROWS', 'Raw', 'escape', 'escape_id', 'format_sql', 'format_named',
    'update_string', 'limit_string',
    # Errors
    'QueryBuilderError', 'ValidationError', 'InvalidStateError',
    'ConfigurationError', 'UnsupportedKindError',
]

from .escape import (
    MAX_LIMIT_ROWS,
    Raw,
    escape,
    escape_id,
    format_named,
    format_sql,
    limit_string,
    update_string,
)
from .exceptions import (
    ConfigurationError,
    InvalidStateError,
    QueryBuilderError,
    UnsupportedKindError,
    ValidationError,
)
from .query_builder import (
    FieldMapping,
    QueryBuilder,
    QueryKind,
    QueryState,
    RawTemplate,
    create_query_builder,
    render_template,
)
