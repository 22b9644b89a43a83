"""
==============================
Schema codec and table models.
==============================

Higher-level layer over the query builder: field conversion and
per-table builders bound to a connection.

Modules:
    schema: Field declarations and value conversion
    model: Model and Manager

Architecture:
    - model.py imports from schema.py, sql/ and utils/ (not vice versa)
    - sql/ has no knowledge of schemas or connections

Example:
    >>> from models import Manager
    >>>
    >>> manager = Manager()
    >>> users = manager.register_model('User', table='users', primary='id',
    ...                                fields={'id': True, 'name': True})
    >>> users.find('id', 'name').limit(10).build()
    'SELECT `id`, `name` FROM `users`   LIMIT 10'
"""

__all__ = [
    'Manager', 'Model', 'ModelError', 'ModelQuery',
    'Schema', 'SchemaError', 'FieldCodec',
]

from .model import Manager, Model, ModelError, ModelQuery
from .schema import FieldCodec, Schema, SchemaError
