"""
====================================
Table models and the model registry.
====================================

A Model ties a table name, a Schema and a Connection together and hands
out QueryBuilder instances whose exec() runs through that connection.
Rows written through a model pass through Schema.format_input(); rows read
through find() or sql() come back through Schema.format_output().

Classes:
    Model: Builders for one table with schema conversion
    ModelQuery: QueryBuilder that formats UPDATE mappings through the schema
    Manager: Owns a Connection and a registry of named models

Example:
    >>> from models.model import Manager
    >>>
    >>> manager = Manager(connections=[{'host': '127.0.0.1', 'database': 'test'}])
    >>> manager.register_model(
    ...     'User',
    ...     table='users',
    ...     primary='id',
    ...     fields={'id': True, 'name': True, 'email': True, 'info': 'json'},
    ... )
    >>> manager.model('User').insert({'name': 'Lei', 'email': 'me@example.com'}).exec()
    >>> manager.model('User').get_by_primary({'id': 123})
    >>> manager.model('User').find().where({'name': 'Lei'}).skip(10).limit(5).exec()
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from models.schema import Schema, SchemaError
from sql.query_builder import QueryBuilder
from utils.connection import Connection
from utils.database_utils import DatabaseConnectionError

logger = logging.getLogger(__name__)


class ModelError(Exception):
    """Exception raised for model registration and lookup errors."""
    pass


class ModelQuery(QueryBuilder):
    """QueryBuilder whose UPDATE mappings are formatted through a Schema.

    Both ``update({...})`` and ``update().set({...})`` drop undeclared
    fields and apply the input formatters before rendering. Templates are
    passed through unchanged.
    """

    def __init__(self, table: str, schema: Schema, executor: Optional[Callable[..., Any]] = None):
        super().__init__(table, executor=executor)
        self._schema = schema

    def _format(self, data: Any) -> Any:
        if isinstance(data, Mapping):
            return self._schema.format_input(data)
        return data

    def update(self, data: Any = None, values: Any = None) -> "ModelQuery":
        return super().update(self._format(data), values)

    def set(self, data: Any, values: Any = None) -> "ModelQuery":
        return super().set(self._format(data), values)


class Model:
    """Issue builders for one table.

    Attributes:
        name: Registered model name
        table: Table name
        schema: Schema used to convert rows
        primary: Primary key column names
        connection: Connection the builders execute on
    """

    def __init__(
        self,
        name: str,
        table: str,
        connection: Connection,
        fields: Union[Schema, Mapping[str, Any]],
        primary: Union[str, Sequence[str], None] = None
    ):
        """Initialize the model.

        Args:
            name: Model name
            table: Table name
            connection: Connection used by exec()
            fields: Schema, or field declarations to build one from
            primary: Primary key column name(s)

        Raises:
            ModelError: If table is missing
            SchemaError: If the field declarations are invalid
        """
        if not table or not isinstance(table, str):
            raise ModelError(f'model "{name}" must provide a table name')

        self.name = name
        self.table = table
        self.connection = connection
        self.schema = fields if isinstance(fields, Schema) else Schema(fields)
        if isinstance(primary, str):
            self.primary = [primary]
        else:
            self.primary = list(primary or [])

    def __repr__(self) -> str:
        return f"<Model {self.name} table={self.table!r}>"

    def _executor(self, decode: bool) -> Callable[..., Any]:
        def execute(sql: str, callback: Optional[Callable[[Any, Any], None]] = None) -> Any:
            try:
                result = self.connection.query(sql)
                # Writes return an affected_rows/insert_id summary, not rows.
                if decode and isinstance(result, list):
                    result = self.schema.format_output_list(result)
            except (DatabaseConnectionError, SchemaError) as e:
                if callback is not None:
                    callback(e, None)
                raise
            if callback is not None:
                callback(None, result)
            return result

        return execute

    def query(self, decode: bool = False) -> ModelQuery:
        """Get a fresh builder for this table bound to the connection."""
        return ModelQuery(self.table, self.schema, executor=self._executor(decode))

    def find(self, *columns: str) -> QueryBuilder:
        """Start a SELECT whose rows are decoded through the schema."""
        return self.query(decode=True).select(*columns)

    def count(self, alias: str = 'count') -> QueryBuilder:
        """Start a COUNT statement."""
        return self.query().count(alias)

    def insert(self, data: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]) -> QueryBuilder:
        """
        Start an INSERT with schema-formatted rows.

        Args:
            data: One row or a list of rows

        Returns:
            INSERT builder
        """
        if isinstance(data, Mapping):
            rows = self.schema.format_input(data)
        else:
            rows = self.schema.format_input_list(data)
        return self.query().insert(rows)

    def update(self, data: Any = None, values: Any = None) -> ModelQuery:
        """
        Start an UPDATE; mappings given here or to set() are formatted
        through the schema.

        Args:
            data: Column mapping or assignment template
            values: Values for a template

        Returns:
            UPDATE builder
        """
        return self.query().update(data, values)

    def delete(self) -> QueryBuilder:
        """Start a DELETE statement."""
        return self.query().delete()

    def sql(self, template: str) -> QueryBuilder:
        """Start a custom statement whose rows are decoded through the schema."""
        return self.query(decode=True).sql(template)

    def get_by_primary(
        self,
        keys: Mapping[str, Any],
        callback: Optional[Callable[[Any, Any], None]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one row by primary key.

        Args:
            keys: Mapping with a value for every primary key column
            callback: Optional ``(err, row)`` completion callback

        Returns:
            Decoded row, or None if nothing matched

        Raises:
            ModelError: If the model has no primary key or a key is missing
        """
        if not self.primary:
            raise ModelError(f'model "{self.name}" has no primary key')
        missing = [name for name in self.primary if name not in keys]
        if missing:
            raise ModelError(f'missing primary key "{missing[0]}" for model "{self.name}"')

        condition = {name: keys[name] for name in self.primary}
        try:
            rows: List[Dict[str, Any]] = self.find().where(condition).limit(1).exec()
        except (DatabaseConnectionError, SchemaError) as e:
            if callback is not None:
                callback(e, None)
            raise
        row = rows[0] if rows else None
        if callback is not None:
            callback(None, row)
        return row


class Manager:
    """Registry of models sharing one Connection.

    Attributes:
        connection: Connection all models execute on

    Example:
        >>> manager = Manager()                      # servers from core.config
        >>> manager.register_model('Test', table='test', fields={'id': True})
        >>> manager.has_model('Test')
        True
    """

    def __init__(
        self,
        connections: Optional[Sequence[Any]] = None,
        connection: Optional[Connection] = None
    ):
        """Initialize the manager.

        Args:
            connections: Server settings, master first (ignored when
                connection is given)
            connection: Existing Connection to share
        """
        self.connection = connection or Connection(connections)
        self._models: Dict[str, Model] = {}

    def register_model(
        self,
        name: str,
        table: str,
        fields: Union[Schema, Mapping[str, Any]],
        primary: Union[str, Sequence[str], None] = None
    ) -> Model:
        """
        Register a model under a name.

        Args:
            name: Model name used with model()
            table: Table name
            fields: Schema or field declarations
            primary: Primary key column name(s)

        Returns:
            The registered Model

        Raises:
            ModelError: If the name is already registered
        """
        if name in self._models:
            raise ModelError(f'model "{name}" is already registered')
        model = Model(name, table, self.connection, fields, primary=primary)
        self._models[name] = model
        logger.debug(f"Registered model {name} for table {table}")
        return model

    def has_model(self, name: str) -> bool:
        return name in self._models

    def model(self, name: str) -> Model:
        """
        Look up a registered model.

        Raises:
            ModelError: If no model has that name
        """
        try:
            return self._models[name]
        except KeyError:
            raise ModelError(f'model "{name}" does not exist') from None

    def close(self) -> None:
        """Dispose every pooled connection."""
        self.connection.dispose()
