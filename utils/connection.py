"""
==================================
Master/replica connection routing.
==================================

Connection owns one pooled engine per configured MySQL server and decides
where each statement runs: reads (SELECT/SHOW) go to the replicas in
round-robin order, everything else goes to the master. Its query() method
is the executor handed to QueryBuilder.

Example:
    >>> from sql import QueryBuilder
    >>> from utils.connection import Connection
    >>>
    >>> connection = Connection([
    ...     {'host': 'db-master', 'user': 'app', 'database': 'shop'},
    ...     {'host': 'db-replica', 'user': 'app', 'database': 'shop'},
    ... ])
    >>> rows = QueryBuilder('users', executor=connection.executor()) \\
    ...     .select('id', 'name').where({'status': 'active'}).exec()
    >>>
    >>> # Transactions always use the master
    >>> with connection.get_master_connection() as conn:
    ...     conn.exec_driver_sql("UPDATE `users` SET `visits`=`visits`+1")
    >>>
    >>> connection.dispose()
"""

import itertools
import logging
import re
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import DatabaseConfig, config
from utils.database_utils import DatabaseConnectionError, create_sqlalchemy_engine

logger = logging.getLogger(__name__)

_READ_STATEMENT = re.compile(r"^\s*\(?\s*(SELECT|SHOW)\b", re.IGNORECASE)
_LOCKING_READ = re.compile(r"\bFOR\s+UPDATE\b|\bLOCK\s+IN\s+SHARE\s+MODE\b", re.IGNORECASE)

ConnectionSettings = Union[DatabaseConfig, Mapping[str, Any]]


def is_read_statement(sql: str) -> bool:
    """Return True for SELECT/SHOW statements that may run on a replica."""
    return bool(_READ_STATEMENT.match(sql)) and not _LOCKING_READ.search(sql)


def to_database_config(settings: ConnectionSettings) -> DatabaseConfig:
    """
    Normalise connection settings into a DatabaseConfig.

    Args:
        settings: DatabaseConfig, or a mapping with host, port, user,
            password, database, charset and pool_size keys

    Returns:
        DatabaseConfig instance
    """
    if isinstance(settings, DatabaseConfig):
        return settings
    return DatabaseConfig(
        host=settings.get('host', '127.0.0.1'),
        port=int(settings.get('port', 3306)),
        user=settings.get('user', 'root'),
        password=settings.get('password', ''),
        database=settings.get('database', ''),
        charset=settings.get('charset', 'utf8mb4'),
        pool_size=int(settings.get('pool_size', 10))
    )


class Connection:
    """Route statements to a master and its read replicas.

    Attributes:
        settings: DatabaseConfig per server, master first
        replica_count: Number of read replicas

    Example:
        >>> connection = Connection()          # servers from core.config
        >>> connection.query("SELECT 1 AS `ok`")
        [{'ok': 1}]
    """

    def __init__(
        self,
        connections: Optional[Sequence[ConnectionSettings]] = None,
        engine_factory: Callable[[DatabaseConfig], Engine] = create_sqlalchemy_engine
    ):
        """Initialize the connection router.

        Engines are created on first use.

        Args:
            connections: Server settings, master first (defaults to
                config.connections)
            engine_factory: Callable building an Engine from a DatabaseConfig

        Raises:
            DatabaseConnectionError: If no server is configured
        """
        if connections is None:
            connections = config.connections
        if not connections:
            raise DatabaseConnectionError("at least one connection must be configured")

        self.settings: List[DatabaseConfig] = [to_database_config(c) for c in connections]
        self._engine_factory = engine_factory
        self._engines: Dict[int, Engine] = {}
        self._lock = threading.Lock()
        self._replicas = itertools.cycle(range(1, len(self.settings)))

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    @property
    def replica_count(self) -> int:
        return len(self.settings) - 1

    def _label(self, index: int) -> str:
        db = self.settings[index]
        role = 'master' if index == 0 else f'replica {index}'
        return f"{role} {db.host}:{db.port}"

    def _get_engine(self, index: int) -> Engine:
        with self._lock:
            engine = self._engines.get(index)
            if engine is None:
                logger.debug(f"Creating engine for {self._label(index)}")
                engine = self._engine_factory(self.settings[index])
                self._engines[index] = engine
            return engine

    def _pick_index(self, sql: str) -> int:
        if self.replica_count and is_read_statement(sql):
            with self._lock:
                return next(self._replicas)
        return 0

    @property
    def master_engine(self) -> Engine:
        """Get the master engine."""
        return self._get_engine(0)

    @staticmethod
    def _run(conn: SAConnection, sql: str) -> Any:
        result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
        if result.returns_rows:
            return [dict(row._mapping) for row in result]
        return {'affected_rows': result.rowcount, 'insert_id': result.lastrowid}

    def query(self, sql: str, callback: Optional[Callable[[Any, Any], None]] = None) -> Any:
        """
        Run one SQL statement.

        Args:
            sql: Rendered SQL text
            callback: Optional ``(err, result)`` completion callback

        Returns:
            List of row dicts for row-returning statements, otherwise a
            dict with ``affected_rows`` and ``insert_id``

        Raises:
            DatabaseConnectionError: If the statement fails
        """
        index = self._pick_index(sql)
        label = self._label(index)
        logger.debug(f"Running on {label}: {sql}")

        try:
            with self._get_engine(index).begin() as conn:
                result = self._run(conn, sql)
        except SQLAlchemyError as e:
            logger.error(f"Query failed on {label}: {e}")
            error = DatabaseConnectionError(f"Query failed on {label}: {e}")
            if callback is not None:
                callback(error, None)
            raise error from e

        if callback is not None:
            callback(None, result)
        return result

    def executor(self) -> Callable[..., Any]:
        """Get the ``(sql, callback=None)`` callable for QueryBuilder."""
        return self.query

    @contextmanager
    def get_master_connection(self):
        """
        Open a transaction on the master.

        Commits when the block exits normally, rolls back on error.

        Yields:
            SQLAlchemy Connection inside a transaction
        """
        try:
            with self.master_engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed on {self._label(0)}: {e}")
            raise DatabaseConnectionError(f"Transaction failed: {e}") from e

    def read_frame(self, sql: str) -> pd.DataFrame:
        """
        Run a read statement and return the rows as a DataFrame.

        Args:
            sql: SELECT/SHOW statement

        Returns:
            DataFrame with one row per result row

        Raises:
            ValueError: If sql is not a read statement
        """
        if not is_read_statement(sql):
            raise ValueError("read_frame only accepts SELECT or SHOW statements")
        return pd.DataFrame.from_records(self.query(sql))

    def dispose(self) -> None:
        """Close every pooled connection."""
        with self._lock:
            engines = list(self._engines.items())
            self._engines.clear()
        for index, engine in engines:
            engine.dispose()
            logger.debug(f"Disposed engine for {self._label(index)}")
