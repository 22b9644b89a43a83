"""
================================
Database connectivity utilities.
================================

Engine construction, health checks and master/replica routing for the
MySQL servers the builder's statements run on.

Modules:
    database_utils: Engine creation and availability checks
    connection: Connection router and QueryBuilder executor
"""

__version__ = "1.0.0"
__all__ = [
    'Connection',
    'DatabaseConnectionError',
    'check_database_available',
    'create_sqlalchemy_engine',
    'get_connection_string',
    'is_read_statement',
    'wait_for_database',
]

from .connection import Connection, is_read_statement
from .database_utils import (
    DatabaseConnectionError,
    check_database_available,
    create_sqlalchemy_engine,
    get_connection_string,
    wait_for_database,
)
