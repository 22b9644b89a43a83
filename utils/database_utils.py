"""
==========================================
Database connectivity utilities for MySQL.
==========================================

Provides engine construction, health checks and database availability
waiting for the connection layer. Connections go through SQLAlchemy with
the PyMySQL driver.

Key Features:
    - Connection string building from config
    - Pooled engine creation with pre-ping
    - Availability checking with ``SELECT 1``
    - Retry loop for databases that are still starting

Example:
    >>> from utils.database_utils import (
    ...     check_database_available,
    ...     create_sqlalchemy_engine,
    ...     wait_for_database,
    ... )
    >>>
    >>> engine = create_sqlalchemy_engine()
    >>> if check_database_available():
    ...     print("MySQL ready")
    >>> wait_for_database(max_retries=5)
"""

import logging
import time
from typing import Optional
from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import DatabaseConfig, config

logger = logging.getLogger(__name__)


class DatabaseConnectionError(Exception):
    """Exception raised when a database connection or statement fails."""
    pass


def get_connection_string(
    host: str = None,
    port: int = None,
    user: str = None,
    password: str = None,
    database: str = None,
    charset: str = None
) -> str:
    """
    Build a MySQL connection string.

    Args:
        host: Database hostname (defaults to config.db_host)
        port: Database port (defaults to config.db_port)
        user: Database user (defaults to config.db_user)
        password: Database password (defaults to config.db_password)
        database: Database name (defaults to config.db_name)
        charset: Character set (defaults to config.db.charset)

    Returns:
        ``mysql+pymysql://`` connection string

    Example:
        >>> get_connection_string(database='shop')
        'mysql+pymysql://root:@127.0.0.1:3306/shop?charset=utf8mb4'
    """
    host = host if host is not None else config.db_host
    port = port if port is not None else config.db_port
    user = user if user is not None else config.db_user
    password = password if password is not None else config.db_password
    database = database if database is not None else config.db_name
    charset = charset if charset is not None else config.db.charset

    return (
        f"mysql+pymysql://{user}:{quote_plus(password)}@{host}:{port}/{database}"
        f"?charset={charset}"
    )


def create_sqlalchemy_engine(
    db: Optional[DatabaseConfig] = None,
    echo: bool = False,
    pool_size: Optional[int] = None,
    max_overflow: int = 10
) -> Engine:
    """
    Create a pooled SQLAlchemy engine for one MySQL server.

    Args:
        db: Server settings (defaults to the configured master)
        echo: Enable SQLAlchemy statement logging
        pool_size: Pool size override (defaults to db.pool_size)
        max_overflow: Maximum overflow connections

    Returns:
        Configured SQLAlchemy Engine
    """
    db = db or config.db
    connection_url = URL.create(
        drivername='mysql+pymysql',
        username=db.user,
        password=db.password,
        host=db.host,
        port=db.port,
        database=db.database,
        query={'charset': db.charset}
    )

    return create_engine(
        connection_url,
        echo=echo,
        pool_size=pool_size or db.pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True  # Verify connections before using
    )


def check_database_available(db: Optional[DatabaseConfig] = None) -> bool:
    """
    Check whether a MySQL server accepts queries.

    Args:
        db: Server settings (defaults to the configured master)

    Returns:
        True if ``SELECT 1`` succeeds, False otherwise
    """
    engine = create_sqlalchemy_engine(db, pool_size=1, max_overflow=0)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.debug(f"Database not available: {e}")
        return False
    finally:
        engine.dispose()


def wait_for_database(
    db: Optional[DatabaseConfig] = None,
    max_retries: int = 10,
    retry_delay: float = 2
) -> bool:
    """
    Wait for a MySQL server to become available.

    Args:
        db: Server settings (defaults to the configured master)
        max_retries: Maximum number of attempts
        retry_delay: Delay between attempts in seconds

    Returns:
        True once the server is available

    Raises:
        DatabaseConnectionError: If the server never becomes available
    """
    db = db or config.db
    logger.info(f"Waiting for MySQL at {db.host}:{db.port}/{db.database}...")

    for attempt in range(1, max_retries + 1):
        if check_database_available(db):
            logger.info(f"MySQL is available (attempt {attempt}/{max_retries})")
            return True

        if attempt < max_retries:
            logger.warning(
                f"MySQL not available yet (attempt {attempt}/{max_retries}), "
                f"retrying in {retry_delay}s..."
            )
            time.sleep(retry_delay)

    error_msg = (
        f"MySQL at {db.host}:{db.port}/{db.database} did not become available "
        f"after {max_retries} attempts"
    )
    logger.error(error_msg)
    raise DatabaseConnectionError(error_msg)
