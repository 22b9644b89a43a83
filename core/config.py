"""
=====================================
Configuration management for the ORM.
=====================================

Loads all configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The first configured MySQL server is the master; any hosts listed in
MYSQL_REPLICA_HOSTS are read replicas sharing the master's credentials.

Environment variables:
    MYSQL_HOST, MYSQL_PORT, MYSQL_USER, MYSQL_PASSWORD, MYSQL_DATABASE
    MYSQL_CHARSET (utf8mb4), MYSQL_POOL_SIZE (10)
    MYSQL_REPLICA_HOSTS: comma-separated host[:port] list
    LOG_LEVEL (INFO), LOG_FILE (unset)

Example:
    >>> from core.config import config
    >>>
    >>> master_url = config.get_connection_string()
    >>> for db in config.connections:
    ...     print(f"{db.host}:{db.port}")
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)


@dataclass
class DatabaseConfig:
    """MySQL server settings.

    Attributes:
        host: MySQL server hostname or IP address
        port: MySQL server port number
        user: Database username
        password: Database password
        database: Database (schema) name
        charset: Connection character set
        pool_size: Connection pool size
    """

    host: str
    port: int
    user: str
    password: str
    database: str
    charset: str = 'utf8mb4'
    pool_size: int = 10

    def get_connection_string(self) -> str:
        """Get the SQLAlchemy URL for this server.

        Returns:
            ``mysql+pymysql://`` connection string
        """
        return (
            f"mysql+pymysql://{self.user}:{quote_plus(self.password)}@{self.host}:{self.port}"
            f"/{self.database}?charset={self.charset}"
        )

    def get_connection_params(self) -> dict:
        """Get connection parameters as dictionary.

        Returns:
            Dictionary with keys: host, port, user, password, database, charset
        """
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'charset': self.charset,
        }


@dataclass
class LoggingConfig:
    """Logging settings.

    Attributes:
        level: Root log level name
        log_file: Optional log file name
        logs_dir: Directory for log files
    """

    level: str
    log_file: Optional[str]
    logs_dir: Path


def parse_replica_hosts(value: str, default_port: int) -> List[tuple]:
    """Parse ``host[:port]`` entries separated by commas.

    Args:
        value: Raw MYSQL_REPLICA_HOSTS value
        default_port: Port used when an entry has none

    Returns:
        List of (host, port) tuples, blanks skipped
    """
    replicas = []
    for entry in value.split(','):
        entry = entry.strip()
        if not entry:
            continue
        host, _, port = entry.partition(':')
        replicas.append((host, int(port) if port else default_port))
    return replicas


class Config:
    """Centralized configuration manager.

    Attributes:
        db: Master DatabaseConfig
        replicas: DatabaseConfig per read replica
        logging: LoggingConfig
        project_root: Absolute path to the project root

    Properties:
        db_host: Master hostname
        db_port: Master port
        db_user: Database username
        db_password: Database password
        db_name: Database name
        connections: Master followed by replicas

    Example:
        >>> config = Config()
        >>> print(f"Connecting to {config.db_host}:{config.db_port}")
    """

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.db = DatabaseConfig(
            host=os.getenv('MYSQL_HOST', '127.0.0.1'),
            port=int(os.getenv('MYSQL_PORT', '3306')),
            user=os.getenv('MYSQL_USER', 'root'),
            password=os.getenv('MYSQL_PASSWORD', ''),
            database=os.getenv('MYSQL_DATABASE', 'test'),
            charset=os.getenv('MYSQL_CHARSET', 'utf8mb4'),
            pool_size=int(os.getenv('MYSQL_POOL_SIZE', '10'))
        )

        self.replicas = [
            DatabaseConfig(
                host=host,
                port=port,
                user=self.db.user,
                password=self.db.password,
                database=self.db.database,
                charset=self.db.charset,
                pool_size=self.db.pool_size
            )
            for host, port in parse_replica_hosts(
                os.getenv('MYSQL_REPLICA_HOSTS', ''), self.db.port
            )
        ]

        self.project_root = Path(__file__).parent.parent
        self.logging = LoggingConfig(
            level=os.getenv('LOG_LEVEL', 'INFO'),
            log_file=os.getenv('LOG_FILE') or None,
            logs_dir=self.project_root / 'logs'
        )

    @property
    def db_host(self) -> str:
        """Get master hostname."""
        return self.db.host

    @property
    def db_port(self) -> int:
        """Get master port number."""
        return self.db.port

    @property
    def db_user(self) -> str:
        """Get database username."""
        return self.db.user

    @property
    def db_password(self) -> str:
        """Get database password."""
        return self.db.password

    @property
    def db_name(self) -> str:
        """Get database name."""
        return self.db.database

    @property
    def connections(self) -> List[DatabaseConfig]:
        """Get the master followed by every replica."""
        return [self.db] + self.replicas

    def get_connection_string(self) -> str:
        """Get the master connection string."""
        return self.db.get_connection_string()

    def get_connection_params(self) -> dict:
        """Get the master connection parameters."""
        return self.db.get_connection_params()


# Global configuration instance
config = Config()
