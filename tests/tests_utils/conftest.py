"""
Shared fixtures and mocking helpers for utils tests.

Key fixtures:
- engine_factory: records the DatabaseConfig each engine was built for
  and hands out FakeEngine instances.
- server_settings: master plus two replicas as plain mappings.
"""

import pytest
from sqlalchemy.exc import OperationalError


class FakeRow:
    """Mock SQLAlchemy Row exposing _mapping."""
    def __init__(self, mapping):
        self._mapping = mapping


class FakeResult:
    """Mock SQLAlchemy CursorResult."""
    def __init__(self, rows=None, rowcount=0, lastrowid=None):
        self.returns_rows = rows is not None
        self._rows = [FakeRow(row) for row in (rows or [])]
        self.rowcount = rowcount
        self.lastrowid = lastrowid

    def __iter__(self):
        return iter(self._rows)


class FakeSQLAlchemyConnection:
    """Mock SQLAlchemy connection recording driver-level SQL."""
    def __init__(self, engine):
        self.engine = engine
        self.options = {}

    def execution_options(self, **options):
        self.options.update(options)
        return self

    def exec_driver_sql(self, sql):
        self.engine.executed.append(sql)
        if self.engine.fail:
            raise OperationalError(sql, None, Exception("server has gone away"))
        return self.engine.result

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeEngine:
    """Mock SQLAlchemy engine."""
    def __init__(self, name):
        self.name = name
        self.executed = []
        self.result = FakeResult(rows=[])
        self.fail = False
        self.disposed = False
        self.last_connection = None

    def begin(self):
        self.last_connection = FakeSQLAlchemyConnection(self)
        return self.last_connection

    def dispose(self):
        self.disposed = True


@pytest.fixture
def engine_factory():
    """Engine factory returning one FakeEngine per host."""
    def factory(db):
        engine = FakeEngine(db.host)
        factory.built.append(db)
        factory.engines[db.host] = engine
        return engine

    factory.built = []
    factory.engines = {}
    return factory


@pytest.fixture
def server_settings():
    return [
        {'host': 'master', 'user': 'app', 'database': 'shop'},
        {'host': 'replica-1', 'user': 'app', 'database': 'shop'},
        {'host': 'replica-2', 'port': 3307, 'user': 'app', 'database': 'shop'},
    ]


@pytest.fixture
def make_result():
    """Build a FakeResult; pass ``rows`` for SELECTs, rowcount/lastrowid for writes."""
    return FakeResult
