"""
Shared fixtures and mocking helpers for model tests.

Key fixtures:
- fake_connection: Connection stand-in that records statements.
- manager: Manager wired to fake_connection with a ``User`` model.
"""

import pytest


class FakeConnection:
    """Mock utils.connection.Connection."""
    def __init__(self):
        self.statements = []
        self.results = []
        self.error = None
        self.disposed = False

    def query(self, sql, callback=None):
        self.statements.append(sql)
        if self.error is not None:
            raise self.error
        return self.results.pop(0) if self.results else []

    def dispose(self):
        self.disposed = True


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def manager(fake_connection):
    """Manager with a registered ``User`` model."""
    from models.model import Manager

    manager = Manager(connection=fake_connection)
    manager.register_model(
        'User',
        table='users',
        primary='id',
        fields={'id': True, 'name': True, 'info': 'json', 'active': 'bool'},
    )
    return manager
