"""
Shared fixtures for sql package tests.

Key fixtures:
- make_query: factory returning a fresh QueryBuilder for a table.
"""

import pytest


@pytest.fixture
def make_query():
    """
    Factory that creates a QueryBuilder for ``test1`` unless told otherwise.
    """
    from sql.query_builder import QueryBuilder

    def factory(table="test1", executor=None):
        return QueryBuilder(table, executor=executor)

    return factory
