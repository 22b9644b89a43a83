"""
Shared pytest configuration and fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path to enable importing project modules
# This allows tests to import from 'core', 'sql', 'models', 'utils' without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests - isolated function-level tests")
    config.addinivalue_line("markers", "integration: Integration tests - component interactions")
    config.addinivalue_line("markers", "smoke: Smoke tests - basic functionality checks")
    config.addinivalue_line("markers", "edge_case: Edge case tests - boundary conditions")
    config.addinivalue_line("markers", "regression: Regression tests - previously fixed bugs")
    config.addinivalue_line("markers", "system: System tests - full system behavior tests")


@pytest.fixture
def recording_executor():
    """
    Executor that records every statement it receives.

    Returns a callable with a ``calls`` list of ``(sql, callback)`` tuples.
    It returns ``result`` (an empty list unless reassigned) and, when given
    a callback, calls it with ``(None, result)``.
    """
    def executor(sql, callback=None):
        executor.calls.append((sql, callback))
        if callback is not None:
            callback(None, executor.result)
        return executor.result

    executor.calls = []
    executor.result = []
    return executor
