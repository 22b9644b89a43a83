"""
======================================
Comprehensive pytest suite for main.py
======================================

Sections:
---------
1. Unit tests - Argument parsing and builder construction
2. CLI tests - main() output and exit codes
3. Edge case tests - Errors and interrupts
4. Smoke tests - Parser surface

Available markers:
------------------
unit, system, edge_case, smoke

Test Coverage:
--------------
- build_query: statement kinds and modifiers from parsed arguments
- main(): rendering, --execute, --check-db, exit codes 0/1/130

How to Execute:
---------------
All tests:          pytest tests/test_main.py -v
By category:        pytest tests/test_main.py -m unit
"""

import json
from unittest.mock import patch

import pytest

from main import build_query, create_parser, main
from utils.database_utils import DatabaseConnectionError

# ====================
# Mock Helper Classes
# ====================

class FakeConnection:
    """Mock utils.connection.Connection used as a context manager."""
    instances = []

    def __init__(self, connections=None):
        self.statements = []
        self.result = [{'id': 1, 'name': 'Lei'}]
        self.error = None
        self.disposed = False
        FakeConnection.instances.append(self)

    def query(self, sql, callback=None):
        self.statements.append(sql)
        if self.error is not None:
            raise self.error
        return self.result

    def executor(self):
        return self.query

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disposed = True
        return False


# ====================
# Fixtures
# ====================

@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep main() from replacing the root handlers during tests."""
    with patch('main.setup_logging') as mock_setup:
        yield mock_setup


@pytest.fixture
def fake_connection_class():
    FakeConnection.instances = []
    with patch('main.Connection', FakeConnection):
        yield FakeConnection


def parse(*argv):
    return create_parser().parse_args(list(argv))


# ===============
# 1. UNIT TESTS
# ===============

@pytest.mark.unit
def test_build_select_with_modifiers():
    args = parse(
        '--table', 'users', '--select', 'id, name',
        '--where', '`age` > 18', '--where', "`status`='active'",
        '--order', '`id` DESC', '--skip', '10', '--limit', '20'
    )

    sql = build_query(args).build()

    assert sql == (
        "SELECT `id`, `name` FROM `users` WHERE `age` > 18 AND `status`='active' "
        "ORDER BY `id` DESC LIMIT 10,20"
    )


@pytest.mark.unit
def test_build_select_all_columns():
    assert build_query(parse('--table', 'users', '--select')).build() == "SELECT * FROM `users`"


@pytest.mark.unit
def test_build_count():
    sql = build_query(parse('--table', 'users', '--count', 'total', '--limit', '1')).build()

    assert sql == "SELECT COUNT(*) AS `total` FROM `users`   LIMIT 1"


@pytest.mark.unit
def test_build_delete():
    sql = build_query(parse('--table', 'users', '--delete', '--where', '`id`=3')).build()

    assert sql == "DELETE FROM `users` WHERE `id`=3"


@pytest.mark.unit
def test_build_custom_sql():
    args = parse('--table', 'users', '--sql', 'SELECT :$fields FROM `users` :$limit',
                 '--fields', 'id,name', '--limit', '5')

    assert build_query(args).build() == "SELECT `id`, `name` FROM `users` LIMIT 5"


@pytest.mark.unit
def test_statement_kinds_are_mutually_exclusive():
    with pytest.raises(SystemExit):
        parse('--table', 'users', '--select', '--delete')


# ===============
# 2. CLI TESTS
# ===============

@pytest.mark.system
def test_main_prints_sql(capsys):
    exit_code = main(['--table', 'users', '--select', 'id', '--limit', '2'])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == "SELECT `id` FROM `users`   LIMIT 2"


@pytest.mark.system
def test_main_execute_prints_json(capsys, fake_connection_class):
    exit_code = main(['--table', 'users', '--select', 'id,name', '--execute'])

    connection = fake_connection_class.instances[0]
    assert exit_code == 0
    assert connection.statements == ["SELECT `id`, `name` FROM `users`"]
    assert connection.disposed is True
    assert json.loads(capsys.readouterr().out) == [{'id': 1, 'name': 'Lei'}]


@pytest.mark.system
def test_main_check_db():
    with patch('main.wait_for_database', return_value=True) as mock_wait:
        assert main(['--check-db']) == 0

    mock_wait.assert_called_once_with()


@pytest.mark.system
def test_main_verbose_sets_debug(quiet_logging):
    main(['--table', 'users', '--delete', '--verbose'])

    assert quiet_logging.call_args[1]['log_level'] == 'DEBUG'


# =====================
# 3. EDGE CASE TESTS
# =====================

@pytest.mark.edge_case
def test_main_without_table(capsys):
    assert main([]) == 1
    assert 'usage:' in capsys.readouterr().out


@pytest.mark.edge_case
def test_main_without_statement_kind():
    assert main(['--table', 'users', '--where', '`id`=1']) == 1


@pytest.mark.edge_case
def test_main_invalid_limit():
    assert main(['--table', 'users', '--select', '--limit', '-1']) == 1


@pytest.mark.edge_case
def test_main_database_error(fake_connection_class):
    with patch.object(FakeConnection, 'query', side_effect=DatabaseConnectionError("down")):
        assert main(['--table', 'users', '--delete', '--execute']) == 1


@pytest.mark.edge_case
def test_main_keyboard_interrupt():
    with patch('main.build_query', side_effect=KeyboardInterrupt):
        assert main(['--table', 'users', '--select']) == 130


@pytest.mark.edge_case
def test_main_unexpected_error():
    with patch('main.build_query', side_effect=RuntimeError("surprise")):
        assert main(['--table', 'users', '--select']) == 1


# =====================
# 4. SMOKE TESTS
# =====================

@pytest.mark.smoke
def test_parser_has_expected_options():
    args = parse('--table', 't')

    for name in ('select', 'count', 'delete', 'sql', 'where', 'fields',
                 'order', 'skip', 'limit', 'execute', 'check_db', 'verbose'):
        assert hasattr(args, name)
