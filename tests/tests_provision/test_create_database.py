"""
========================================================
Comprehensive pytest suite for provision/create_database.py
========================================================

Sections:
---------
1. Unit tests - client command arguments and list parsing
2. Integration tests - existence checks through psql output
3. Edge case tests

Available markers:
------------------
unit, integration, edge_case

How to Execute:
---------------
All tests:          python -m pytest tests/tests_provision/test_create_database.py -v
With coverage:      python -m pytest tests/tests_provision/test_create_database.py --cov=provision.create_database
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from core.exceptions import BinaryNotFoundError, DatabaseCommandError
from provision.create_database import (
    create_database,
    create_user,
    database_exists,
    drop_database,
    list_databases,
    parse_database_list,
)

PSQL_LIST_OUTPUT = """\
 fargle    | alice | UTF8     | C       | C     |
 postgres  | alice | UTF8     | C       | C     |
 template0 | alice | UTF8     | C       | C     | =c/alice          +
           |       |          |         |       | alice=CTc/alice
 template1 | alice | UTF8     | C       | C     | =c/alice          +
           |       |          |         |       | alice=CTc/alice

"""


def completed(returncode=0, stdout='', stderr=''):
    return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)


# ===============
# 1. UNIT TESTS
# ===============


@pytest.mark.unit
def test_parse_database_list_single_row():
    assert parse_database_list("fargle | owner | UTF8 |\n\n") == ["fargle"]


@pytest.mark.unit
def test_parse_database_list_skips_continuation_lines():
    assert parse_database_list(PSQL_LIST_OUTPUT) == ['fargle', 'postgres', 'template0', 'template1']


@pytest.mark.unit
def test_create_database_runs_createdb(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run', return_value=completed()) as run:
        create_database('fargle', 54321)

    assert run.call_args[0][0] == ['/usr/bin/createdb', '-p', '54321', 'fargle']


@pytest.mark.unit
def test_create_database_passes_configured_host(fake_which, provision_settings, monkeypatch):
    monkeypatch.setattr(provision_settings, 'host', '/tmp/sockets')

    with patch('provision.create_database.subprocess.run', return_value=completed()) as run:
        create_database('fargle', 54321)

    assert run.call_args[0][0] == [
        '/usr/bin/createdb', '-h', '/tmp/sockets', '-p', '54321', 'fargle'
    ]


@pytest.mark.unit
def test_create_user_runs_createuser(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run', return_value=completed()) as run:
        create_user('fargle', 54321)

    assert run.call_args[0][0] == ['/usr/bin/createuser', '-p', '54321', 'fargle']


@pytest.mark.unit
def test_drop_database_runs_dropdb(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run', return_value=completed()) as run:
        drop_database('fargle', 54321)

    assert run.call_args[0][0] == ['/usr/bin/dropdb', '-p', '54321', 'fargle']


@pytest.mark.unit
def test_create_database_failure_raises_database_command_error(fake_which, provision_settings):
    failed = completed(returncode=1, stderr='createdb: error: database "fargle" already exists')

    with patch('provision.create_database.subprocess.run', return_value=failed):
        with pytest.raises(DatabaseCommandError) as exc_info:
            create_database('fargle', 54321)

    error = exc_info.value
    assert error.step == 'create_database'
    assert error.port == 54321
    assert 'already exists' in str(error)
    assert error.command == ['/usr/bin/createdb', '-p', '54321', 'fargle']


# =====================
# 2. INTEGRATION TESTS
# =====================


@pytest.mark.integration
def test_list_databases_runs_psql_in_list_mode(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run',
               return_value=completed(stdout=PSQL_LIST_OUTPUT)) as run:
        names = list_databases(54321)

    assert run.call_args[0][0] == ['/usr/bin/psql', '-p', '54321', '-l', '-t', '-q']
    assert 'fargle' in names


@pytest.mark.integration
def test_database_exists_true(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run',
               return_value=completed(stdout=PSQL_LIST_OUTPUT)):
        assert database_exists('fargle', 54321) is True


@pytest.mark.integration
def test_database_exists_false(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run',
               return_value=completed(stdout=PSQL_LIST_OUTPUT)):
        assert database_exists('bargle', 54321) is False


@pytest.mark.integration
def test_database_exists_propagates_psql_failure(fake_which, provision_settings):
    failed = completed(returncode=2, stderr='psql: error: connection refused')

    with patch('provision.create_database.subprocess.run', return_value=failed):
        with pytest.raises(DatabaseCommandError) as exc_info:
            database_exists('fargle', 54321)

    assert exc_info.value.step == 'list_databases'


# ===============
# 3. EDGE CASES
# ===============


@pytest.mark.edge_case
@pytest.mark.parametrize("output", ['', '\n', '\n\n   \n'])
def test_parse_database_list_empty_output(output):
    assert parse_database_list(output) == []


@pytest.mark.edge_case
def test_database_exists_does_not_match_prefix(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run',
               return_value=completed(stdout=PSQL_LIST_OUTPUT)):
        assert database_exists('farg', 54321) is False


@pytest.mark.edge_case
def test_missing_client_binary_raises_before_running(fake_which, provision_settings):
    fake_which.discard('createdb')

    with patch('provision.create_database.subprocess.run') as run:
        with pytest.raises(BinaryNotFoundError) as exc_info:
            create_database('fargle', 54321)

    run.assert_not_called()
    assert exc_info.value.step == 'create_database'


@pytest.mark.edge_case
def test_client_os_error_is_wrapped(fake_which, provision_settings):
    with patch('provision.create_database.subprocess.run', side_effect=OSError("no exec")):
        with pytest.raises(DatabaseCommandError) as exc_info:
            drop_database('fargle', 54321)

    assert isinstance(exc_info.value.cause, OSError)
    assert exc_info.value.step == 'drop_database'
