"""
========================================
Comprehensive pytest suite for main.py
========================================

Sections:
---------
1. Unit tests - argument parsing
2. Integration tests - operation dispatch with mocked packages
3. Edge case tests - errors, interrupts and exit codes

Available markers:
------------------
unit, integration, edge_case

How to Execute:
---------------
All tests:          python -m pytest tests/test_main.py -v
"""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from core.exceptions import AlreadyRunningError, ProcessLookupFailedError
from main import build_parser, main
from probe.installed import InstalledSet
from provision.provision_orchestrator import ProvisionedDatabase


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep setup_logging from replacing the root handlers for good."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    with patch('main.setup_logging') as setup:
        yield setup
    root.handlers[:] = handlers
    root.setLevel(level)


# ===============
# 1. UNIT TESTS
# ===============


@pytest.mark.unit
def test_parser_start_options():
    args = build_parser().parse_args(['--start', '/tmp/x/db1', '--name', 'fargle', '--create-user'])

    assert args.start == '/tmp/x/db1'
    assert args.name == 'fargle'
    assert args.create_user is True


@pytest.mark.unit
def test_parser_operations_are_exclusive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(['--check', '--stop', '42'])


@pytest.mark.unit
def test_verbose_enables_debug(quiet_logging):
    with patch('main.check_installed', return_value=InstalledSet(missing=[])):
        main(['--check', '--verbose'])

    quiet_logging.assert_called_once_with(log_level='DEBUG')


# =====================
# 2. INTEGRATION TESTS
# =====================


@pytest.mark.integration
def test_check_all_present():
    with patch('main.check_installed', return_value=InstalledSet(missing=[])):
        assert main(['--check']) == 0


@pytest.mark.integration
def test_check_reports_missing():
    with patch('main.check_installed', return_value=InstalledSet(missing=['initdb'])):
        assert main(['--check']) == 1


@pytest.mark.integration
def test_running_on_port():
    with patch('main.is_running', return_value=True) as running:
        assert main(['--running', '--port', '54321']) == 0

    running.assert_called_once_with(54321)


@pytest.mark.integration
def test_not_running():
    with patch('main.is_running', return_value=False):
        assert main(['--running']) == 1


@pytest.mark.integration
def test_start_prints_database_json(capsys, provision_settings):
    database = ProvisionedDatabase(pid=4242, port=54321, name='fargle', data_directory=Path('/tmp/x/db1'))

    with patch('main.start_test_database', return_value=database) as start:
        assert main(['--start', '/tmp/x/db1', '--name', 'fargle']) == 0

    start.assert_called_once_with('/tmp/x/db1', 'fargle', create_user=None)
    printed = json.loads(capsys.readouterr().out)
    assert printed['pid'] == 4242
    assert printed['port'] == 54321


@pytest.mark.integration
def test_stop_by_pid():
    with patch('main.stop_server') as stop:
        assert main(['--stop', '4242']) == 0

    stop.assert_called_once_with(4242)


# ===============
# 3. EDGE CASES
# ===============


@pytest.mark.edge_case
def test_no_operation_prints_help():
    assert main([]) == 1


@pytest.mark.edge_case
def test_start_requires_name():
    with pytest.raises(SystemExit):
        main(['--start', '/tmp/x/db1'])


@pytest.mark.edge_case
def test_provisioning_error_exits_one():
    with patch('main.start_test_database', side_effect=AlreadyRunningError("taken", port=54321)):
        assert main(['--start', '/tmp/x/db1', '--name', 'fargle']) == 1


@pytest.mark.edge_case
def test_stop_unknown_pid_exits_one():
    with patch('main.stop_server', side_effect=ProcessLookupFailedError("no such pid", pid=999999)):
        assert main(['--stop', '999999']) == 1


@pytest.mark.edge_case
def test_keyboard_interrupt_exits_130():
    with patch('main.is_running', side_effect=KeyboardInterrupt):
        assert main(['--running']) == 130
