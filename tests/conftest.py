"""
Shared pytest configuration and fixtures for all tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to sys.path to enable importing project modules
# This allows tests to import from 'core', 'probe', 'provision', etc. without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests - isolated function-level tests")
    config.addinivalue_line("markers", "integration: Integration tests - component interactions")
    config.addinivalue_line("markers", "smoke: Smoke tests - basic functionality checks")
    config.addinivalue_line("markers", "edge_case: Edge case tests - boundary conditions")
    config.addinivalue_line("markers", "system: System tests - full system behavior tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests - complete workflow tests")


@pytest.fixture
def fake_which(monkeypatch):
    """
    Patch shutil.which as seen by probe.installed.

    Yields the set of executable names considered installed; tests add or
    remove names to simulate missing binaries. Installed names resolve to
    /usr/bin/<name>.
    """
    installed = {'postgres', 'initdb', 'createdb', 'dropdb', 'psql', 'createuser'}

    def which(name):
        return f"/usr/bin/{name}" if name in installed else None

    monkeypatch.setattr("probe.installed.shutil.which", which)
    return installed


@pytest.fixture
def scratch_dir(tmp_path):
    """Scratch directory owned by the test, removed by pytest afterwards."""
    path = tmp_path / "testdb"
    path.mkdir()
    return path


@pytest.fixture
def provision_settings(monkeypatch):
    """
    Make readiness waits instant and restore provisioning settings afterwards.

    Returns the live config.provision object so tests can tweak it further
    with monkeypatch.setattr.
    """
    from core.config import config

    monkeypatch.setattr(config.provision, 'warmup_timeout', 0.0)
    monkeypatch.setattr(config.provision, 'poll_initial_delay', 0.0)
    monkeypatch.setattr(config.provision, 'poll_max_attempts', 3)
    monkeypatch.setattr(config.provision, 'readiness_mode', 'poll')
    monkeypatch.setattr(config.provision, 'readiness_connect', False)
    monkeypatch.setattr(config.provision, 'rollback_on_failure', False)
    monkeypatch.setattr(config.provision, 'create_user', False)
    monkeypatch.setattr(config.provision, 'host', None)
    return config.provision


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every TESTDB_* variable from the environment."""
    for key in list(os.environ):
        if key.startswith('TESTDB_'):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
