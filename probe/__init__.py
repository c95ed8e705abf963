"""
==================================================
Environment probe package.
==================================================

Answers questions about the host before and after a server is launched:
which PostgreSQL executables are installed, whether a server process is
alive, and whether one is listening on a given port.

Modules:
    installed: Executable presence checks (check_installed)
    running: Process liveness (is_running, is_pid_running)
    port_probe: Platform-specific listening-port inspection (PortProbe)
"""

__all__ = [
    'InstalledSet',
    'check_installed',
    'require_executable',
    'is_running',
    'is_pid_running',
    'PortProbe',
    'LsofPortProbe',
    'NetstatPortProbe',
    'UnsupportedPortProbe',
    'get_port_probe'
]

from .installed import InstalledSet, check_installed, require_executable
from .port_probe import (
    LsofPortProbe,
    NetstatPortProbe,
    PortProbe,
    UnsupportedPortProbe,
    get_port_probe,
)
from .running import is_pid_running, is_running
