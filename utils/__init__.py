"""
==========================
Utility Functions Package.
==========================

Reusable helpers for port allocation, readiness waiting and connectivity
checks shared by the provisioning orchestrator and the CLI.

Modules:
    database_utils: Ports, readiness polling, connection helpers
"""

__version__ = "1.0.0"
__all__ = [
    'find_free_port',
    'string_in_slice',
    'wait_for_server',
    'get_connection_string',
    'check_database_available'
]

from .database_utils import (
    check_database_available,
    find_free_port,
    get_connection_string,
    string_in_slice,
    wait_for_server,
)
