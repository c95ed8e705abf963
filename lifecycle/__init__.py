"""
==================================================
Server lifecycle package.
==================================================

Low-level control of a single PostgreSQL server instance: initialize its
data directory, launch it on a port, and kill it again.

Modules:
    data_directory: initdb wrapper (initialize_data_directory)
    server_process: Launch and stop (start_server, stop_server, ServerProcess)
"""

__all__ = [
    'initialize_data_directory',
    'ServerProcess',
    'start_server',
    'stop_server'
]

from .data_directory import initialize_data_directory
from .server_process import ServerProcess, start_server, stop_server
