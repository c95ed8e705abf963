"""
==================================================
Server process liveness checks.
==================================================

Two questions are answered here:

    - is_running(): is any server process alive (optionally, listening on a
      given port)?
    - is_pid_running(): is this particular server process alive?

Without a port, is_running() only proves that *some* process named like the
server binary answers a zero signal; it does not tell which port that process
serves. Callers holding a pid should prefer is_pid_running().

Example:
    >>> from probe.running import is_running, is_pid_running
    >>>
    >>> is_running()            # any postgres alive?
    >>> is_running(port=54321)  # a postgres listening on 54321?
    >>> is_pid_running(4242)    # is our own server still alive?
"""

import logging
from typing import Optional

import psutil

from core.config import config
from core.exceptions import ProbeCommandFailedError
from probe.port_probe import PortProbe, get_port_probe

logger = logging.getLogger(__name__)


def _matching_pids(server_binary: str) -> list:
    """Enumerate pids of processes whose name equals the server binary."""
    try:
        return [
            proc.info['pid']
            for proc in psutil.process_iter(['pid', 'name'])
            if proc.info['name'] == server_binary
        ]
    except psutil.Error as e:
        raise ProbeCommandFailedError(
            f"Could not enumerate processes: {e}",
            step='probe_process',
            cause=e
        ) from e


def is_running(
    port: Optional[int] = None,
    probe: Optional[PortProbe] = None,
    server_binary: Optional[str] = None
) -> bool:
    """Check whether a server process is active.

    Args:
        port: Only report servers listening on this TCP port
        probe: Port probe to use (defaults to get_port_probe())
        server_binary: Server process name (defaults to config)

    Returns:
        True if a matching server process is alive

    Raises:
        UnsupportedPlatformError: If a port is given on an unsupported platform
        ProbeCommandFailedError: If process or socket inspection fails
    """
    server_binary = server_binary or config.server_binary

    if port is not None:
        if probe is None:
            probe = get_port_probe(server_binary=server_binary)
        return probe.is_listening(port)

    for pid in _matching_pids(server_binary):
        # pid_exists delivers signal 0 on POSIX
        if psutil.pid_exists(pid):
            logger.debug(f"Found live {server_binary} process {pid}")
            return True

    return False


def is_pid_running(pid: int) -> bool:
    """Check whether a specific process is alive.

    Zombies (exited but not yet reaped) count as not running.

    Args:
        pid: Process id to check

    Returns:
        True if the process exists and has not exited
    """
    if not psutil.pid_exists(pid):
        return False
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True
