"""
==================================================
Port, readiness and connectivity utilities.
==================================================

Provides the small building blocks shared by the provisioning orchestrator
and the CLI:

Key Features:
    - Free TCP port allocation
    - Readiness waiting with bounded exponential backoff, or the classic
      fixed warm-up sleep
    - Connection checks against a running server (psycopg2)
    - Connection URL building (SQLAlchemy URL)
    - Exact membership helper used by the database listing check

Example:
    >>> from utils.database_utils import find_free_port, wait_for_server
    >>> from probe.running import is_running
    >>>
    >>> port = find_free_port()
    >>> # ... launch a server on port ...
    >>> wait_for_server(lambda: is_running(port), timeout=5.0)
"""

import logging
import socket
import threading
import time
from typing import Callable, Optional, Sequence

import psycopg2
from psycopg2 import OperationalError
from sqlalchemy.engine import URL

from core.config import config

logger = logging.getLogger(__name__)


def find_free_port(host: str = '127.0.0.1') -> int:
    """
    Ask the OS for a currently unused TCP port.

    The port is released before returning, so another process may still
    grab it before the server binds it.

    Args:
        host: Interface to bind while probing

    Returns:
        Port number from the ephemeral range
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def string_in_slice(value: str, items: Sequence[str]) -> bool:
    """Exact membership test: no trimming, no case folding."""
    for item in items:
        if item == value:
            return True
    return False


def wait_for_server(
    check: Callable[[], bool],
    timeout: Optional[float] = None,
    initial_delay: Optional[float] = None,
    backoff: Optional[float] = None,
    max_attempts: Optional[int] = None,
    mode: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None
) -> bool:
    """
    Wait for a readiness check to succeed.

    In 'poll' mode the check runs immediately and then after delays growing
    by `backoff`, until it succeeds, `max_attempts` checks were made, or
    `timeout` seconds have elapsed. In 'fixed' mode the wait sleeps for the
    whole `timeout` once and checks a single time.

    Args:
        check: Callable returning True once the server is ready
        timeout: Total wait bound in seconds (defaults to config warm-up)
        initial_delay: First delay between checks in poll mode
        backoff: Delay multiplier in poll mode
        max_attempts: Maximum number of checks in poll mode
        mode: 'poll' or 'fixed' (defaults to config)
        cancel_event: Setting this event aborts the wait early

    Returns:
        True if the check succeeded, False if the wait ran out or was cancelled

    Example:
        >>> wait_for_server(lambda: is_running(port), timeout=5.0, backoff=2.0)
    """
    settings = config.provision
    timeout = settings.warmup_timeout if timeout is None else timeout
    initial_delay = settings.poll_initial_delay if initial_delay is None else initial_delay
    backoff = settings.poll_backoff if backoff is None else backoff
    max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts
    mode = mode or settings.readiness_mode
    cancel_event = cancel_event or threading.Event()

    if mode == 'fixed':
        logger.debug(f"Warming up for {timeout}s before checking readiness")
        if cancel_event.wait(timeout):
            logger.warning("Readiness wait cancelled")
            return False
        return check()

    deadline = time.monotonic() + timeout
    delay = initial_delay
    attempt = 0

    for attempt in range(1, max_attempts + 1):
        if check():
            logger.info(f"✅ Server ready (attempt {attempt}/{max_attempts})")
            return True

        remaining = deadline - time.monotonic()
        if attempt == max_attempts or remaining <= 0:
            break

        sleep_for = min(delay, remaining)
        logger.debug(
            f"⏳ Server not ready yet (attempt {attempt}/{max_attempts}), "
            f"retrying in {sleep_for:.2f}s..."
        )
        if cancel_event.wait(sleep_for):
            logger.warning("Readiness wait cancelled")
            return False
        delay *= backoff

    logger.warning(f"Server not ready after {attempt} checks within {timeout}s")
    return False


def get_connection_string(
    port: int,
    database: str = 'postgres',
    user: Optional[str] = None,
    host: Optional[str] = None
) -> str:
    """
    Build a PostgreSQL connection URL for a local server.

    Args:
        port: Server port
        database: Database name
        user: Role name (defaults to config.provision.user)
        host: Host (defaults to config host, then 'localhost')

    Returns:
        URL string such as postgresql://me@localhost:54321/fargle
    """
    url = URL.create(
        drivername='postgresql',
        username=user or config.provision.user,
        host=host or config.host or 'localhost',
        port=port,
        database=database
    )
    return url.render_as_string(hide_password=False)


def check_database_available(
    port: int,
    database: str = 'postgres',
    user: Optional[str] = None,
    host: Optional[str] = None,
    timeout: int = 2
) -> bool:
    """
    Check whether the server accepts connections.

    Args:
        port: Server port
        database: Database to connect to
        user: Role name (defaults to config.provision.user)
        host: Host (defaults to config host, then 'localhost')
        timeout: Connection timeout in seconds

    Returns:
        True if a connection could be opened, False otherwise
    """
    try:
        conn = psycopg2.connect(
            host=host or config.host or 'localhost',
            port=port,
            user=user or config.provision.user,
            dbname=database,
            connect_timeout=timeout
        )
        conn.close()
        return True
    except OperationalError as e:
        logger.debug(f"Database not available on port {port}: {e}")
        return False
