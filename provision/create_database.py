"""
==================================================
Database creation module for ephemeral test servers.
==================================================

Creates, drops and lists databases inside a running local PostgreSQL server
by invoking the client binaries (createdb, createuser, dropdb, psql) against
its port. No orchestration logic lives here; that is handled by
provision_orchestrator.py.

Key Features:
    - Database and role creation through the PostgreSQL client binaries
    - Database dropping
    - Existence checks parsed from the client shell's list mode
    - Command output captured and attached to errors

Example:
    >>> from provision.create_database import create_database, database_exists
    >>>
    >>> create_database('fargle', 54321)
    >>> database_exists('fargle', 54321)
    True
"""

import logging
import subprocess
from typing import List

from core.config import config
from core.exceptions import DatabaseCommandError
from probe.installed import require_executable
from utils.database_utils import string_in_slice

logger = logging.getLogger(__name__)


def _run_client(binary: str, arguments: List[str], step: str, port: int) -> str:
    """Run a PostgreSQL client binary and return its standard output.

    Raises:
        BinaryNotFoundError: If the binary is not on PATH
        DatabaseCommandError: If it cannot run or exits non-zero
    """
    path = require_executable(binary, step=step)
    command = [path] + arguments

    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as e:
        raise DatabaseCommandError(
            f"Could not run {binary}: {e}",
            step=step,
            command=command,
            cause=e,
            port=port
        ) from e

    if result.returncode != 0:
        logger.error(f"{binary} output: {result.stdout!r} {result.stderr!r}")
        raise DatabaseCommandError(
            f"{binary} exited with status {result.returncode}: "
            f"{(result.stderr or '').strip()}",
            step=step,
            command=command,
            cause=result.stderr,
            port=port
        )

    return result.stdout


def create_database(name: str, port: int) -> None:
    """
    Create a database on the server listening on `port`.

    Args:
        name: Database name
        port: Server port

    Raises:
        BinaryNotFoundError: If createdb is not on PATH
        DatabaseCommandError: If createdb fails
    """
    logger.info(f"Creating database {name} on port {port}")
    _run_client(
        config.binaries.createdb,
        config.client_args(port) + [name],
        step='create_database',
        port=port
    )
    logger.info(f"Successfully created database {name}")


def create_user(name: str, port: int) -> None:
    """
    Create a role on the server listening on `port`.

    Args:
        name: Role name
        port: Server port

    Raises:
        BinaryNotFoundError: If createuser is not on PATH
        DatabaseCommandError: If createuser fails
    """
    logger.info(f"Creating user {name} on port {port}")
    _run_client(
        config.binaries.createuser,
        config.client_args(port) + [name],
        step='create_user',
        port=port
    )


def drop_database(name: str, port: int) -> None:
    """
    Drop a database from the server listening on `port`.

    Raises:
        BinaryNotFoundError: If dropdb is not on PATH
        DatabaseCommandError: If dropdb fails (including when it does not exist)
    """
    logger.info(f"Dropping database {name} on port {port}")
    _run_client(
        config.binaries.dropdb,
        config.client_args(port) + [name],
        step='drop_database',
        port=port
    )


def parse_database_list(output: str) -> List[str]:
    """
    Extract database names from `psql -l -t -q` output.

    Each line is split on '|' and its first field trimmed; lines whose first
    field is blank (empty lines, privilege continuation lines) are skipped.

    Example:
        >>> parse_database_list("fargle | owner | UTF8 |\\n\\n")
        ['fargle']
    """
    names = []
    for line in output.splitlines():
        name = line.split('|', 1)[0].strip()
        if name:
            names.append(name)
    return names


def list_databases(port: int) -> List[str]:
    """
    List the databases known to the server listening on `port`.

    Raises:
        BinaryNotFoundError: If psql is not on PATH
        DatabaseCommandError: If psql fails
    """
    output = _run_client(
        config.binaries.psql,
        config.client_args(port) + ['-l', '-t', '-q'],
        step='list_databases',
        port=port
    )
    return parse_database_list(output)


def database_exists(name: str, port: int) -> bool:
    """
    Check whether a database exists on the server listening on `port`.

    Args:
        name: Database name, matched exactly
        port: Server port

    Returns:
        True if the database is listed
    """
    return string_in_slice(name, list_databases(port))
