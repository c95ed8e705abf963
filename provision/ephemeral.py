"""
==================================================
Scoped acquisition of an ephemeral test database.
==================================================

Wraps provisioning in a context manager that owns the scratch directory and
the server process: both are cleaned up on every exit path, including when
provisioning itself fails half-way.

Example:
    >>> from provision.ephemeral import ephemeral_database
    >>>
    >>> with ephemeral_database('fargle') as db:
    ...     run_tests_against(db.connection_url)
    >>> # server stopped, scratch directory removed
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from lifecycle.server_process import stop_server
from probe.running import is_pid_running
from provision.provision_orchestrator import ProvisionedDatabase, ProvisioningOrchestrator

logger = logging.getLogger(__name__)

DATA_DIRECTORY_NAME = 'pgdata'


def _stop_if_alive(pid: int) -> None:
    if is_pid_running(pid):
        stop_server(pid)


@contextmanager
def ephemeral_database(
    name: str,
    base_dir: Optional[Union[str, Path]] = None,
    create_user: Optional[bool] = None,
    keep_directory: bool = False,
    **kwargs
) -> Iterator[ProvisionedDatabase]:
    """Provision a database for the duration of a `with` block.

    Args:
        name: Database name to create
        base_dir: Parent directory for the data directory; a temporary
            directory is created (and later removed) when omitted
        create_user: Also create a role named after the database
        keep_directory: Leave the scratch directory on disk after exit
        **kwargs: Passed to ProvisioningOrchestrator

    Yields:
        ProvisionedDatabase for the running server

    Raises:
        ProvisioningError: If provisioning fails (after cleanup)
    """
    owns_scratch = base_dir is None
    scratch = Path(tempfile.mkdtemp(prefix='testdb-')) if owns_scratch else Path(base_dir)
    scratch.mkdir(parents=True, exist_ok=True)

    orchestrator = ProvisioningOrchestrator(
        scratch / DATA_DIRECTORY_NAME, name, create_user=create_user, **kwargs
    )

    try:
        yield orchestrator.run()
    finally:
        # Covers failed provisioning and interrupts as well as normal exit
        try:
            if orchestrator.server is not None:
                _stop_if_alive(orchestrator.server.pid)
        finally:
            if owns_scratch and not keep_directory:
                logger.debug(f"Removing scratch directory {scratch}")
                shutil.rmtree(scratch, ignore_errors=True)
