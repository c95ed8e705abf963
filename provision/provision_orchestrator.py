"""
==================================================
Provisioning orchestrator for ephemeral test databases.
==================================================

Coordinates the complete provisioning of a throwaway PostgreSQL database:
port allocation, pre-flight check, data directory initialization, server
launch, readiness wait, database (and optional role) creation, and
verification.

This orchestrator manages:
    - Step ordering through an explicit state machine
    - Step timing and outcome tracking with a summary log
    - Error propagation with step, command and pid context
    - Optional rollback of a launched server when a later step fails

State machine:

    IDLE -> PORT_ALLOCATED -> DIRECTORY_INITIALIZED -> SERVER_LAUNCHED
         -> SERVER_CONFIRMED_UP -> DATABASE_CREATED -> VERIFIED

Any failing step moves to FAILED. Earlier steps are not undone unless
rollback_on_failure is enabled: by default a server that was launched keeps
running after a failure, and its pid is attached to the raised error so the
caller can inspect it and stop it.

Example:
    >>> from provision.provision_orchestrator import start_test_database
    >>> from lifecycle.server_process import stop_server
    >>>
    >>> db = start_test_database('/tmp/x/db1', 'fargle')
    >>> print(db.pid, db.port, db.connection_url)
    >>> stop_server(db.pid)
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.config import config
from core.exceptions import (
    AlreadyRunningError,
    CreationVerificationFailedError,
    ProvisioningError,
    StartupFailedError,
)
from core.logger import get_logger
from lifecycle.data_directory import initialize_data_directory
from lifecycle.server_process import ServerProcess, start_server, stop_server
from probe.port_probe import PortProbe, get_port_probe
from probe.running import is_pid_running, is_running
from provision.create_database import create_database, create_user, database_exists
from utils.database_utils import (
    check_database_available,
    find_free_port,
    get_connection_string,
    wait_for_server,
)

logger = get_logger(__name__)


class ProvisioningState(Enum):
    """Progress of a single provisioning call."""

    IDLE = 'idle'
    PORT_ALLOCATED = 'port_allocated'
    DIRECTORY_INITIALIZED = 'directory_initialized'
    SERVER_LAUNCHED = 'server_launched'
    SERVER_CONFIRMED_UP = 'server_confirmed_up'
    DATABASE_CREATED = 'database_created'
    VERIFIED = 'verified'
    FAILED = 'failed'


@dataclass
class ProvisionedDatabase:
    """A provisioned test database and the server hosting it.

    The holder owns the server process and must stop it with
    stop_server(pid) when done.

    Attributes:
        pid: Server process id
        port: Server TCP port
        name: Database name
        data_directory: Server data directory
        user: Role created alongside the database, if any
    """

    pid: int
    port: int
    name: str
    data_directory: Path
    user: Optional[str] = None

    @property
    def connection_url(self) -> str:
        """Connection URL for the database (role defaults to the configured user)."""
        return get_connection_string(self.port, database=self.name, user=self.user)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pid': self.pid,
            'port': self.port,
            'name': self.name,
            'data_directory': str(self.data_directory),
            'user': self.user,
            'connection_url': self.connection_url
        }


class ProvisioningOrchestrator:
    """Orchestrate one provisioning call, step by step.

    Attributes:
        data_directory: Directory the server will be initialized in
        name: Database name to create
        create_user: Whether a role named after the database is created
        rollback_on_failure: Stop the launched server when a later step fails
        port_probe: Strategy used to check the allocated port
        cancel_event: Event aborting the readiness wait when set
        state: Current ProvisioningState
        port: Allocated port (after allocate_port)
        server: Launched ServerProcess (after launch_server)
        steps: Tracking records of executed steps

    Example:
        >>> orchestrator = ProvisioningOrchestrator('/tmp/x/db1', 'fargle')
        >>> db = orchestrator.run()
        >>> orchestrator.state
        <ProvisioningState.VERIFIED: 'verified'>
    """

    def __init__(
        self,
        data_directory: Union[str, Path],
        name: str,
        create_user: Optional[bool] = None,
        rollback_on_failure: Optional[bool] = None,
        port_probe: Optional[PortProbe] = None,
        cancel_event: Optional[threading.Event] = None
    ):
        self.data_directory = Path(data_directory)
        self.name = name
        self.create_user = (
            config.provision.create_user if create_user is None else create_user
        )
        self.rollback_on_failure = (
            config.provision.rollback_on_failure
            if rollback_on_failure is None else rollback_on_failure
        )
        self.port_probe = port_probe or get_port_probe()
        self.cancel_event = cancel_event or threading.Event()

        self.state = ProvisioningState.IDLE
        self.port: Optional[int] = None
        self.server: Optional[ServerProcess] = None
        self.steps: List[Dict[str, Any]] = []

        logger.debug(f"Initialized ProvisioningOrchestrator for database: {self.name}")

    def _start_step(self, step_name: str) -> Dict[str, Any]:
        step = {
            'step_name': step_name,
            'start_time': time.time(),
            'status': 'RUNNING'
        }
        self.steps.append(step)
        logger.debug(f"Starting step: {step_name}")
        return step

    def _end_step(self, step: Dict[str, Any], status: str, error_message: str = None) -> None:
        step['status'] = status
        step['end_time'] = time.time()
        step['duration'] = step['end_time'] - step['start_time']
        if error_message:
            step['error'] = error_message
            logger.error(f"Step {step['step_name']} failed: {error_message}")

    def _run_step(self, step_name: str, func, next_state: Optional[ProvisioningState] = None):
        step = self._start_step(step_name)
        try:
            result = func()
        except BaseException as e:
            self._end_step(step, 'FAILED', str(e) or type(e).__name__)
            raise
        self._end_step(step, 'SUCCESS')
        if next_state is not None:
            self.state = next_state
        return result

    def _startup_failure(self, reason: str) -> StartupFailedError:
        message = f"Server pid {self.server.pid} {reason} on port {self.port}"
        if self.server.log_file is not None:
            message = f"{message}; see {self.server.log_file}"
        return StartupFailedError(message, pid=self.server.pid, port=self.port)

    def _server_ready(self) -> bool:
        if not is_pid_running(self.server.pid):
            raise self._startup_failure("exited during startup")
        if not is_running(self.port, probe=self.port_probe):
            return False
        if config.provision.readiness_connect:
            return check_database_available(self.port)
        return True

    def allocate_port(self) -> int:
        """Allocate a free TCP port for the server."""
        self.port = find_free_port()
        logger.info(f"Allocated port {self.port}")
        return self.port

    def pre_check(self) -> None:
        """Refuse to continue when a server already owns the allocated port.

        Raises:
            AlreadyRunningError: If a server is listening on the port
        """
        if is_running(self.port, probe=self.port_probe):
            raise AlreadyRunningError(
                f"A server is already running on port {self.port}",
                port=self.port
            )

    def initialize(self) -> None:
        """Initialize the data directory."""
        initialize_data_directory(self.data_directory)

    def launch_server(self) -> ServerProcess:
        """Launch the server on the data directory and allocated port."""
        self.server = start_server(self.data_directory, self.port)
        return self.server

    def wait_until_ready(self) -> None:
        """Wait for the launched server to listen on its port.

        Raises:
            StartupFailedError: If the server exits, or does not come up within
                the warm-up bound
        """
        if not wait_for_server(self._server_ready, cancel_event=self.cancel_event):
            raise self._startup_failure("did not come up")

    def create(self) -> None:
        """Create the database and, if requested, a role of the same name."""
        create_database(self.name, self.port)
        if self.create_user:
            create_user(self.name, self.port)

    def verify(self) -> None:
        """Confirm the database shows up in the server's listing.

        Raises:
            CreationVerificationFailedError: If it is not listed
        """
        if not database_exists(self.name, self.port):
            raise CreationVerificationFailedError(
                f"Database {self.name} is missing after creation on port {self.port}",
                port=self.port
            )

    def run(self) -> ProvisionedDatabase:
        """Run every provisioning step in order.

        Returns:
            ProvisionedDatabase for the created database

        Raises:
            ProvisioningError: The error of the first failing step, with the
                server pid attached when a server had been launched

        Interrupts (KeyboardInterrupt, SystemExit) also mark the run FAILED
        and trigger rollback when enabled, then propagate unchanged.
        """
        logger.info(f"Provisioning test database {self.name} in {self.data_directory}")

        try:
            self._run_step('allocate_port', self.allocate_port, ProvisioningState.PORT_ALLOCATED)
            self._run_step('pre_check', self.pre_check)
            self._run_step('initialize', self.initialize, ProvisioningState.DIRECTORY_INITIALIZED)
            self._run_step('launch_server', self.launch_server, ProvisioningState.SERVER_LAUNCHED)
            self._run_step('wait_until_ready', self.wait_until_ready, ProvisioningState.SERVER_CONFIRMED_UP)
            self._run_step('create_database', self.create, ProvisioningState.DATABASE_CREATED)
            self._run_step('verify', self.verify, ProvisioningState.VERIFIED)
        except BaseException as e:
            self.state = ProvisioningState.FAILED
            if self.server is not None:
                if isinstance(e, ProvisioningError) and e.pid is None:
                    e.pid = self.server.pid
                if self.rollback_on_failure:
                    self.rollback()
                else:
                    logger.warning(
                        f"Server pid {self.server.pid} on port {self.port} left running "
                        f"after failure; stop it with stop_server({self.server.pid})"
                    )
            raise
        finally:
            self._log_summary()

        return ProvisionedDatabase(
            pid=self.server.pid,
            port=self.port,
            name=self.name,
            data_directory=self.data_directory,
            user=self.name if self.create_user else None
        )

    def rollback(self) -> bool:
        """Stop the launched server, if it is still alive.

        Returns:
            True if no server is left running, False if stopping failed
        """
        if self.server is None or not is_pid_running(self.server.pid):
            return True

        logger.info(f"Rolling back: stopping server pid {self.server.pid}")
        try:
            stop_server(self.server.pid)
        except ProvisioningError as e:
            logger.error(f"Rollback failed: {e}")
            return False
        return True

    def _log_summary(self) -> None:
        logger.debug("=" * 60)
        logger.debug(f"PROVISIONING SUMMARY ({self.state.value})")
        for step in self.steps:
            duration = f"{step.get('duration', 0.0):.2f}s"
            logger.debug(f"{step['step_name'].ljust(20)}: {step['status']} ({duration})")
        logger.debug("=" * 60)


def start_test_database(
    data_directory: Union[str, Path],
    name: str,
    create_user: Optional[bool] = None,
    **kwargs
) -> ProvisionedDatabase:
    """Provision a fresh server and database.

    Args:
        data_directory: Directory to initialize the server in
        name: Database name to create
        create_user: Also create a role named after the database
            (defaults to config)
        **kwargs: Passed to ProvisioningOrchestrator (rollback_on_failure,
            port_probe, cancel_event)

    Returns:
        ProvisionedDatabase whose pid the caller must eventually stop

    Raises:
        ProvisioningError: If any step fails
    """
    orchestrator = ProvisioningOrchestrator(
        data_directory, name, create_user=create_user, **kwargs
    )
    return orchestrator.run()
