"""
=====================================================
Error taxonomy for ephemeral test database provisioning.
=====================================================

Every failure raised by the probe, lifecycle and provisioning packages derives
from ProvisioningError. Each error records which step failed and, where it
applies, the external command, the underlying cause, the server pid and port,
so a failure can be diagnosed without re-running it.

Example:
    >>> from core.exceptions import ProvisioningError, AlreadyRunningError
    >>>
    >>> try:
    ...     start_test_database('/tmp/x/db1', 'fargle')
    ... except AlreadyRunningError as e:
    ...     print(f"Port {e.port} is taken")
    ... except ProvisioningError as e:
    ...     print(f"{e.step} failed: {e}")
"""

from typing import Optional, Sequence


class ProvisioningError(Exception):
    """Base exception for all provisioning failures.

    Attributes:
        step: Name of the step that failed (e.g. 'start_server')
        command: External command line involved, if any
        cause: Underlying exception or process output, if any
        pid: Server process id involved, if any
        port: TCP port involved, if any
    """

    default_step = 'provisioning'

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        command: Optional[Sequence[str]] = None,
        cause: Optional[object] = None,
        pid: Optional[int] = None,
        port: Optional[int] = None
    ):
        super().__init__(message)
        self.step = step or self.default_step
        self.command = list(command) if command else None
        self.cause = cause
        self.pid = pid
        self.port = port

    def __str__(self) -> str:
        message = super().__str__()
        if self.command:
            message = f"{message} (command: {' '.join(str(c) for c in self.command)})"
        return message


class ConfigurationError(ProvisioningError):
    """Raised when a configuration value cannot be parsed or is out of range."""
    default_step = 'configuration'


class BinaryNotFoundError(ProvisioningError):
    """Raised when a required executable is not on the search path."""
    default_step = 'locate_binary'

    def __init__(self, binary: str, step: Optional[str] = None):
        super().__init__(f"Executable '{binary}' not found on PATH", step=step)
        self.binary = binary


class LaunchFailedError(ProvisioningError):
    """Raised when the server process cannot be spawned."""
    default_step = 'start_server'


class InitFailedError(ProvisioningError):
    """Raised when the data directory initializer exits non-zero."""
    default_step = 'initialize_data_directory'


class ProcessLookupFailedError(ProvisioningError):
    """Raised when a pid does not resolve to a live process."""
    default_step = 'stop_server'


class KillFailedError(ProvisioningError):
    """Raised when a server process cannot be terminated or reaped."""
    default_step = 'stop_server'


class AlreadyRunningError(ProvisioningError):
    """Raised when a server already listens on the allocated port."""
    default_step = 'pre_check'


class StartupFailedError(ProvisioningError):
    """Raised when a launched server never shows up on its port."""
    default_step = 'readiness'


class CreationVerificationFailedError(ProvisioningError):
    """Raised when a created database is missing from the server's listing."""
    default_step = 'verify_database'


class UnsupportedPlatformError(ProvisioningError):
    """Raised by port probing on platforms without an inspection strategy."""
    default_step = 'probe_port'

    def __init__(self, platform: str):
        super().__init__(f"Port probing is not supported on platform '{platform}'")
        self.platform = platform


class ProbeCommandFailedError(ProvisioningError):
    """Raised when a process or socket inspection command cannot run."""
    default_step = 'probe'


class DatabaseCommandError(ProvisioningError):
    """Raised when createdb, createuser, dropdb or psql fails."""
    default_step = 'database_command'
