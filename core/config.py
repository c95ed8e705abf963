"""
==================================================
Configuration management for test database provisioning.
==================================================

Loads all configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration system ensures:
- Single source of truth for binary names and timings
- Type conversion and validation
- Defaults that reproduce the classic 5 second warm-up

Example:
    >>> from core.config import config
    >>>
    >>> # Binary names
    >>> print(config.binaries.server, config.binaries.required)
    >>>
    >>> # Readiness timing
    >>> print(f"Warm-up: {config.warmup_timeout}s ({config.readiness_mode})")
"""

import getpass
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

READINESS_MODES = ('poll', 'fixed')

# Wildcards plus loopback, where a default postgres (listen_addresses=localhost) binds
DEFAULT_BIND_ADDRESSES = ('0.0.0.0', '::', '127.0.0.1', '::1')

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off', '')


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(',') if part.strip())


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return 'postgres'


@dataclass
class BinaryConfig:
    """Names of the PostgreSQL executables, resolved on PATH at use time.

    Attributes:
        server: Server daemon ('postgres')
        initdb: Data directory initializer
        createdb: Database creator
        dropdb: Database dropper
        psql: Client shell
        createuser: User creator (optional, not part of the required set)
    """

    server: str = 'postgres'
    initdb: str = 'initdb'
    createdb: str = 'createdb'
    dropdb: str = 'dropdb'
    psql: str = 'psql'
    createuser: str = 'createuser'

    @property
    def required(self) -> List[str]:
        """Executables that must all be installed for provisioning to work."""
        return [self.server, self.initdb, self.createdb, self.dropdb, self.psql]


@dataclass
class ProvisionConfig:
    """Provisioning behavior settings.

    Attributes:
        host: Host/socket directory passed as -h to client commands, or None
        user: Role used in connection URLs and readiness connections
        readiness_mode: 'poll' (backoff poll) or 'fixed' (sleep then check once)
        warmup_timeout: Upper bound on the readiness wait in seconds
        poll_initial_delay: First delay between readiness checks
        poll_backoff: Multiplier applied to the delay after each failed check
        poll_max_attempts: Maximum number of readiness checks
        stop_timeout: Seconds to wait for a killed server to exit
        rollback_on_failure: Stop the launched server when a later step fails
        create_user: Create a role named after the database
        server_log: Write server output to <data_dir>/server.log
        bind_addresses: Local addresses accepted by the netstat port probe
        readiness_connect: Also require a successful connection when polling
    """

    host: Optional[str] = None
    user: str = 'postgres'
    readiness_mode: str = 'poll'
    warmup_timeout: float = 5.0
    poll_initial_delay: float = 0.25
    poll_backoff: float = 2.0
    poll_max_attempts: int = 20
    stop_timeout: float = 10.0
    rollback_on_failure: bool = False
    create_user: bool = False
    server_log: bool = True
    bind_addresses: Tuple[str, ...] = DEFAULT_BIND_ADDRESSES
    readiness_connect: bool = False

    def __post_init__(self):
        if self.readiness_mode not in READINESS_MODES:
            raise ConfigurationError(
                f"readiness_mode must be one of {', '.join(READINESS_MODES)}, "
                f"got {self.readiness_mode!r}"
            )
        if self.poll_backoff < 1.0:
            raise ConfigurationError(
                f"poll_backoff must be >= 1.0, got {self.poll_backoff}"
            )


class Config:
    """Centralized configuration manager.

    Attributes:
        binaries: BinaryConfig with executable names
        provision: ProvisionConfig with timing and policy settings

    Example:
        >>> config = Config()
        >>> config.binaries.server
        'postgres'
        >>> config.warmup_timeout
        5.0
    """

    def __init__(self):
        """Initialize configuration from TESTDB_* environment variables.

        Raises:
            ConfigurationError: If any variable holds an invalid value
        """
        self.binaries = BinaryConfig(
            server=os.getenv('TESTDB_SERVER_BIN', 'postgres'),
            initdb=os.getenv('TESTDB_INITDB_BIN', 'initdb'),
            createdb=os.getenv('TESTDB_CREATEDB_BIN', 'createdb'),
            dropdb=os.getenv('TESTDB_DROPDB_BIN', 'dropdb'),
            psql=os.getenv('TESTDB_PSQL_BIN', 'psql'),
            createuser=os.getenv('TESTDB_CREATEUSER_BIN', 'createuser')
        )

        self.provision = ProvisionConfig(
            host=os.getenv('TESTDB_HOST') or None,
            user=os.getenv('TESTDB_USER') or _default_user(),
            readiness_mode=os.getenv('TESTDB_READINESS_MODE', 'poll').strip().lower(),
            warmup_timeout=_env_float('TESTDB_WARMUP_TIMEOUT', 5.0),
            poll_initial_delay=_env_float('TESTDB_POLL_INITIAL_DELAY', 0.25),
            poll_backoff=_env_float('TESTDB_POLL_BACKOFF', 2.0, minimum=1.0),
            poll_max_attempts=_env_int('TESTDB_POLL_MAX_ATTEMPTS', 20),
            stop_timeout=_env_float('TESTDB_STOP_TIMEOUT', 10.0),
            rollback_on_failure=_env_bool('TESTDB_ROLLBACK_ON_FAILURE', False),
            create_user=_env_bool('TESTDB_CREATE_USER', False),
            server_log=_env_bool('TESTDB_SERVER_LOG', True),
            bind_addresses=_env_list('TESTDB_BIND_ADDRESSES', DEFAULT_BIND_ADDRESSES),
            readiness_connect=_env_bool('TESTDB_READINESS_CONNECT', False)
        )

    @property
    def server_binary(self) -> str:
        """Get the server daemon executable name."""
        return self.binaries.server

    @property
    def warmup_timeout(self) -> float:
        """Get the readiness wait upper bound in seconds."""
        return self.provision.warmup_timeout

    @property
    def readiness_mode(self) -> str:
        """Get the readiness strategy ('poll' or 'fixed')."""
        return self.provision.readiness_mode

    @property
    def stop_timeout(self) -> float:
        """Get the seconds to wait for a killed server to exit."""
        return self.provision.stop_timeout

    @property
    def host(self) -> Optional[str]:
        """Get the host passed to client commands, if any."""
        return self.provision.host

    def client_args(self, port: int) -> List[str]:
        """Get the connection arguments shared by createdb/createuser/dropdb/psql.

        Args:
            port: Server port

        Returns:
            ['-h', host, '-p', port] when a host is configured, else ['-p', port]
        """
        args = []
        if self.provision.host:
            args.extend(['-h', self.provision.host])
        args.extend(['-p', str(port)])
        return args


# Global configuration instance
config = Config()
