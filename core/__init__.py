"""
==================================================
Core infrastructure package for test database provisioning.
==================================================

This package provides centralized configuration, logging and the error
taxonomy shared by the probe, lifecycle and provision packages.

Modules:
    config: Configuration management from TESTDB_* environment variables
    logger: Centralized logging configuration and utilities
    exceptions: ProvisioningError and its subclasses

Example:
    >>> from core.config import config
    >>> from core.logger import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info(f"Server binary: {config.server_binary}")
"""

__version__ = "0.1.0"
__all__ = ['get_logger', 'setup_logging', 'config', 'Config', 'ProvisioningError']

from core.config import Config, config
from core.exceptions import ProvisioningError
from core.logger import get_logger, setup_logging
