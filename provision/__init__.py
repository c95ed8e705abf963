"""
==================================================
Provisioning package for ephemeral test databases.
==================================================

Composes the probe and lifecycle packages into a one-call provisioning of a
throwaway PostgreSQL server with a named database inside it.

Modules:
    create_database: createdb/createuser/dropdb/psql wrappers
    provision_orchestrator: Step-by-step provisioning (start_test_database)
    ephemeral: Context manager owning scratch directory and server

Example:
    >>> from provision import ephemeral_database
    >>>
    >>> with ephemeral_database('fargle') as db:
    ...     print(db.connection_url)
"""

__version__ = "0.1.0"
__all__ = [
    'ProvisioningOrchestrator',
    'ProvisioningState',
    'ProvisionedDatabase',
    'start_test_database',
    'ephemeral_database',
    'create_database',
    'create_user',
    'drop_database',
    'database_exists',
    'list_databases',
    'parse_database_list'
]

from .create_database import (
    create_database,
    create_user,
    database_exists,
    drop_database,
    list_databases,
    parse_database_list,
)
from .ephemeral import ephemeral_database
from .provision_orchestrator import (
    ProvisionedDatabase,
    ProvisioningOrchestrator,
    ProvisioningState,
    start_test_database,
)
