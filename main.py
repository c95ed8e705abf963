"""
=========================================================
Command-line entry point for ephemeral test databases.
=========================================================

Thin CLI over the probe, lifecycle and provision packages:

    - Check that the PostgreSQL binaries are installed
    - Check whether a server is running (globally or on a port)
    - Provision a server and database in a directory
    - Stop a server by pid

Usage:
    # Check installed binaries
    python main.py --check

    # Is any postgres running? Is one listening on 54321?
    python main.py --running
    python main.py --running --port 54321

    # Provision database 'fargle' in /tmp/x/db1
    python main.py --start /tmp/x/db1 --name fargle

    # Stop it again
    python main.py --stop 4242
"""

import argparse
import json
import sys

from core.exceptions import ProvisioningError
from core.logger import get_logger, setup_logging
from lifecycle.server_process import stop_server
from probe.installed import check_installed
from probe.running import is_running
from provision.provision_orchestrator import start_test_database

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description="Ephemeral PostgreSQL databases for test suites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --check
  python main.py --running --port 54321
  python main.py --start /tmp/x/db1 --name fargle --create-user
  python main.py --stop 4242
        """
    )

    operation = parser.add_mutually_exclusive_group()
    operation.add_argument(
        '--check',
        action='store_true',
        help='Report missing PostgreSQL executables'
    )
    operation.add_argument(
        '--running',
        action='store_true',
        help='Report whether a postgres server is running'
    )
    operation.add_argument(
        '--start',
        metavar='DATA_DIR',
        help='Provision a server in DATA_DIR and create a database'
    )
    operation.add_argument(
        '--stop',
        metavar='PID',
        type=int,
        help='Kill the server with this pid and wait for it to exit'
    )

    parser.add_argument('--port', type=int, help='Port to check with --running')
    parser.add_argument('--name', help='Database name for --start')
    parser.add_argument(
        '--create-user',
        action='store_true',
        help='Also create a role named after the database'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging (DEBUG level)'
    )
    return parser


def main(argv=None) -> int:
    """Run the CLI.

    Exit Codes:
        0: Success (for --check: all present; for --running: running)
        1: Error, or negative answer
        130: User interrupt (Ctrl+C)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(log_level='DEBUG' if args.verbose else 'INFO')

    try:
        if args.check:
            installed = check_installed()
            if installed.all_present:
                logger.info("All PostgreSQL executables found")
                return 0
            logger.error(f"Missing PostgreSQL executables: {', '.join(installed.missing)}")
            return 1

        elif args.running:
            running = is_running(args.port)
            where = f" on port {args.port}" if args.port is not None else ""
            logger.info(f"postgres is {'running' if running else 'not running'}{where}")
            return 0 if running else 1

        elif args.start:
            if not args.name:
                parser.error('--start requires --name')
            database = start_test_database(
                args.start,
                args.name,
                create_user=args.create_user or None
            )
            print(json.dumps(database.to_dict()))
            return 0

        elif args.stop is not None:
            stop_server(args.stop)
            return 0

        else:
            parser.print_help()
            logger.warning("No operation specified. Use --check, --running, --start or --stop.")
            return 1

    except ProvisioningError as e:
        logger.error(f"❌ {e.step} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
