"""Commerce database management CLI.

Creates and drops the SQL schema backing the commerce domain. The memory
provider used in development and tests needs no schema, so both commands
are no-ops there.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

import structlog

logger = structlog.get_logger(__name__)


def setup_database():
    from commerce.domain import commerce
    from commerce.utils.db import setup_db

    commerce.init()
    setup_db(commerce)
    logger.info("schema_created", domain=commerce.name)


def drop_database():
    from commerce.domain import commerce
    from commerce.utils.db import drop_db

    commerce.init()
    drop_db(commerce)
    logger.info("schema_dropped", domain=commerce.name)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Commerce database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
