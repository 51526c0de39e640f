"""ParcelHub database management CLI.

Creates and drops the relational schema of the logistics domain using the
setup_db/drop_db utilities in ``logistics.utils.db``. Select the provider
with PROTEAN_ENV (``production`` points at PostgreSQL via DATABASE_URL).

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def _domain():
    from logistics.domain import logistics

    print("Initializing logistics domain...")
    logistics.init()
    return logistics


def setup_database():
    from logistics.utils.db import setup_db

    domain = _domain()
    print("Creating logistics database schema...")
    setup_db(domain)
    print("  logistics schema ready.")


def drop_database():
    from logistics.utils.db import drop_db

    domain = _domain()
    print("Dropping logistics database schema...")
    drop_db(domain)
    print("  logistics schema dropped.")


def main():
    parser = argparse.ArgumentParser(description="ParcelHub database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
