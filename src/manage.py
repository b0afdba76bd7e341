"""Storefront management CLI.

Provides commands to create and drop the database schema and to run the
draft-expiry sweep from a scheduler.

Usage:
    python src/manage.py setup-db                      # Create all tables
    python src/manage.py drop-db                       # Drop all tables
    python src/manage.py expire-drafts --older-than 60 # Reclaim abandoned drafts
"""

import argparse
import sys


def setup_database():
    """Create the storefront database schema."""
    from storefront.domain import storefront
    from storefront.utils.db import setup_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Creating storefront database schema...")
    touched = setup_db(storefront)
    print(f"  schema ready on {touched} SQL provider(s).")
    print("Done.")


def drop_database():
    """Drop the storefront database schema."""
    from storefront.domain import storefront
    from storefront.utils.db import drop_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Dropping storefront database schema...")
    touched = drop_db(storefront)
    print(f"  schema dropped on {touched} SQL provider(s).")
    print("Done.")


def expire_drafts(older_than_minutes=None):
    """Cancel abandoned drafts and release their promotional code reservations."""
    from storefront.domain import storefront
    from storefront.order.expiry import expire_stale_drafts
    from storefront.utils.logging import configure_logging

    configure_logging()
    storefront.init()
    with storefront.domain_context():
        count = expire_stale_drafts(older_than_minutes=older_than_minutes)
    print(f"Expired {count} draft order(s).")


def main():
    parser = argparse.ArgumentParser(description="Storefront management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    expire_parser = subparsers.add_parser("expire-drafts", help="Cancel abandoned draft orders")
    expire_parser.add_argument(
        "--older-than",
        type=int,
        dest="older_than",
        default=None,
        help="Age threshold in minutes (default: STOREFRONT_DRAFT_EXPIRY_MINUTES)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-drafts":
        expire_drafts(args.older_than)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
