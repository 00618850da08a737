"""Script to run database migrations."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def run_migrations(revision: str = "head") -> None:
    """Upgrade the database to ``revision``."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Running database migrations to {revision}...")
        command.upgrade(alembic_cfg, revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback(revision: str) -> None:
    """Downgrade the database to ``revision``."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Rolling back to {revision}...")
        command.downgrade(alembic_cfg, revision)
        print("✓ Rollback completed successfully!")
    except Exception as e:
        print(f"✗ Rollback failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Create a new autogenerated migration."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Creating migration: {message}")
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage database migrations")
    subparsers = parser.add_subparsers(dest="command")

    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade (default: head)")
    upgrade_parser.add_argument("revision", nargs="?", default="head")

    downgrade_parser = subparsers.add_parser("downgrade", help="Downgrade to a revision")
    downgrade_parser.add_argument("revision")

    create_parser = subparsers.add_parser("create", help="Autogenerate a new revision")
    create_parser.add_argument("message", nargs="+")

    args = parser.parse_args()
    if args.command == "downgrade":
        rollback(args.revision)
    elif args.command == "create":
        create_migration(" ".join(args.message))
    else:
        run_migrations(getattr(args, "revision", "head"))
