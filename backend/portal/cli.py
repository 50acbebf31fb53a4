"""
cli.py — Records Portal Command-Line Tool

Commands:
    records-portal init-db
        Create every table on DATABASE_URL.

    records-portal create-admin --name "Jane Admin" --login-name jadmin --password '...'
        Provision an admin account. The HTTP register route only creates
        doctor / nurse / assistant accounts, so the first admin comes from here.

Settings are read from the environment / backend/.env like the API server.
"""

import argparse
import sys
from typing import List, Optional

from portal.core.config import Settings, get_settings
from portal.core.database import Database
from portal.core.errors import PortalError
from portal.core.logging import configure_logging, get_logger
from portal.services.credentials import CredentialVerifier
from portal.services.policy import Role

logger = get_logger(__name__)


def _init_db(database: Database, settings: Settings, args: argparse.Namespace) -> int:
    database.create_all()
    print("✓ Database tables created")
    return 0


def _create_admin(database: Database, settings: Settings, args: argparse.Namespace) -> int:
    database.create_all()

    db = database.session()
    try:
        verifier = CredentialVerifier(
            db,
            secret_key=settings.JWT_SECRET_KEY,
            expire_minutes=settings.JWT_EXPIRE_MINUTES,
            algorithm=settings.JWT_ALGORITHM,
        )
        user = verifier.register(
            name=args.name,
            login_name=args.login_name,
            password=args.password,
            role=Role.ADMIN.value,
            allowed_roles=frozenset({Role.ADMIN}),
        )
    finally:
        db.close()

    print(f"✓ Admin '{user.username}' created (id={user.id})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="records-portal",
        description="Administrative commands for the records portal backend",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create database tables")
    init_db.set_defaults(handler=_init_db)

    create_admin = subparsers.add_parser("create-admin", help="Create an admin account")
    create_admin.add_argument("--name", required=True, help="Display name")
    create_admin.add_argument("--login-name", required=True, help="Login name (must be unique)")
    create_admin.add_argument("--password", required=True, help="Initial password")
    create_admin.set_defaults(handler=_create_admin)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    database = Database(settings.DATABASE_URL)
    try:
        return args.handler(database, settings, args)
    except PortalError as e:
        logger.error("%s failed: %s", args.command, e.detail or e.message)
        print(f"✗ {e.message}", file=sys.stderr)
        return 1
    finally:
        database.dispose()


if __name__ == "__main__":
    sys.exit(main())
