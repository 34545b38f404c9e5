"""
ConsultOps Identity Console Entry Point.

Bootstraps the dependency graph via constructor injection and runs an
interactive sign-in so the identity layer can be exercised without the
rest of the client.  Every subsystem is wired here; there are no
module-level globals.

Usage::

    python main.py                 # prompt for email / password
    python main.py --restore       # resume the provider's saved session
    python main.py --reset EMAIL   # send a password-reset link
"""

from __future__ import annotations

import argparse
import getpass
import sys
import time
from typing import Optional

from consultops.auth import SessionManager
from consultops.config import get_config
from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger, get_logger
from consultops.models.identity import Identity
from consultops.services import create_services


def _print_identity(identity: Optional[Identity]) -> None:
    if identity is None:
        print("Signed out.")
        return
    print(f"Signed in as {identity.display_name} <{identity.email}> [{identity.role}]")


def main(argv: Optional[list[str]] = None) -> int:
    """Application entry point; wire dependencies and run the console flow."""
    parser = argparse.ArgumentParser(description="ConsultOps identity console")
    parser.add_argument("--restore", action="store_true", help="restore the saved provider session")
    parser.add_argument("--reset", metavar="EMAIL", help="request a password reset for EMAIL")
    args = parser.parse_args(argv)

    logger: StructuredLogger = get_logger("main")
    logger.info("Starting ConsultOps identity console...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Backend connection (Supabase optional; fallback login works without it)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
    )

    # ------------------------------------------------------------------
    # 3. Session + service container (single composition root)
    # ------------------------------------------------------------------
    session = SessionManager(logger=StructuredLogger(name="session"))
    session.add_listener(_print_identity)
    services = create_services(db=db, config=config, session=session)
    auth = services["auth_service"]

    if args.reset:
        result = auth.request_password_reset(args.reset)
        print(result.error_message)
        return 0 if result.success else 1

    if args.restore:
        result = auth.restore_session()
    else:
        email = input("Email: ")
        password = getpass.getpass("Password: ")
        result = auth.login(email, password)

    if not result.success:
        print(result.error_message)
        return 1

    # ------------------------------------------------------------------
    # 4. Stay signed in until interrupted; live profile edits are printed
    # ------------------------------------------------------------------
    print("Watching profile for changes. Press Ctrl+C to sign out.")
    try:
        while session.is_authenticated:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        auth.logout()
        logger.info("ConsultOps identity console shut down.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
