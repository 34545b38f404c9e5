"""
Identity Services Package.

The ``create_services()`` factory wires the Supabase adapters and every
auth service together, returning a typed dict that the application layer
can consume without knowing the internal dependency graph.
``wire_services()`` does the same for already-built ports, which is how
tests inject in-memory fakes.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from consultops.auth import SessionManager
from consultops.config import AppConfig
from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger, get_logger
from consultops.ports import CredentialProvider, ProfileStore
from consultops.repositories.profile_repository import ProfileRepository
from consultops.services.auth_service import AuthService
from consultops.services.credential_provider import SupabaseCredentialProvider
from consultops.services.fallback_auth import FallbackAuthenticator
from consultops.services.live_profile import LiveProfileSync
from consultops.services.profile_update import ProfileUpdateCoordinator
from consultops.services.role_resolver import RoleResolver


class ServiceContainer(TypedDict):
    """Typed container for all identity services."""

    auth_service: AuthService
    profile_update_service: ProfileUpdateCoordinator
    role_resolver: RoleResolver
    fallback_authenticator: FallbackAuthenticator
    live_profile_sync: LiveProfileSync


def wire_services(
    provider: CredentialProvider,
    store: ProfileStore,
    session: SessionManager,
    config: AppConfig,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """Wire the auth services around the given ports."""
    logger = logger or get_logger("services")

    # ------------------------------------------------------------------
    # 1. Leaf services (ports only)
    # ------------------------------------------------------------------
    role_resolver = RoleResolver(store=store, logger=logger)
    fallback_authenticator = FallbackAuthenticator(store=store, config=config, logger=logger)
    live_profile_sync = LiveProfileSync(
        store=store,
        session=session,
        config=config,
        logger=logger,
    )

    # ------------------------------------------------------------------
    # 2. Orchestration services
    # ------------------------------------------------------------------
    auth_service = AuthService(
        provider=provider,
        store=store,
        session=session,
        resolver=role_resolver,
        fallback=fallback_authenticator,
        live_sync=live_profile_sync,
        config=config,
        logger=logger,
    )
    live_profile_sync.set_forced_logout_handler(auth_service.logout)

    profile_update_service = ProfileUpdateCoordinator(
        provider=provider,
        store=store,
        session=session,
        logger=logger,
    )

    return ServiceContainer(
        auth_service=auth_service,
        profile_update_service=profile_update_service,
        role_resolver=role_resolver,
        fallback_authenticator=fallback_authenticator,
        live_profile_sync=live_profile_sync,
    )


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    session: SessionManager,
) -> ServiceContainer:
    """
    Wire the Supabase adapters and all services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup.

    Args:
        db: Initialised DatabaseManager (Supabase client may be offline).
        config: Application configuration.
        session: The process's single session holder.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = get_logger("services")

    provider = SupabaseCredentialProvider(db=db, logger=logger)
    store = ProfileRepository(db=db, config=config, logger=logger)

    return wire_services(
        provider=provider,
        store=store,
        session=session,
        config=config,
        logger=logger,
    )
