"""
Backend Connection Layer.

Owns the single Supabase client shared by the credential provider
adapter (Supabase Auth) and the profile repository (Supabase tables).
This module only manages the *connection*; it contains no query logic.

Usage (dependency injection at app startup)::

    from consultops.database import DatabaseManager
    from consultops.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

from typing import Optional

from supabase import Client as SupabaseClient
from supabase import create_client

from consultops.logger import StructuredLogger


class DatabaseManager:
    """Holds the Supabase client, or nothing when running unconfigured.

    When ``supabase_url`` or ``supabase_key`` is empty no client is
    created.  The ``supabase`` property then raises ``RuntimeError``,
    which the adapters translate into ``NETWORK_ERROR`` so the login
    flow proceeds down its fallback path.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
    supabase_key:
        The Supabase anonymous key.
    logger:
        A ``StructuredLogger`` instance.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        logger: StructuredLogger,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._supabase: Optional[SupabaseClient] = None

        if supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Running unconfigured.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running unconfigured.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; backend calls will fail "
                "with network errors."
            )

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the client was not initialised.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Check SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None
