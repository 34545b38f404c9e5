"""
Base Repository.

Shared infrastructure for repositories:
- DatabaseManager reference
- Logger reference
- Uniform translation of backend failures into ``ProfileStoreError``
"""

from __future__ import annotations

from typing import Callable, TypeVar

from supabase import Client as SupabaseClient

from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger
from consultops.ports import ProfileStoreError

T = TypeVar("T")


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client for cloud operations."""
        return self._db.supabase

    def _execute(self, operation: Callable[[], T], *, operation_name: str) -> T:
        """Run *operation* and convert any backend failure into
        :class:`ProfileStoreError`.

        ``RuntimeError`` from an unconfigured client, transport errors and
        PostgREST ``APIError`` all surface the same way so callers only
        need one ``except`` clause.

        Parameters
        ----------
        operation:
            Zero-argument callable performing the Supabase request.
        operation_name:
            Human-readable label for log messages, e.g.
            ``"get_document (member-records)"``.
        """
        try:
            return operation()
        except ProfileStoreError:
            raise
        except Exception as exc:
            self._logger.warning(
                "Profile store unavailable for %s: %s", operation_name, exc,
                extra={"event": "STORE_ERROR", "operation": operation_name},
            )
            raise ProfileStoreError(f"{operation_name} failed: {exc}") from exc
