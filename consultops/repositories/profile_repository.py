"""
Profile Repository.

Supabase-backed implementation of the ``ProfileStore`` port.  Each
logical collection is a table shaped like a document store::

    create table "member-records" (
        id          text primary key,
        email       text,
        data        jsonb not null default '{}'::jsonb,
        updated_at  timestamptz not null default now()
    );

The ``data`` column carries every legacy field (``resourceRoleType``,
``clientName``, ``devPassword`` …).  ``email`` is promoted to a column so
the fallback login path can query it case-insensitively.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from consultops.config import AppConfig
from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger
from consultops.models.enums import ProfileCollection
from consultops.models.profile_record import ProfileDocument
from consultops.ports import SnapshotCallback
from consultops.repositories.base_repository import BaseRepository
from consultops.repositories.document_watcher import DocumentWatcher
from consultops.utils.string_helpers import emails_match, escape_like_pattern

_COLUMNS: str = "id, email, data"
_EMAIL_CANDIDATES: int = 10


class ProfileRepository(BaseRepository):
    """Data access for the member and client profile collections."""

    def __init__(
        self,
        db: DatabaseManager,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(db, logger)
        self._config = config
        self._tables: dict[ProfileCollection, str] = {
            ProfileCollection.MEMBER: config.MEMBER_COLLECTION,
            ProfileCollection.CLIENT: config.CLIENT_COLLECTION,
        }

    def table_name(self, collection: ProfileCollection) -> str:
        return self._tables[collection]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_document(
        self, collection: ProfileCollection, record_id: str,
    ) -> Optional[ProfileDocument]:
        """Point read by document id."""
        table = self.table_name(collection)

        def _op() -> Optional[ProfileDocument]:
            response = (
                self.supabase.table(table)
                .select(_COLUMNS)
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
            return self._first_document(collection, response.data)

        return self._execute(_op, operation_name=f"get_document ({table})")

    def find_by_email(
        self, collection: ProfileCollection, email: str,
    ) -> Optional[ProfileDocument]:
        """Return the first document whose ``email`` equals *email*, ignoring case.

        Legacy records keep the email as it was typed at sign-up, so the
        query is an escaped ``ilike`` and candidates are re-checked for
        exact case-insensitive equality.
        """
        table = self.table_name(collection)

        def _op() -> Optional[ProfileDocument]:
            response = (
                self.supabase.table(table)
                .select(_COLUMNS)
                .ilike("email", escape_like_pattern(email.strip()))
                .limit(_EMAIL_CANDIDATES)
                .execute()
            )
            rows = [
                row for row in (response.data or [])
                if emails_match(row.get("email"), email)
            ]
            return self._first_document(collection, rows)

        return self._execute(_op, operation_name=f"find_by_email ({table})")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_document(
        self, collection: ProfileCollection, record_id: str, data: dict[str, Any],
    ) -> ProfileDocument:
        """Insert (or overwrite) a whole document."""
        table = self.table_name(collection)
        row = {
            "id": record_id,
            "email": data.get("email"),
            "data": data,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        def _op() -> ProfileDocument:
            self.supabase.table(table).upsert(row).execute()
            return ProfileDocument(collection=collection, record_id=record_id, data=dict(data))

        document = self._execute(_op, operation_name=f"create_document ({table})")
        self._logger.info("Profile document created: %s/%s", table, record_id)
        return document

    def merge_document(
        self, collection: ProfileCollection, record_id: str, fields: dict[str, Any],
    ) -> bool:
        """Merge *fields* into an existing document's ``data``.

        A missing document is a no-op and returns ``False``.  The merge is
        read-modify-write; concurrent writers to the same document can
        lose an update.
        """
        existing = self.get_document(collection, record_id)
        if existing is None:
            self._logger.debug(
                "merge_document skipped: %s/%s does not exist.",
                self.table_name(collection), record_id,
            )
            return False

        table = self.table_name(collection)
        merged: dict[str, Any] = {**existing.data, **fields}
        update: dict[str, Any] = {
            "data": merged,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if "email" in fields:
            update["email"] = fields["email"]

        def _op() -> bool:
            self.supabase.table(table).update(update).eq("id", record_id).execute()
            return True

        return self._execute(_op, operation_name=f"merge_document ({table})")

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(
        self,
        collection: ProfileCollection,
        record_id: str,
        on_snapshot: SnapshotCallback,
    ) -> DocumentWatcher:
        """Start a polling watcher that pushes snapshots on change."""
        watcher = DocumentWatcher(
            collection=collection,
            record_id=record_id,
            fetch=lambda: self.get_document(collection, record_id),
            on_snapshot=on_snapshot,
            interval_s=self._config.PROFILE_POLL_INTERVAL_S,
            max_interval_s=self._config.PROFILE_POLL_MAX_INTERVAL_S,
            logger=self._logger,
        )
        watcher.start()
        return watcher

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _first_document(
        collection: ProfileCollection, rows: Optional[list[dict[str, Any]]],
    ) -> Optional[ProfileDocument]:
        if not rows:
            return None
        row = rows[0]
        data: dict[str, Any] = dict(row.get("data") or {})
        if row.get("email") and "email" not in data:
            data["email"] = row["email"]
        return ProfileDocument(collection=collection, record_id=str(row["id"]), data=data)
