"""
Live Profile Sync.

Keeps the session identity in step with server-side edits to the
subscribed profile document.  Each push is re-normalised and applied
through ``SessionManager.apply_remote_update``; pushes carrying a stale
subscription token are dropped there.
"""

from __future__ import annotations

from typing import Callable, Optional

from consultops.auth import SessionManager
from consultops.config import AppConfig
from consultops.logger import StructuredLogger
from consultops.models.enums import ProfileCollection
from consultops.models.profile_record import ProfileRecord
from consultops.ports import DocumentSnapshot, ProfileStore, SnapshotCallback
from consultops.services.base_service import BaseService
from consultops.utils.audit import log_audit_event


class LiveProfileSync(BaseService):
    """Owns the callback side of the session's single live subscription.

    Parameters
    ----------
    store:
        Profile store port (its ``subscribe`` opens the feed).
    session:
        Shared session state.
    config:
        Supplies ``LOGOUT_ON_PROFILE_DELETE``.
    logger:
        Structured logger.
    on_forced_logout:
        Called when a deleted document ends the session; the auth
        service wires its ``logout`` here.
    """

    def __init__(
        self,
        store: ProfileStore,
        session: SessionManager,
        config: AppConfig,
        logger: StructuredLogger,
        on_forced_logout: Optional[Callable[[], object]] = None,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._session = session
        self._config = config
        self._on_forced_logout = on_forced_logout

    def set_forced_logout_handler(self, handler: Callable[[], object]) -> None:
        self._on_forced_logout = handler

    def start(self, attempt: int, collection: ProfileCollection, record_id: str) -> bool:
        """Subscribe to *collection*/*record_id* for login *attempt*.

        Any previous subscription is cancelled first.  Returns ``False``
        when the attempt was superseded before the feed was attached.
        """
        attached = self._session.attach_subscription(
            attempt,
            lambda token: self._store.subscribe(
                collection, record_id, self._callback(token),
            ),
        )
        if attached:
            self._logger.info(
                "Live profile subscription started for %s/%s.", collection, record_id,
                extra={"event": "SUBSCRIPTION_START", "collection": str(collection)},
            )
        return attached

    def _callback(self, token: int) -> SnapshotCallback:
        return lambda snapshot: self.handle_snapshot(token, snapshot)

    def handle_snapshot(self, token: int, snapshot: DocumentSnapshot) -> None:
        """Apply one pushed snapshot to the session."""
        if not self._session.is_current_subscription(token):
            self._logger.debug(
                "Dropping snapshot for %s/%s from a superseded subscription.",
                snapshot.collection, snapshot.record_id,
            )
            return

        if snapshot.document is None:
            self._handle_deleted(token, snapshot)
            return

        current = self._session.current_identity
        if current is None:
            return
        record = ProfileRecord.from_document(snapshot.document, current.email)
        if record.role is None:
            self._logger.warning(
                "Remote update for %s carries unsupported role %r; keeping %s.",
                snapshot.record_id, record.raw_role, current.role,
                extra={"event": "REMOTE_ROLE_IGNORED", "collection": str(snapshot.collection)},
            )

        updated = self._session.apply_remote_update(
            token,
            role=record.role,
            display_name=record.display_name,
            profile_image_ref=record.profile_image_ref,
        )
        if updated is None:
            return
        if updated.role != current.role or updated.display_name != current.display_name:
            log_audit_event(
                logger=self._logger,
                action="REMOTE_PROFILE_UPDATE",
                entity_type="profile",
                entity_id=snapshot.record_id,
                user_id=updated.id,
                details={
                    "collection": str(snapshot.collection),
                    "role": str(updated.role),
                    "previous_role": str(current.role),
                },
            )

    def _handle_deleted(self, token: int, snapshot: DocumentSnapshot) -> None:
        self._logger.warning(
            "Subscribed profile %s/%s no longer exists.",
            snapshot.collection, snapshot.record_id,
            extra={"event": "PROFILE_DELETED", "collection": str(snapshot.collection)},
        )
        if not self._config.LOGOUT_ON_PROFILE_DELETE:
            return
        if self._on_forced_logout is None or not self._session.is_current_subscription(token):
            return
        self._logger.info(
            "Ending session after profile deletion.",
            extra={"event": "FORCED_LOGOUT", "user_id": snapshot.record_id},
        )
        self._on_forced_logout()
