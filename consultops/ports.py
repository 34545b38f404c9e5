"""
External collaborator ports.

The auth services talk to the credential provider and the profile store
only through these protocols.  ``consultops.services.credential_provider``
and ``consultops.repositories.profile_repository`` are the Supabase
implementations; tests supply in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from consultops.models.auth_models import AuthErrorCode, ProviderAccount
from consultops.models.enums import ProfileCollection
from consultops.models.profile_record import ProfileDocument

__all__ = [
    "CredentialProvider",
    "CredentialProviderError",
    "DocumentSnapshot",
    "ProfileStore",
    "ProfileStoreError",
    "SnapshotCallback",
    "Subscription",
]


class CredentialProviderError(Exception):
    """Raised by a credential provider; ``code`` is already classified."""

    def __init__(self, code: AuthErrorCode, message: str = "") -> None:
        self.code: AuthErrorCode = code
        self.message: str = message or str(code)
        super().__init__(self.message)


class ProfileStoreError(Exception):
    """Transport or backend failure talking to the profile store."""

    code: AuthErrorCode = AuthErrorCode.NETWORK_ERROR


class DocumentSnapshot:
    """One push from a document subscription.

    ``document`` is ``None`` when the subscribed document does not exist
    (never created, or deleted server-side).
    """

    __slots__ = ("collection", "record_id", "document")

    def __init__(
        self,
        collection: ProfileCollection,
        record_id: str,
        document: Optional[ProfileDocument],
    ) -> None:
        self.collection = collection
        self.record_id = record_id
        self.document = document

    @property
    def exists(self) -> bool:
        return self.document is not None


SnapshotCallback = Callable[[DocumentSnapshot], None]


class Subscription(Protocol):
    """Handle for a live document feed."""

    def cancel(self) -> None: ...


class CredentialProvider(Protocol):
    """Managed identity service (sign-in, sign-up, account metadata)."""

    def sign_in(self, email: str, password: str) -> ProviderAccount: ...

    def sign_up(self, email: str, password: str, display_name: str) -> ProviderAccount: ...

    def sign_out(self) -> None: ...

    def current_account(self) -> Optional[ProviderAccount]: ...

    def update_email(self, new_email: str) -> None: ...

    def update_display_name(self, display_name: str) -> None: ...

    def send_password_reset(self, email: str, redirect_url: str) -> None: ...


class ProfileStore(Protocol):
    """Document store holding the member and client profile collections.

    Lookups return ``None`` for a missing document and raise
    :class:`ProfileStoreError` on transport failure.
    """

    def get_document(
        self, collection: ProfileCollection, record_id: str,
    ) -> Optional[ProfileDocument]: ...

    def find_by_email(
        self, collection: ProfileCollection, email: str,
    ) -> Optional[ProfileDocument]:
        """First document whose stored email equals *email*, ignoring case."""
        ...

    def create_document(
        self, collection: ProfileCollection, record_id: str, data: dict[str, Any],
    ) -> ProfileDocument: ...

    def merge_document(
        self, collection: ProfileCollection, record_id: str, fields: dict[str, Any],
    ) -> bool:
        """Merge *fields* into an existing document.

        Returns ``False`` (and writes nothing) when the document does not
        exist.
        """
        ...

    def subscribe(
        self,
        collection: ProfileCollection,
        record_id: str,
        on_snapshot: SnapshotCallback,
    ) -> Subscription: ...
