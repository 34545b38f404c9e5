"""
Profile Update Coordinator.

Applies a user's own name / email / phone edits to the credential
provider and to both profile collections.

Best-effort, not transactional: every sub-operation is attempted even
after an earlier one failed, and the first failure (in the order
provider email, provider name, member write, client write) is what the
caller sees.  A write against a collection that holds no document for
the identity is a no-op, not an error.
"""

from __future__ import annotations

from typing import Callable, Optional

from consultops.auth import SessionManager
from consultops.logger import StructuredLogger
from consultops.models.auth_models import AuthErrorCode, AuthResult
from consultops.models.enums import COLLECTION_PRIORITY, ProfileCollection
from consultops.models.identity import Identity
from consultops.models.profile_record import WRITE_SYNONYMS
from consultops.ports import CredentialProvider, ProfileStore, ProfileStoreError
from consultops.services.auth_service import AuthService
from consultops.services.base_service import BaseService
from consultops.services.credential_provider import classify_provider_error
from consultops.utils.audit import log_audit_event
from consultops.utils.string_helpers import is_blank, normalize_email

_UPDATE_FAILED_MESSAGE: str = "Could not update your profile. Please try again."


class ProfileUpdateCoordinator(BaseService):
    """Fans a profile edit out to the provider and both collections."""

    def __init__(
        self,
        provider: CredentialProvider,
        store: ProfileStore,
        session: SessionManager,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._provider = provider
        self._store = store
        self._session = session

    def update_profile(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> AuthResult:
        """Apply the given edits; ``None`` or blank values are left alone.

        Returns
        -------
        AuthResult
            Success with the refreshed identity, or the first sub-operation
            failure.  ``USER_NOT_FOUND`` when nobody is signed in.
        """
        identity = self._session.current_identity
        if identity is None:
            return AuthResult.failure(
                AuthErrorCode.USER_NOT_FOUND, "You must be signed in to update your profile.",
            )

        new_name = None if is_blank(name) else name.strip()
        new_phone = None if is_blank(phone) else phone.strip()
        new_email: Optional[str] = None
        if not is_blank(email):
            check = AuthService.validate_email(email)
            if not check.is_valid:
                return AuthResult.failure(
                    AuthErrorCode.INVALID_CREDENTIALS, check.error_message or _UPDATE_FAILED_MESSAGE,
                )
            new_email = normalize_email(email)

        first_error: Optional[AuthErrorCode] = None

        def _record(step: str, code: Optional[AuthErrorCode]) -> None:
            nonlocal first_error
            if code is not None and first_error is None:
                first_error = code
                self._logger.warning(
                    "Profile update step %s failed for %s (%s).", step, identity.id, code,
                    extra={"event": "PROFILE_UPDATE_STEP_FAILED", "user_id": identity.id,
                           "error_code": str(code)},
                )

        if self._session.has_provider_account:
            if new_email is not None and new_email != identity.email:
                _record("provider-email", self._provider_step(
                    lambda: self._provider.update_email(new_email)))
            if new_name is not None and new_name != identity.display_name:
                _record("provider-name", self._provider_step(
                    lambda: self._provider.update_display_name(new_name)))

        fields = self._store_fields(new_name, new_email, new_phone)
        if fields:
            for collection in COLLECTION_PRIORITY:
                _record(f"{collection}-write", self._store_step(identity, collection, fields))

        if first_error is not None:
            return AuthResult.failure(first_error, _UPDATE_FAILED_MESSAGE)

        updated = self._session.apply_profile_edit(display_name=new_name, email=new_email) or identity
        log_audit_event(
            logger=self._logger,
            action="PROFILE_UPDATE",
            entity_type="profile",
            entity_id=updated.id,
            user_id=updated.id,
            details={
                "name_changed": new_name is not None,
                "email_changed": new_email is not None,
                "phone_changed": new_phone is not None,
            },
        )
        return AuthResult(
            success=True,
            user_id=updated.id,
            email=updated.email,
            display_name=updated.display_name,
            role=updated.role,
            login_path=self._session.login_path,
            collection=self._session.active_collection,
        )

    # ------------------------------------------------------------------
    # Sub-operations; each returns the failure code or ``None``.
    # ------------------------------------------------------------------

    def _provider_step(self, operation: Callable[[], None]) -> Optional[AuthErrorCode]:
        try:
            operation()
        except Exception as exc:
            self._logger.debug("Provider profile update raised: %s", exc)
            return classify_provider_error(exc)
        return None

    def _store_step(
        self, identity: Identity, collection: ProfileCollection, fields: dict[str, str],
    ) -> Optional[AuthErrorCode]:
        try:
            written = self._store.merge_document(collection, identity.id, fields)
        except ProfileStoreError as exc:
            self._logger.debug("Profile write to %s raised: %s", collection, exc)
            return exc.code
        if not written:
            self._logger.debug("No %s document for %s; skipping write.", collection, identity.id)
        return None

    @staticmethod
    def _store_fields(
        name: Optional[str], email: Optional[str], phone: Optional[str],
    ) -> dict[str, str]:
        fields: dict[str, str] = {}
        for logical, value in (("display_name", name), ("email", email), ("phone", phone)):
            if value is None:
                continue
            for key in WRITE_SYNONYMS[logical]:
                fields[key] = value
        return fields
