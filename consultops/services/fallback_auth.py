"""
Fallback (direct-record) Authentication.

Used when the credential provider rejects or cannot reach a login.  The
email is looked up in both profile collections concurrently and the
stored plaintext ``devPassword`` is compared verbatim.

Security notes
--------------
- The comparison is a plaintext string equality, not a hash check.
- A record with no stored password is accepted without any password
  check.
- When no record exists anywhere, a synthetic identity is fabricated
  from the email address (unless ``ALLOW_SYNTHETIC_LOGIN`` is off).

These are known weaknesses kept for compatibility with existing data.
The service only decides; applying the outcome to the session is the
caller's job.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from pydantic import BaseModel

from consultops.config import AppConfig
from consultops.logger import StructuredLogger
from consultops.models.auth_models import AuthErrorCode
from consultops.models.enums import COLLECTION_PRIORITY, LoginPath, ProfileCollection, Role
from consultops.models.identity import Identity
from consultops.models.profile_record import ProfileDocument, ProfileRecord
from consultops.ports import ProfileStore
from consultops.services.base_service import BaseService
from consultops.services.role_resolver import (
    IdentityResolutionError,
    lookup_failure_code,
    most_informative,
)
from consultops.utils.fan_out import run_settled
from consultops.utils.string_helpers import display_name_from_email, email_local_part

# Checked in order against the lowercased email local part.
_SYNTHETIC_ROLE_HINTS: tuple[tuple[str, Role], ...] = (
    ("superadmin", Role.SUPER_ADMIN),
    ("admin", Role.ADMIN),
    ("manager", Role.MANAGER),
    ("client", Role.CLIENT),
)


def synthetic_role_for(email: str) -> Role:
    """Guess a role from substrings of the email's local part."""
    local = email_local_part(email).lower()
    for hint, role in _SYNTHETIC_ROLE_HINTS:
        if hint in local:
            return role
    return Role.EMPLOYEE


class FallbackOutcome(BaseModel):
    """An accepted fallback login.

    ``record`` is ``None`` for a synthetic identity.
    """

    identity: Identity
    login_path: LoginPath
    record: Optional[ProfileRecord] = None

    @property
    def collection(self) -> Optional[ProfileCollection]:
        return self.record.collection if self.record is not None else None


class FallbackAuthenticator(BaseService):
    """Direct-record login against the profile store.

    Parameters
    ----------
    store:
        Profile store port.
    config:
        Supplies ``ALLOW_SYNTHETIC_LOGIN``.
    logger:
        Structured logger.
    """

    def __init__(
        self,
        store: ProfileStore,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._config = config

    def attempt(self, email: str, password: str) -> FallbackOutcome:
        """Authenticate *email* / *password* against stored records.

        Raises
        ------
        IdentityResolutionError
            ``INVALID_CREDENTIALS`` or ``ROLE_NOT_FOUND`` when records exist
            but none is acceptable.  With synthetic login disabled, an
            empty result raises ``USER_NOT_FOUND``, or the lookup failure
            code when a collection could not be read.  Otherwise an empty
            result, failed lookups included, always synthesizes.
        """
        settled = run_settled(
            {
                collection: self._lookup(collection, email)
                for collection in COLLECTION_PRIORITY
            },
            thread_prefix="fallback",
        )

        accepted: list[ProfileRecord] = []
        rejections: list[AuthErrorCode] = []
        lookup_errors: list[AuthErrorCode] = []

        for collection in COLLECTION_PRIORITY:
            outcome = settled[collection]
            if not outcome.ok:
                self._logger.warning(
                    "Fallback lookup in %s failed for %s: %s",
                    collection, email, outcome.error,
                    extra={"event": "FALLBACK_LOOKUP_FAILED", "collection": str(collection)},
                )
                lookup_errors.append(lookup_failure_code(outcome))
                continue

            document = outcome.value
            if document is None:
                continue

            record = ProfileRecord.from_document(document, email)
            stored = record.fallback_password
            if stored and stored != password:
                self._logger.warning(
                    "Fallback password mismatch for %s in %s.", email, collection,
                    extra={"event": "FALLBACK_PASSWORD_MISMATCH", "collection": str(collection)},
                )
                rejections.append(AuthErrorCode.INVALID_CREDENTIALS)
                continue
            if record.role is None:
                self._logger.warning(
                    "Unsupported role %r in %s for %s.", record.raw_role, collection, email,
                    extra={"event": "ROLE_NOT_FOUND", "collection": str(collection)},
                )
                rejections.append(AuthErrorCode.ROLE_NOT_FOUND)
                continue
            if not stored:
                self._logger.warning(
                    "Record %s/%s has no fallback password; accepting without check.",
                    collection, record.record_id,
                    extra={"event": "FALLBACK_UNVERIFIED"},
                )
            accepted.append(record)

        if accepted:
            winner = accepted[0]
            return FallbackOutcome(
                identity=Identity(
                    id=winner.record_id,
                    email=email,
                    display_name=winner.display_name,
                    role=winner.role,
                    profile_image_ref=winner.profile_image_ref,
                ),
                login_path=LoginPath.FALLBACK_RECORD,
                record=winner,
            )

        if rejections:
            raise IdentityResolutionError(
                most_informative(rejections), f"Fallback login rejected for {email}",
            )
        if not self._config.ALLOW_SYNTHETIC_LOGIN:
            if lookup_errors:
                raise IdentityResolutionError(
                    most_informative(lookup_errors), f"Fallback lookup failed for {email}",
                )
            raise IdentityResolutionError(
                AuthErrorCode.USER_NOT_FOUND, f"No profile record for {email}",
            )
        if lookup_errors:
            self._logger.warning(
                "Profile lookup failed for %s; synthesizing without a record.", email,
                extra={"event": "FALLBACK_LOOKUP_FAILED", "email": email},
            )
        return self.synthesize(email)

    def synthesize(self, email: str) -> FallbackOutcome:
        """Fabricate a last-resort identity from *email* alone."""
        role = synthetic_role_for(email)
        identity = Identity(
            id=str(uuid.uuid4()),
            email=email,
            display_name=display_name_from_email(email),
            role=role,
        )
        self._logger.warning(
            "No profile record for %s; synthesizing %s identity.", email, role,
            extra={"event": "SYNTHETIC_IDENTITY", "user_id": identity.id},
        )
        return FallbackOutcome(identity=identity, login_path=LoginPath.SYNTHETIC)

    def _lookup(
        self, collection: ProfileCollection, email: str,
    ) -> Callable[[], Optional[ProfileDocument]]:
        return lambda: self._store.find_by_email(collection, email)
