"""
Role Resolution Service.

Given an identity id, looks the id up in both profile collections at the
same time, waits for both lookups to settle, and turns the winning
document into an :class:`Identity` with a normalised :class:`Role`.

Merge rules:
    - A record whose role string does not normalise is rejected
      (``ROLE_NOT_FOUND``); it is never defaulted.
    - When both collections hold a usable record, the member collection
      wins.  Completion order never affects the result.
    - When nothing is usable the most informative failure is reported:
      ``ROLE_NOT_FOUND`` > ``NETWORK_ERROR`` > ``UNKNOWN`` > ``USER_NOT_FOUND``.

This service is a pure lookup; it never touches the session.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from consultops.logger import StructuredLogger
from consultops.models.auth_models import AuthErrorCode
from consultops.models.enums import COLLECTION_PRIORITY, ProfileCollection
from consultops.models.identity import Identity
from consultops.models.profile_record import ProfileDocument, ProfileRecord
from consultops.ports import ProfileStore, ProfileStoreError
from consultops.services.base_service import BaseService
from consultops.utils.fan_out import Settled, run_settled

__all__ = [
    "IdentityResolutionError",
    "ResolvedProfile",
    "RoleResolver",
    "lookup_failure_code",
    "most_informative",
]

_FAILURE_PRECEDENCE: tuple[AuthErrorCode, ...] = (
    AuthErrorCode.INVALID_CREDENTIALS,
    AuthErrorCode.ROLE_NOT_FOUND,
    AuthErrorCode.NETWORK_ERROR,
    AuthErrorCode.UNKNOWN,
    AuthErrorCode.USER_NOT_FOUND,
)


class IdentityResolutionError(Exception):
    """No usable profile record could be resolved."""

    def __init__(self, code: AuthErrorCode, message: str = "") -> None:
        self.code: AuthErrorCode = code
        self.message: str = message or str(code)
        super().__init__(self.message)


class ResolvedProfile(BaseModel):
    """A profile record that passed normalisation, plus its identity."""

    identity: Identity
    record: ProfileRecord

    @property
    def collection(self) -> ProfileCollection:
        return self.record.collection


def most_informative(codes: Iterable[AuthErrorCode]) -> AuthErrorCode:
    """Pick the failure to surface when several branches failed."""
    seen = set(codes)
    for code in _FAILURE_PRECEDENCE:
        if code in seen:
            return code
    return AuthErrorCode.USER_NOT_FOUND


def lookup_failure_code(outcome: Settled[ProfileCollection, Optional[ProfileDocument]]) -> AuthErrorCode:
    """Classify a lookup branch that raised."""
    if isinstance(outcome.error, ProfileStoreError):
        return AuthErrorCode.NETWORK_ERROR
    return AuthErrorCode.UNKNOWN


class RoleResolver(BaseService):
    """Resolves an identity id to a role across both profile collections.

    Parameters
    ----------
    store:
        Profile store port.
    logger:
        Structured logger.
    """

    def __init__(self, store: ProfileStore, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._store = store

    def resolve(self, record_id: str, email: str) -> ResolvedProfile:
        """Return the resolved profile for *record_id*.

        Raises
        ------
        IdentityResolutionError
            When neither collection yields a record with a recognised role.
        """
        settled = run_settled(
            {
                collection: self._lookup(collection, record_id)
                for collection in COLLECTION_PRIORITY
            },
            thread_prefix="resolve",
        )

        accepted: list[ProfileRecord] = []
        failures: list[AuthErrorCode] = []

        for collection in COLLECTION_PRIORITY:
            outcome = settled[collection]
            if not outcome.ok:
                self._logger.warning(
                    "Role lookup in %s failed for %s: %s",
                    collection, record_id, outcome.error,
                    extra={"event": "ROLE_LOOKUP_FAILED", "collection": str(collection)},
                )
                failures.append(lookup_failure_code(outcome))
                continue

            document = outcome.value
            if document is None:
                self._logger.debug("No %s record for %s.", collection, record_id)
                failures.append(AuthErrorCode.USER_NOT_FOUND)
                continue

            record = ProfileRecord.from_document(document, email)
            if record.role is None:
                self._logger.warning(
                    "Unsupported role %r in %s for %s.",
                    record.raw_role, collection, record_id,
                    extra={"event": "ROLE_NOT_FOUND", "collection": str(collection)},
                )
                failures.append(AuthErrorCode.ROLE_NOT_FOUND)
                continue

            accepted.append(record)

        if not accepted:
            code = most_informative(failures)
            raise IdentityResolutionError(code, f"Could not resolve role for {record_id}")

        if len(accepted) > 1:
            self._logger.warning(
                "Record %s exists in both collections; preferring %s.",
                record_id, accepted[0].collection,
                extra={"event": "ROLE_TIE_BREAK"},
            )

        winner = accepted[0]
        return ResolvedProfile(
            identity=Identity(
                id=record_id,
                email=email,
                display_name=winner.display_name,
                role=winner.role,
                profile_image_ref=winner.profile_image_ref,
            ),
            record=winner,
        )

    def _lookup(
        self, collection: ProfileCollection, record_id: str,
    ) -> Callable[[], Optional[ProfileDocument]]:
        return lambda: self._store.get_document(collection, record_id)
