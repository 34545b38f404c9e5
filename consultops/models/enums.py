"""
Shared Enumerations for ConsultOps Models.

StrEnum values compare equal to their string equivalents, so
``role == "ADMIN"`` keeps working in log filters and tests.
"""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Closed set of application roles.

    Raw role strings from the profile store are mapped onto these by
    :func:`consultops.models.profile_record.normalize_role`.
    """

    EMPLOYEE = "EMPLOYEE"
    CLIENT = "CLIENT"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class ProfileCollection(StrEnum):
    """Logical profile collections.  Table names come from ``AppConfig``."""

    MEMBER = "member"
    CLIENT = "client"


# Deterministic tie-break order when both collections hold a usable record.
COLLECTION_PRIORITY: tuple[ProfileCollection, ...] = (
    ProfileCollection.MEMBER,
    ProfileCollection.CLIENT,
)


class LoginState(StrEnum):
    """States of the login state machine owned by ``SessionManager``."""

    IDLE = "IDLE"
    AUTHENTICATING = "AUTHENTICATING"
    ROLE_RESOLVING = "ROLE_RESOLVING"
    FALLBACK_AUTHENTICATING = "FALLBACK_AUTHENTICATING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"


class LoginPath(StrEnum):
    """How the current session was established."""

    PROVIDER = "PROVIDER"
    FALLBACK_RECORD = "FALLBACK_RECORD"
    SYNTHETIC = "SYNTHETIC"
    RESTORED = "RESTORED"
    REGISTERED = "REGISTERED"


# Paths on which the credential provider holds a signed-in account.
PROVIDER_BACKED_PATHS: frozenset[LoginPath] = frozenset(
    {LoginPath.PROVIDER, LoginPath.RESTORED, LoginPath.REGISTERED}
)
