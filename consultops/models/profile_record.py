"""
Profile Record Models.

The profile store has accumulated several historical schemas for the
same logical field (``clientName`` vs ``name`` vs ``displayName`` …).
``FIELD_SYNONYMS`` is the single priority table used to read them: for
each logical field the synonyms are tried top to bottom and the first
present, non-blank string wins.

Role normalisation lives here as well so that login resolution, the
fallback path and live subscription updates share one rule set.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from consultops.models.enums import ProfileCollection, Role

__all__ = [
    "FALLBACK_PASSWORD_FIELD",
    "FIELD_SYNONYMS",
    "WRITE_SYNONYMS",
    "ROLE_STORAGE_VALUES",
    "ProfileDocument",
    "ProfileRecord",
    "first_present",
    "normalize_role",
]


FIELD_SYNONYMS: dict[str, tuple[str, ...]] = {
    "role": ("resourceRoleType", "resource_role_type", "roleType", "role"),
    "display_name": ("clientName", "name", "displayName"),
    "profile_image_ref": (
        "imageUrl",
        "imageurl",
        "profileImageURL",
        "profileImage",
        "photoURL",
    ),
    "email": ("email",),
}

# Plaintext fallback password, compared verbatim on the direct-record path.
FALLBACK_PASSWORD_FIELD: str = "devPassword"

# Profile edits are written under every legacy name so older readers
# keep seeing the new value.
WRITE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "display_name": ("name", "displayName", "clientName"),
    "email": ("email",),
    "phone": ("phone", "phoneNumber", "mobile", "mobileNumber", "contactNo"),
}

# Role strings written on registration; each round-trips through
# ``normalize_role``.
ROLE_STORAGE_VALUES: dict[Role, str] = {
    Role.EMPLOYEE: "member",
    Role.CLIENT: "client",
    Role.MANAGER: "manager",
    Role.ADMIN: "admin",
    Role.SUPER_ADMIN: "superadmin",
}


def first_present(data: Mapping[str, Any], logical_field: str) -> Optional[str]:
    """Return the first non-blank string stored under *logical_field*'s synonyms."""
    for key in FIELD_SYNONYMS[logical_field]:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def normalize_role(raw: Optional[str]) -> Optional[Role]:
    """Map a stored role string onto :class:`Role`.

    Matching is case-insensitive on the whitespace-trimmed value and is
    checked in this order: ``superadmin``/``super_admin``, ``admin``,
    anything containing ``manager``, ``client``, ``member``.  Returns
    ``None`` for anything else; callers decide whether that is fatal.
    """
    if raw is None:
        return None
    token = raw.strip().lower()
    if token in ("superadmin", "super_admin"):
        return Role.SUPER_ADMIN
    if token == "admin":
        return Role.ADMIN
    if "manager" in token:
        return Role.MANAGER
    if token == "client":
        return Role.CLIENT
    if token == "member":
        return Role.EMPLOYEE
    return None


class ProfileDocument(BaseModel):
    """A raw document as returned by the profile store."""

    collection: ProfileCollection
    record_id: str
    data: dict[str, Any] = Field(default_factory=dict)


class ProfileRecord(BaseModel):
    """Normalised view over a :class:`ProfileDocument`.

    ``role`` is ``None`` when the stored role string is missing or not
    recognised; ``raw_role`` keeps the original for diagnostics.
    """

    collection: ProfileCollection
    record_id: str
    email: str
    display_name: str
    raw_role: Optional[str] = None
    role: Optional[Role] = None
    profile_image_ref: Optional[str] = None
    fallback_password: Optional[str] = None

    @classmethod
    def from_document(cls, document: ProfileDocument, email: str) -> "ProfileRecord":
        """Build a record, using *email* when the document carries none.

        The display name falls back to the resolved email.
        """
        data = document.data
        resolved_email = first_present(data, "email") or email
        raw_role = first_present(data, "role")
        password = data.get(FALLBACK_PASSWORD_FIELD)
        return cls(
            collection=document.collection,
            record_id=document.record_id,
            email=resolved_email,
            display_name=first_present(data, "display_name") or resolved_email,
            raw_role=raw_role,
            role=normalize_role(raw_role),
            profile_image_ref=first_present(data, "profile_image_ref"),
            fallback_password=password if isinstance(password, str) else None,
        )
