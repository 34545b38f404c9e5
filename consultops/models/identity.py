"""
Identity Model.

The authenticated identity held by ``SessionManager``.  ``id`` and
``email`` are fixed for the lifetime of a session; the remaining fields
may be refreshed by the live profile subscription or a profile edit.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from consultops.models.enums import Role


class Identity(BaseModel):
    """Represents the current session's user.

    ``id`` is the provider account id on the primary path, the profile
    document id on the fallback path, or a random UUID for a synthetic
    identity.
    """

    id: str
    email: str
    display_name: str
    role: Role
    profile_image_ref: Optional[str] = None

    model_config = {"from_attributes": True}
