"""
String Helpers.

Email and free-text normalisation shared by the auth services.
"""

from __future__ import annotations

import re
from typing import Optional

__all__ = [
    "display_name_from_email",
    "email_local_part",
    "emails_match",
    "escape_like_pattern",
    "is_blank",
    "normalize_email",
]

_WORD = re.compile(r"\w+")
_LIKE_SPECIAL = re.compile(r"([\\%_])")


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase an email address."""
    return email.strip().lower()


def emails_match(stored: Optional[str], typed: str) -> bool:
    """Case-insensitive email equality, ignoring surrounding whitespace."""
    if stored is None:
        return False
    return stored.strip().casefold() == typed.strip().casefold()


def escape_like_pattern(value: str) -> str:
    """Escape ``\\``, ``%`` and ``_`` so *value* matches literally in LIKE."""
    return _LIKE_SPECIAL.sub(r"\\\1", value)


def email_local_part(email: str) -> str:
    """Return the part of *email* before the first ``@``."""
    return email.split("@", 1)[0]


def display_name_from_email(email: str, default: str = "Dev User") -> str:
    """Title-case each word of an email's local part, keeping separators.

    ``"jane.doe@acme.com"`` -> ``"Jane.Doe"``.  Falls back to *default*
    when the local part is empty.
    """
    local = email_local_part(email).strip()
    if not local:
        return default
    return _WORD.sub(lambda match: match.group(0).capitalize(), local)


def is_blank(value: Optional[str]) -> bool:
    """``True`` for ``None`` or a whitespace-only string."""
    return value is None or not value.strip()
