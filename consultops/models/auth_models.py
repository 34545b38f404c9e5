"""
Authentication Pipeline Models.

Pydantic models and enumerations for the request/response contracts
between the auth services and whatever UI drives them.  Every auth
operation returns a structured ``AuthResult`` rather than raising.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from consultops.models.enums import LoginPath, ProfileCollection, Role


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Closed set of authentication failure categories.

    The UI shows the same generic message for all of them; the code is
    kept for logs and diagnostics.
    """

    USER_NOT_FOUND = "user_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    ROLE_NOT_FOUND = "role_not_found"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


GENERIC_LOGIN_ERROR: str = "Login failed. Please check your credentials and try again."


# ---------------------------------------------------------------------------
# Provider error-code mapping
# ---------------------------------------------------------------------------

# Substrings of Supabase Auth error codes / messages, checked in order.
PROVIDER_ERROR_MAP: tuple[tuple[str, AuthErrorCode], ...] = (
    ("invalid_credentials", AuthErrorCode.INVALID_CREDENTIALS),
    ("invalid login credentials", AuthErrorCode.INVALID_CREDENTIALS),
    ("invalid_grant", AuthErrorCode.INVALID_CREDENTIALS),
    ("email_not_confirmed", AuthErrorCode.INVALID_CREDENTIALS),
    ("user_not_found", AuthErrorCode.USER_NOT_FOUND),
    ("user_banned", AuthErrorCode.INVALID_CREDENTIALS),
    ("user_already_exists", AuthErrorCode.INVALID_CREDENTIALS),
    ("over_request_rate_limit", AuthErrorCode.NETWORK_ERROR),
)


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Provider account metadata
# ---------------------------------------------------------------------------

class ProviderAccount(BaseModel):
    """Read-only view of the credential provider's signed-in account.

    Attributes
    ----------
    id:
        Provider-assigned account id (becomes ``Identity.id`` on the
        primary login path).
    email:
        Email registered with the provider.
    display_name:
        Display name stored in provider metadata, if any.
    created_at:
        Account creation timestamp.
    last_sign_in_at:
        Timestamp of the most recent successful sign-in.
    """

    id: str
    email: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for login, registration, logout-adjacent and
    profile-update operations.

    ``success`` drives the happy/error rendering; ``error_code`` is for
    diagnostics; ``error_message`` is safe to show to the user.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[Role] = None
    login_path: Optional[LoginPath] = None
    collection: Optional[ProfileCollection] = None

    @classmethod
    def failure(cls, code: AuthErrorCode, message: str = GENERIC_LOGIN_ERROR) -> "AuthResult":
        return cls(success=False, error_code=code, error_message=message)
