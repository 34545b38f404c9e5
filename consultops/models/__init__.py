"""
Data Models Package.

Re-exports the pydantic models for short imports:
    from consultops.models import Identity, Role, AuthResult
"""

from consultops.models.auth_models import AuthErrorCode, AuthResult, ProviderAccount
from consultops.models.enums import LoginPath, LoginState, ProfileCollection, Role
from consultops.models.identity import Identity
from consultops.models.profile_record import ProfileDocument, ProfileRecord

__all__ = [
    "AuthErrorCode",
    "AuthResult",
    "Identity",
    "LoginPath",
    "LoginState",
    "ProfileCollection",
    "ProfileDocument",
    "ProfileRecord",
    "ProviderAccount",
    "Role",
]
