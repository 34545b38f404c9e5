"""
Classification of credential-provider failures, and the Supabase adapter's
behaviour when the client is not configured.
"""

from __future__ import annotations

import pytest

from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger
from consultops.models.auth_models import AuthErrorCode
from consultops.ports import CredentialProviderError
from consultops.services.credential_provider import (
    SupabaseCredentialProvider,
    classify_provider_error,
)


class AuthApiError(Exception):
    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.code = code


class AuthRetryableError(Exception):
    pass


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (AuthApiError("Invalid login credentials", code="invalid_credentials"), AuthErrorCode.INVALID_CREDENTIALS),
        (AuthApiError("Email not confirmed", code="email_not_confirmed"), AuthErrorCode.INVALID_CREDENTIALS),
        (AuthApiError("User not found", code="user_not_found"), AuthErrorCode.USER_NOT_FOUND),
        (AuthRetryableError("gateway"), AuthErrorCode.NETWORK_ERROR),
        (ConnectionError("refused"), AuthErrorCode.NETWORK_ERROR),
        (TimeoutError(), AuthErrorCode.NETWORK_ERROR),
        (RuntimeError("Supabase client is not initialised."), AuthErrorCode.NETWORK_ERROR),
        (ValueError("weird"), AuthErrorCode.UNKNOWN),
        (CredentialProviderError(AuthErrorCode.ROLE_NOT_FOUND), AuthErrorCode.ROLE_NOT_FOUND),
    ],
)
def test_classify_provider_error(exc: Exception, expected: AuthErrorCode):
    assert classify_provider_error(exc) == expected


def test_unconfigured_client_fails_as_network_error(logger: StructuredLogger):
    db = DatabaseManager(supabase_url="", supabase_key="", logger=logger)
    provider = SupabaseCredentialProvider(db=db, logger=logger)

    assert not db.is_online
    with pytest.raises(CredentialProviderError) as err:
        provider.sign_in("a@b.com", "pw")
    assert err.value.code == AuthErrorCode.NETWORK_ERROR
