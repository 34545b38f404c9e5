"""
Supabase Credential Provider.

Implements the ``CredentialProvider`` port on top of Supabase Auth.
Every SDK exception is classified into an ``AuthErrorCode`` and
re-raised as ``CredentialProviderError`` so the login orchestration
deals with a single, typed failure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from consultops.database import DatabaseManager
from consultops.logger import StructuredLogger
from consultops.models.auth_models import PROVIDER_ERROR_MAP, AuthErrorCode, ProviderAccount
from consultops.ports import CredentialProviderError
from consultops.services.base_service import BaseService

T = TypeVar("T")

_NETWORK_TYPE_HINTS: tuple[str, ...] = ("Retryable", "Timeout", "Connect", "Network")


def classify_provider_error(exc: Exception) -> AuthErrorCode:
    """Map a Supabase Auth / transport exception onto ``AuthErrorCode``.

    ``RuntimeError`` is what ``DatabaseManager.supabase`` raises when the
    client was never configured; it is treated like a network failure.
    """
    if isinstance(exc, CredentialProviderError):
        return exc.code
    if isinstance(exc, (ConnectionError, TimeoutError, RuntimeError)):
        return AuthErrorCode.NETWORK_ERROR

    haystack = f"{getattr(exc, 'code', '') or ''} {exc}".lower()
    for needle, code in PROVIDER_ERROR_MAP:
        if needle in haystack:
            return code

    type_name = type(exc).__name__
    if any(hint in type_name for hint in _NETWORK_TYPE_HINTS):
        return AuthErrorCode.NETWORK_ERROR
    return AuthErrorCode.UNKNOWN


class SupabaseCredentialProvider(BaseService):
    """Credential provider backed by ``supabase.auth``."""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._db = db

    # ------------------------------------------------------------------
    # Sign-in / sign-up / sign-out
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> ProviderAccount:
        def _op() -> ProviderAccount:
            response = self._db.supabase.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
            if response.user is None:
                raise CredentialProviderError(
                    AuthErrorCode.INVALID_CREDENTIALS, "Sign-in returned no user.",
                )
            return self._to_account(response.user, email)

        return self._call(_op, "sign_in")

    def sign_up(self, email: str, password: str, display_name: str) -> ProviderAccount:
        def _op() -> ProviderAccount:
            response = self._db.supabase.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"full_name": display_name}},
            })
            if response.user is None:
                raise CredentialProviderError(
                    AuthErrorCode.UNKNOWN, "Sign-up returned no user.",
                )
            return self._to_account(response.user, email)

        return self._call(_op, "sign_up")

    def sign_out(self) -> None:
        self._call(lambda: self._db.supabase.auth.sign_out(), "sign_out")

    # ------------------------------------------------------------------
    # Session metadata
    # ------------------------------------------------------------------

    def current_account(self) -> Optional[ProviderAccount]:
        """Return the signed-in account, or ``None`` when there is none.

        Lookup failures are logged and reported as "no account".
        """
        if not self._db.is_online:
            return None
        try:
            session = self._db.supabase.auth.get_session()
        except Exception as exc:
            self._logger.warning("Could not read provider session: %s", exc)
            return None
        if session is None or session.user is None:
            return None
        return self._to_account(session.user, session.user.email or "")

    # ------------------------------------------------------------------
    # Profile updates
    # ------------------------------------------------------------------

    def update_email(self, new_email: str) -> None:
        self._call(
            lambda: self._db.supabase.auth.update_user({"email": new_email}),
            "update_email",
        )

    def update_display_name(self, display_name: str) -> None:
        self._call(
            lambda: self._db.supabase.auth.update_user(
                {"data": {"full_name": display_name}},
            ),
            "update_display_name",
        )

    def send_password_reset(self, email: str, redirect_url: str) -> None:
        self._call(
            lambda: self._db.supabase.auth.reset_password_for_email(
                email, {"redirect_to": redirect_url},
            ),
            "send_password_reset",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _call(self, operation: Callable[[], T], operation_name: str) -> T:
        try:
            return operation()
        except Exception as exc:
            code = classify_provider_error(exc)
            self._logger.warning(
                "Credential provider %s failed (%s): %s", operation_name, code, exc,
                extra={"event": "PROVIDER_ERROR", "error_code": str(code)},
            )
            raise CredentialProviderError(code, str(exc)) from exc

    @staticmethod
    def _to_account(user: Any, fallback_email: str) -> ProviderAccount:
        metadata: dict[str, Any] = getattr(user, "user_metadata", None) or {}
        return ProviderAccount(
            id=str(user.id),
            email=user.email or fallback_email,
            display_name=metadata.get("full_name") or metadata.get("name"),
            created_at=_as_datetime(getattr(user, "created_at", None)),
            last_sign_in_at=_as_datetime(getattr(user, "last_sign_in_at", None)),
        )


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
