"""
Authentication Service.

Single orchestrator for every authentication concern of the identity
layer: login (provider path with direct-record fallback), registration,
session restore, logout, password reset and account metadata.

Sits between the UI layer and the credential provider / profile store so
that login forms remain thin handlers.  All methods return typed
``AuthResult`` or ``ValidationResult`` models; the UI never inspects raw
exceptions.

Login state machine::

    IDLE -> AUTHENTICATING -> ROLE_RESOLVING -> ACTIVE
                           \\-> FALLBACK_AUTHENTICATING -> ACTIVE | REJECTED
    ACTIVE -> IDLE   (logout)
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from consultops.auth import SessionManager
from consultops.config import AppConfig
from consultops.logger import StructuredLogger
from consultops.models.auth_models import (
    GENERIC_LOGIN_ERROR,
    AuthErrorCode,
    AuthResult,
    ProviderAccount,
    ValidationResult,
)
from consultops.models.enums import (
    PROVIDER_BACKED_PATHS,
    LoginPath,
    LoginState,
    ProfileCollection,
    Role,
)
from consultops.models.identity import Identity
from consultops.models.profile_record import ROLE_STORAGE_VALUES, WRITE_SYNONYMS
from consultops.ports import CredentialProvider, ProfileStore, ProfileStoreError
from consultops.services.base_service import BaseService
from consultops.services.credential_provider import classify_provider_error
from consultops.services.fallback_auth import FallbackAuthenticator
from consultops.services.live_profile import LiveProfileSync
from consultops.services.role_resolver import IdentityResolutionError, RoleResolver
from consultops.utils.audit import log_audit_event
from consultops.utils.string_helpers import is_blank, normalize_email


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_SUPERSEDED_MESSAGE: str = "Login was superseded by a newer request."

_RESET_SENT_MESSAGE: str = (
    "If an account exists for that email, a password reset link has been sent."
)

_TRANSIENT_CODES: frozenset[AuthErrorCode] = frozenset(
    {AuthErrorCode.NETWORK_ERROR}
)


class AuthService(BaseService):
    """Centralised authentication service.

    Receives all collaborators via ``__init__`` and exposes request ->
    result methods for every auth flow.

    Parameters
    ----------
    provider:
        Credential provider port (managed sign-in).
    store:
        Profile store port (member and client collections).
    session:
        Injectable session holder shared with the other services.
    resolver:
        Concurrent role lookup by identity id.
    fallback:
        Direct-record login used when the provider path fails.
    live_sync:
        Live profile subscription handler.
    config:
        Application configuration.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        provider: CredentialProvider,
        store: ProfileStore,
        session: SessionManager,
        resolver: RoleResolver,
        fallback: FallbackAuthenticator,
        live_sync: LiveProfileSync,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._provider: CredentialProvider = provider
        self._store: ProfileStore = store
        self._session: SessionManager = session
        self._resolver: RoleResolver = resolver
        self._fallback: FallbackAuthenticator = fallback
        self._live_sync: LiveProfileSync = live_sync
        self._config: AppConfig = config

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Validate an email address against a simplified RFC 5322 regex.

        Parameters
        ----------
        email:
            The raw email string to validate.

        Returns
        -------
        ValidationResult
            ``is_valid=True`` if the email matches, otherwise a
            human-readable ``error_message``.
        """
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Email address is required.",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address.",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_password(password: str) -> ValidationResult:
        if not password:
            return ValidationResult(
                is_valid=False,
                error_message="Password is required.",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def normalize_email(email: str) -> str:
        """Strip whitespace and lowercase."""
        return normalize_email(email)

    # ==================================================================
    # Login
    # ==================================================================

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate via the credential provider, falling back to the
        direct-record path when the provider or role resolution fails.

        Parameters
        ----------
        email:
            The raw email entered by the user.
        password:
            The raw password entered by the user.

        Returns
        -------
        AuthResult
            ``success=True`` with the session identity, or a failure whose
            ``error_message`` is always the generic login message.
        """
        invalid = self._validate_credentials(email, password)
        if invalid is not None:
            return invalid

        email = self.normalize_email(email)
        attempt = self._session.begin_attempt()
        self._logger.info(
            "Login started for %s.", email,
            extra={"event": "LOGIN_START", "email": email},
        )

        provider_account_id: Optional[str] = None
        try:
            account = self._provider.sign_in(email, password)
        except Exception as exc:
            code = classify_provider_error(exc)
            self._logger.warning(
                "Provider sign-in failed for %s (%s): %s", email, code, exc,
                extra={"event": "PROVIDER_LOGIN_FAILED", "email": email, "error_code": str(code)},
            )
        else:
            provider_account_id = account.id
            if not self._session.transition(attempt, LoginState.ROLE_RESOLVING):
                return self._superseded(email, provider_account_id)
            try:
                resolved = self._resolver.resolve(account.id, email)
            except IdentityResolutionError as exc:
                self._logger.warning(
                    "Role resolution failed for %s (%s); trying fallback.", email, exc.code,
                    extra={"event": "ROLE_RESOLUTION_FAILED", "email": email, "error_code": str(exc.code)},
                )
            else:
                return self._complete(
                    attempt,
                    resolved.identity,
                    LoginPath.PROVIDER,
                    resolved.collection,
                    action="LOGIN",
                )

        return self._fallback_login(attempt, email, password, provider_account_id)

    def _fallback_login(
        self,
        attempt: int,
        email: str,
        password: str,
        provider_account_id: Optional[str],
    ) -> AuthResult:
        if not self._session.transition(attempt, LoginState.FALLBACK_AUTHENTICATING):
            return self._superseded(email, provider_account_id)

        # A fallback session never uses the provider account.
        if provider_account_id is not None:
            self._sign_out_provider(email)

        try:
            outcome = self._fallback.attempt(email, password)
        except IdentityResolutionError as exc:
            if self._session.reject(attempt):
                self._logger.warning(
                    "Login rejected for %s (%s).", email, exc.code,
                    extra={"event": "LOGIN_REJECTED", "email": email, "error_code": str(exc.code)},
                )
                return AuthResult.failure(exc.code)
            return self._superseded(email)

        action = "SYNTHETIC_LOGIN" if outcome.login_path == LoginPath.SYNTHETIC else "FALLBACK_LOGIN"
        return self._complete(
            attempt,
            outcome.identity,
            outcome.login_path,
            outcome.collection,
            action=action,
        )

    def _complete(
        self,
        attempt: int,
        identity: Identity,
        login_path: LoginPath,
        collection: Optional[ProfileCollection],
        action: str,
    ) -> AuthResult:
        """Activate the session and, for a real record, start the live feed."""
        provider_account_id = identity.id if login_path in PROVIDER_BACKED_PATHS else None
        if not self._session.activate(attempt, identity, login_path, collection):
            return self._superseded(identity.email, provider_account_id)

        if collection is not None and not self._live_sync.start(attempt, collection, identity.id):
            return self._superseded(identity.email, provider_account_id)

        log_audit_event(
            logger=self._logger,
            action=action,
            entity_type="session",
            entity_id=identity.id,
            user_id=identity.id,
            details={
                "email": identity.email,
                "role": str(identity.role),
                "login_path": str(login_path),
                "collection": str(collection) if collection is not None else None,
            },
        )
        self._logger.info(
            "User authenticated: %s (role: %s, path: %s)",
            identity.display_name, identity.role, login_path,
            extra={"event": "LOGIN", "email": identity.email, "user_id": identity.id},
        )
        return self._success(identity, login_path, collection)

    def _superseded(self, email: str, provider_account_id: Optional[str] = None) -> AuthResult:
        """Discard a stale result, releasing its provider account if still held."""
        self._logger.info(
            "Discarding result of a superseded login for %s.", email,
            extra={"event": "LOGIN_SUPERSEDED", "email": email},
        )
        if provider_account_id is not None:
            self._release_provider_account(provider_account_id, email)
        return AuthResult.failure(AuthErrorCode.UNKNOWN, _SUPERSEDED_MESSAGE)

    # ==================================================================
    # Logout
    # ==================================================================

    def logout(self) -> None:
        """Sign out of the provider, cancel the live feed, clear the session.

        Never raises and is safe in any state, including ``IDLE``.
        Provider failures are logged so that offline logout still works.
        """
        identity = self._session.current_identity
        user_email = identity.email if identity is not None else "unknown"
        user_id = identity.id if identity is not None else "unknown"

        self._sign_out_provider(user_email)
        self._session.clear()

        if identity is not None:
            log_audit_event(
                logger=self._logger,
                action="LOGOUT",
                entity_type="session",
                entity_id=user_id,
                user_id=user_id,
            )
        self._logger.info(
            "User logged out: %s", user_email,
            extra={"event": "LOGOUT", "email": user_email, "user_id": user_id},
        )

    def _sign_out_provider(self, email: str) -> None:
        try:
            self._provider.sign_out()
        except Exception as exc:
            self._logger.warning(
                "Provider sign_out failed for %s: %s", email, exc,
                extra={"event": "PROVIDER_SIGN_OUT_FAILED", "email": email},
            )

    def _release_provider_account(self, account_id: str, email: str) -> None:
        """Sign out only while the provider still holds *account_id*.

        A newer attempt may already have signed in a different account.
        """
        try:
            current = self._provider.current_account()
        except Exception as exc:
            self._logger.warning(
                "Could not read provider session while discarding %s: %s", email, exc,
                extra={"event": "PROVIDER_SIGN_OUT_FAILED", "email": email},
            )
            return
        if current is not None and current.id == account_id:
            self._sign_out_provider(email)

    # ==================================================================
    # Registration
    # ==================================================================

    def register(
        self,
        email: str,
        password: str,
        display_name: str,
        role: Role = Role.EMPLOYEE,
    ) -> AuthResult:
        """Create a provider account and its profile document, then sign in.

        ``CLIENT`` accounts are stored in the client collection; every
        other role goes to the member collection.  The role string is
        written under both ``role`` and ``resourceRoleType``.
        """
        invalid = self._validate_credentials(email, password)
        if invalid is not None:
            return invalid
        if is_blank(display_name):
            return AuthResult.failure(AuthErrorCode.INVALID_CREDENTIALS, "Name is required.")

        email = self.normalize_email(email)
        display_name = display_name.strip()
        attempt = self._session.begin_attempt()

        try:
            account = self._provider.sign_up(email, password, display_name)
        except Exception as exc:
            code = classify_provider_error(exc)
            self._session.reject(attempt)
            self._logger.warning(
                "Registration failed for %s (%s): %s", email, code, exc,
                extra={"event": "REGISTER_FAILED", "email": email, "error_code": str(code)},
            )
            return AuthResult.failure(code, "Registration failed. Please try again.")

        collection = ProfileCollection.CLIENT if role == Role.CLIENT else ProfileCollection.MEMBER
        try:
            self._store.create_document(
                collection, account.id, self._new_profile_data(email, display_name, role),
            )
        except ProfileStoreError as exc:
            self._sign_out_provider(email)
            self._session.reject(attempt)
            self._logger.error(
                "Profile creation failed for %s: %s", email, exc,
                extra={"event": "REGISTER_FAILED", "email": email, "error_code": str(exc.code)},
            )
            return AuthResult.failure(exc.code, "Registration failed. Please try again.")

        identity = Identity(id=account.id, email=email, display_name=display_name, role=role)
        return self._complete(
            attempt, identity, LoginPath.REGISTERED, collection, action="REGISTER",
        )

    @staticmethod
    def _new_profile_data(email: str, display_name: str, role: Role) -> dict[str, str]:
        now = datetime.now(timezone.utc).isoformat()
        stored_role = ROLE_STORAGE_VALUES[role]
        data: dict[str, str] = {
            "email": email,
            "role": stored_role,
            "resourceRoleType": stored_role,
            "createdAt": now,
            "updatedAt": now,
        }
        for key in WRITE_SYNONYMS["display_name"]:
            data[key] = display_name
        return data

    # ==================================================================
    # Session restore
    # ==================================================================

    def restore_session(self) -> AuthResult:
        """Re-establish a session from the provider's persisted account.

        Used on relaunch.  No password is available, so there is no
        fallback path: an account whose role cannot be resolved is signed
        out.
        """
        try:
            account = self._provider.current_account()
        except Exception as exc:
            code = classify_provider_error(exc)
            self._logger.warning(
                "Could not read provider session: %s", exc,
                extra={"event": "RESTORE_FAILED", "error_code": str(code)},
            )
            return AuthResult.failure(code)

        if account is None:
            return AuthResult.failure(AuthErrorCode.USER_NOT_FOUND, "No saved session.")

        email = self.normalize_email(account.email)
        attempt = self._session.begin_attempt()
        self._session.transition(attempt, LoginState.ROLE_RESOLVING)
        try:
            resolved = self._resolver.resolve(account.id, email)
        except IdentityResolutionError as exc:
            if exc.code not in _TRANSIENT_CODES:
                self._sign_out_provider(email)
            self._session.reject(attempt)
            self._logger.warning(
                "Session restore failed for %s (%s).", email, exc.code,
                extra={"event": "RESTORE_FAILED", "email": email, "error_code": str(exc.code)},
            )
            return AuthResult.failure(exc.code)

        return self._complete(
            attempt, resolved.identity, LoginPath.RESTORED, resolved.collection, action="RESTORE",
        )

    # ==================================================================
    # Password reset
    # ==================================================================

    def request_password_reset(self, email: str) -> AuthResult:
        """Send a password-reset email through the provider.

        Uses an anti-enumeration response: the same success message is
        returned whether or not the email is registered.  Only transport
        failures are reported.
        """
        email_check = self.validate_email(email)
        if not email_check.is_valid:
            return AuthResult.failure(
                AuthErrorCode.INVALID_CREDENTIALS, email_check.error_message or GENERIC_LOGIN_ERROR,
            )

        email = self.normalize_email(email)
        try:
            self._provider.send_password_reset(email, self._config.PASSWORD_RESET_REDIRECT_URL)
        except Exception as exc:
            code = classify_provider_error(exc)
            if code in _TRANSIENT_CODES:
                return AuthResult.failure(
                    code, "Cannot reach the server. Check your internet connection.",
                )
            self._logger.warning(
                "Password reset for %s failed (%s): %s", email, code, exc,
                extra={"event": "PASSWORD_RESET_FAILED", "email": email, "error_code": str(code)},
            )
        else:
            self._logger.info(
                "Password reset requested for %s.", email,
                extra={"event": "PASSWORD_RESET_REQUESTED", "email": email},
            )
        return AuthResult(success=True, email=email, error_message=_RESET_SENT_MESSAGE)

    # ==================================================================
    # Account metadata
    # ==================================================================

    def account_metadata(self) -> Optional[ProviderAccount]:
        """Return provider account metadata (creation and last sign-in).

        ``None`` when the session has no provider account or the
        provider cannot be reached.
        """
        if not self._session.has_provider_account:
            return None
        try:
            return self._provider.current_account()
        except Exception as exc:
            self._logger.warning(
                "Could not read account metadata: %s", exc,
                extra={"event": "ACCOUNT_METADATA_FAILED"},
            )
            return None

    # ==================================================================
    # Helpers
    # ==================================================================

    def _validate_credentials(self, email: str, password: str) -> Optional[AuthResult]:
        for check in (self.validate_email(email), self.validate_password(password)):
            if not check.is_valid:
                return AuthResult.failure(
                    AuthErrorCode.INVALID_CREDENTIALS,
                    check.error_message or GENERIC_LOGIN_ERROR,
                )
        return None

    @staticmethod
    def _success(
        identity: Identity,
        login_path: LoginPath,
        collection: Optional[ProfileCollection],
    ) -> AuthResult:
        return AuthResult(
            success=True,
            user_id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            role=identity.role,
            login_path=login_path,
            collection=collection,
        )
