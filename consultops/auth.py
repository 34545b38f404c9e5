"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that holds the authenticated
``Identity`` for the lifetime of one client session, together with the
login state, the stale-attempt guard and the single live profile
subscription.

Usage::

    from consultops.auth import SessionManager

    session = SessionManager()
    attempt = session.begin_attempt()
    session.activate(attempt, identity, LoginPath.PROVIDER, ProfileCollection.MEMBER)
    identity = session.get_current_identity()

Every write made on behalf of a login carries the ``attempt`` number
returned by :meth:`SessionManager.begin_attempt`.  A write whose attempt
has been superseded (by a newer login or by a logout) is ignored, so a
late response can never resurrect a cleared session.  Subscription
callbacks are guarded the same way by a subscription token.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from consultops.logger import StructuredLogger
from consultops.models.enums import (
    PROVIDER_BACKED_PATHS,
    LoginPath,
    LoginState,
    ProfileCollection,
    Role,
)
from consultops.models.identity import Identity
from consultops.ports import Subscription

IdentityListener = Callable[[Optional[Identity]], None]


class SessionManager:
    """Injectable holder for the current authenticated identity.

    Each instance maintains its own session state, eliminating the
    need for module-level globals.  Pass a single ``SessionManager``
    through the composition root so every service shares the same
    session.

    All state is guarded by one ``RLock``.  Subscriptions are cancelled
    and listeners notified only after the lock is released, so a
    watcher thread waiting on the lock can never deadlock a cancel.
    """

    def __init__(self, logger: Optional[StructuredLogger] = None) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._logger: Optional[StructuredLogger] = logger
        self._identity: Optional[Identity] = None
        self._state: LoginState = LoginState.IDLE
        self._attempt: int = 0
        self._login_path: Optional[LoginPath] = None
        self._collection: Optional[ProfileCollection] = None
        self._subscription: Optional[Subscription] = None
        self._subscription_token: int = 0
        self._listeners: list[IdentityListener] = []

    # ------------------------------------------------------------------
    # Login attempts
    # ------------------------------------------------------------------

    def begin_attempt(self) -> int:
        """Start a new login attempt and return its number.

        Any existing session is torn down first; a new login always
        starts from a clean slate.
        """
        with self._lock:
            self._attempt += 1
            attempt = self._attempt
            had_identity = self._identity is not None
            previous = self._reset_locked(LoginState.AUTHENTICATING)
        self._cancel(previous)
        if had_identity:
            self._notify(None)
        return attempt

    def transition(self, attempt: int, state: LoginState) -> bool:
        """Move to *state* if *attempt* is still current."""
        with self._lock:
            if attempt != self._attempt:
                return False
            self._state = state
            return True

    def activate(
        self,
        attempt: int,
        identity: Identity,
        login_path: LoginPath,
        collection: Optional[ProfileCollection] = None,
    ) -> bool:
        """Install *identity* as the session user.

        Returns ``False`` (and changes nothing) when *attempt* is stale.
        """
        with self._lock:
            if attempt != self._attempt:
                return False
            self._identity = identity
            self._login_path = login_path
            self._collection = collection
            self._state = LoginState.ACTIVE
        self._notify(identity)
        return True

    def reject(self, attempt: int) -> bool:
        """End *attempt* as rejected, leaving no partial session behind."""
        with self._lock:
            if attempt != self._attempt:
                return False
            had_identity = self._identity is not None
            previous = self._reset_locked(LoginState.REJECTED)
        self._cancel(previous)
        if had_identity:
            self._notify(None)
        return True

    # ------------------------------------------------------------------
    # Live subscription ownership
    # ------------------------------------------------------------------

    def attach_subscription(
        self,
        attempt: int,
        factory: Callable[[int], Subscription],
    ) -> bool:
        """Open the session's live subscription, replacing any previous one.

        *factory* receives the new subscription token and must pass it
        back to :meth:`apply_remote_update`.  The token is assigned before
        the factory runs, so a snapshot delivered synchronously during
        subscribe is already accepted.
        """
        with self._lock:
            if attempt != self._attempt or self._identity is None:
                return False
            self._subscription_token += 1
            token = self._subscription_token
            previous = self._subscription
            self._subscription = None
        self._cancel(previous)

        subscription = factory(token)

        with self._lock:
            if token == self._subscription_token and attempt == self._attempt:
                self._subscription = subscription
                return True
        # Superseded while subscribing.
        subscription.cancel()
        return False

    def is_current_subscription(self, token: int) -> bool:
        with self._lock:
            return token == self._subscription_token and self._identity is not None

    def apply_remote_update(
        self,
        token: int,
        role: Optional[Role],
        display_name: str,
        profile_image_ref: Optional[str],
    ) -> Optional[Identity]:
        """Replace the mutable identity fields from a subscription push.

        ``id`` and ``email`` are never touched.  A ``None`` *role* keeps
        the current one.  Returns the new identity, or ``None`` when the
        token is stale.
        """
        with self._lock:
            if token != self._subscription_token or self._identity is None:
                return None
            updated = self._identity.model_copy(
                update={
                    "role": role if role is not None else self._identity.role,
                    "display_name": display_name,
                    "profile_image_ref": profile_image_ref,
                }
            )
            self._identity = updated
        self._notify(updated)
        return updated

    def apply_profile_edit(
        self,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Identity]:
        """Refresh the in-memory identity after a successful profile edit."""
        changes: dict[str, str] = {}
        if display_name is not None:
            changes["display_name"] = display_name
        if email is not None:
            changes["email"] = email
        with self._lock:
            if self._identity is None:
                return None
            if not changes:
                return self._identity
            updated = self._identity.model_copy(update=changes)
            self._identity = updated
        self._notify(updated)
        return updated

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def clear(self) -> Optional[Identity]:
        """End the session.  Safe to call in any state.

        Also invalidates any in-flight login attempt.  Returns the
        identity that was cleared, if any.
        """
        with self._lock:
            self._attempt += 1
            cleared = self._identity
            previous = self._reset_locked(LoginState.IDLE)
        self._cancel(previous)
        if cleared is not None:
            self._notify(None)
        return cleared

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def get_current_identity(self) -> Identity:
        """Return the authenticated identity.

        Raises:
            RuntimeError: If no user is currently authenticated.
        """
        with self._lock:
            if self._identity is None:
                raise RuntimeError(
                    "No user is currently authenticated. Login required."
                )
            return self._identity

    @property
    def current_identity(self) -> Optional[Identity]:
        with self._lock:
            return self._identity

    @property
    def is_authenticated(self) -> bool:
        """``True`` when a user is currently logged in."""
        with self._lock:
            return self._identity is not None

    @property
    def state(self) -> LoginState:
        with self._lock:
            return self._state

    @property
    def login_path(self) -> Optional[LoginPath]:
        with self._lock:
            return self._login_path

    @property
    def active_collection(self) -> Optional[ProfileCollection]:
        """Collection the live subscription watches, if any."""
        with self._lock:
            return self._collection

    @property
    def has_provider_account(self) -> bool:
        """``True`` when the provider holds the session's account."""
        with self._lock:
            return self._identity is not None and self._login_path in PROVIDER_BACKED_PATHS

    @property
    def has_subscription(self) -> bool:
        with self._lock:
            return self._subscription is not None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: IdentityListener) -> None:
        """Register *listener*; it receives the new identity or ``None``."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: IdentityListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reset_locked(self, state: LoginState) -> Optional[Subscription]:
        """Drop identity and subscription.  Caller holds the lock."""
        self._subscription_token += 1
        previous = self._subscription
        self._subscription = None
        self._identity = None
        self._login_path = None
        self._collection = None
        self._state = state
        return previous

    def _cancel(self, subscription: Optional[Subscription]) -> None:
        if subscription is not None:
            subscription.cancel()

    def _notify(self, identity: Optional[Identity]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(identity)
            except Exception:
                if self._logger is not None:
                    self._logger.error("Session listener raised.", exc_info=True)
                else:
                    raise
