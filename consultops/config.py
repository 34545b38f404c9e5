"""
Application Configuration.

Pydantic Settings model for the ConsultOps identity layer.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (credential provider + profile store) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Profile store collections ---
    MEMBER_COLLECTION: str = "member-records"
    CLIENT_COLLECTION: str = "client-records"

    # --- Login policy ---
    # Last-resort synthetic identities when no profile record exists.
    ALLOW_SYNTHETIC_LOGIN: bool = True
    # Force logout when the subscribed profile document is deleted.
    LOGOUT_ON_PROFILE_DELETE: bool = False
    PASSWORD_RESET_REDIRECT_URL: str = "http://localhost:5173/reset-password"

    # --- Live profile subscription ---
    PROFILE_POLL_INTERVAL_S: float = 2.0
    PROFILE_POLL_MAX_INTERVAL_S: float = 60.0

    # --- Logging ---
    LOG_FILE: str = "consultops.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a log line explaining why the provider is offline.
        """
        _log = logging.getLogger("consultops.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            _log.warning(
                "Supabase credentials are empty; provider sign-in and the "
                "profile store are unavailable; logins will use the fallback path."
            )

        if self.MEMBER_COLLECTION == self.CLIENT_COLLECTION:
            raise ValueError("MEMBER_COLLECTION and CLIENT_COLLECTION must differ")

        return self


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path is lock-free while
    first initialisation stays thread-safe.  Prefer constructor injection
    of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
