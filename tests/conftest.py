"""
Pytest configuration for the identity-layer tests.

Every test gets its own ``SessionManager``, in-memory provider and store,
and a fully wired service container; no test touches Supabase.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from consultops.auth import SessionManager
from consultops.config import AppConfig
from consultops.logger import StructuredLogger
from consultops.services import ServiceContainer, wire_services
from fakes import FakeCredentialProvider, InMemoryProfileStore


@pytest.fixture()
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        SUPABASE_URL="",
        LOG_FILE=str(tmp_path / "consultops-test.log"),
        PROFILE_POLL_INTERVAL_S=0.01,
        PROFILE_POLL_MAX_INTERVAL_S=0.05,
    )


@pytest.fixture()
def logger(config: AppConfig) -> StructuredLogger:
    return StructuredLogger(name="consultops.tests", config=config)


@pytest.fixture()
def provider() -> FakeCredentialProvider:
    return FakeCredentialProvider()


@pytest.fixture()
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture()
def session(logger: StructuredLogger) -> SessionManager:
    return SessionManager(logger=logger)


@pytest.fixture()
def services(
    provider: FakeCredentialProvider,
    store: InMemoryProfileStore,
    session: SessionManager,
    config: AppConfig,
    logger: StructuredLogger,
) -> ServiceContainer:
    return wire_services(
        provider=provider,
        store=store,
        session=session,
        config=config,
        logger=logger,
    )
