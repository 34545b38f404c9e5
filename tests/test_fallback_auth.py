"""
Direct-record fallback login: plaintext password check, role rejection
and last-resort synthetic identities.
"""

from __future__ import annotations

import uuid

import pytest

from consultops.config import AppConfig
from consultops.logger import StructuredLogger
from consultops.models.auth_models import AuthErrorCode
from consultops.models.enums import LoginPath, ProfileCollection, Role
from consultops.services import ServiceContainer
from consultops.services.fallback_auth import FallbackAuthenticator, synthetic_role_for
from consultops.services.role_resolver import IdentityResolutionError
from fakes import InMemoryProfileStore, store_unavailable

MEMBER = ProfileCollection.MEMBER
CLIENT = ProfileCollection.CLIENT


def test_matching_password_accepts_record(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(CLIENT, "c-1", email="pat@acme.com", devPassword="pw1", role="client", clientName="Pat Co")

    outcome = services["fallback_authenticator"].attempt("pat@acme.com", "pw1")

    assert outcome.login_path == LoginPath.FALLBACK_RECORD
    assert outcome.collection == CLIENT
    assert outcome.identity.id == "c-1"
    assert outcome.identity.role == Role.CLIENT
    assert outcome.identity.display_name == "Pat Co"


def test_password_mismatch_is_invalid_credentials(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-1", email="sam@acme.com", devPassword="right", role="member")

    with pytest.raises(IdentityResolutionError) as err:
        services["fallback_authenticator"].attempt("sam@acme.com", "wrong")
    assert err.value.code == AuthErrorCode.INVALID_CREDENTIALS


def test_password_comparison_is_exact(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-1", email="sam@acme.com", devPassword="Secret", role="member")

    with pytest.raises(IdentityResolutionError):
        services["fallback_authenticator"].attempt("sam@acme.com", "secret")


def test_record_without_password_is_accepted(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-2", email="lee@acme.com", role="admin")

    outcome = services["fallback_authenticator"].attempt("lee@acme.com", "anything")
    assert outcome.identity.role == Role.ADMIN


def test_mismatch_in_one_collection_does_not_block_the_other(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-3", email="ash@acme.com", devPassword="old", role="member")
    store.put(CLIENT, "c-3", email="ash@acme.com", devPassword="new", role="client")

    outcome = services["fallback_authenticator"].attempt("ash@acme.com", "new")
    assert outcome.collection == CLIENT


def test_unrecognised_role_is_role_not_found(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(CLIENT, "c-4", email="q@acme.com", devPassword="pw", role="partner")

    with pytest.raises(IdentityResolutionError) as err:
        services["fallback_authenticator"].attempt("q@acme.com", "pw")
    assert err.value.code == AuthErrorCode.ROLE_NOT_FOUND


def test_invalid_credentials_outranks_role_not_found(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-5", email="z@acme.com", role="partner")
    store.put(CLIENT, "c-5", email="z@acme.com", devPassword="pw", role="client")

    with pytest.raises(IdentityResolutionError) as err:
        services["fallback_authenticator"].attempt("z@acme.com", "nope")
    assert err.value.code == AuthErrorCode.INVALID_CREDENTIALS


@pytest.mark.parametrize(
    ("email", "role"),
    [
        ("superadmin@x.com", Role.SUPER_ADMIN),
        ("site.admin@x.com", Role.ADMIN),
        ("manager@x.com", Role.MANAGER),
        ("client.ops@x.com", Role.CLIENT),
        ("alice@x.com", Role.EMPLOYEE),
    ],
)
def test_no_record_synthesizes_from_email(services: ServiceContainer, email: str, role: Role):
    outcome = services["fallback_authenticator"].attempt(email, "whatever")

    assert outcome.login_path == LoginPath.SYNTHETIC
    assert outcome.record is None
    assert outcome.collection is None
    assert outcome.identity.role == role
    assert outcome.identity.email == email
    uuid.UUID(outcome.identity.id)


@pytest.mark.parametrize(
    ("email", "name"),
    [
        ("jane.doe@x.com", "Jane.Doe"),
        ("JOHN_smith@x.com", "John_smith"),
        ("mary-ann@x.com", "Mary-Ann"),
    ],
)
def test_synthetic_display_name_title_cases_local_part(
    services: ServiceContainer, email: str, name: str,
):
    outcome = services["fallback_authenticator"].attempt(email, "pw")
    assert outcome.identity.display_name == name


def test_synthetic_role_only_looks_at_local_part():
    assert synthetic_role_for("bob@admin.example.com") == Role.EMPLOYEE


def test_store_failure_without_a_record_still_synthesizes(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.read_errors[MEMBER] = store_unavailable()

    outcome = services["fallback_authenticator"].attempt("alice@x.com", "pw")

    assert outcome.login_path == LoginPath.SYNTHETIC
    assert outcome.identity.role == Role.EMPLOYEE


def test_store_failure_is_reported_when_synthesis_disabled(
    config: AppConfig, store: InMemoryProfileStore, logger: StructuredLogger,
):
    strict = config.model_copy(update={"ALLOW_SYNTHETIC_LOGIN": False})
    authenticator = FallbackAuthenticator(store=store, config=strict, logger=logger)
    store.read_errors[MEMBER] = store_unavailable()

    with pytest.raises(IdentityResolutionError) as err:
        authenticator.attempt("alice@x.com", "pw")
    assert err.value.code == AuthErrorCode.NETWORK_ERROR


def test_stored_email_case_does_not_bypass_password_check(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "m-7", email="Sam@Acme.com", devPassword="right", role="admin")

    with pytest.raises(IdentityResolutionError) as err:
        services["fallback_authenticator"].attempt("sam@acme.com", "WRONG")
    assert err.value.code == AuthErrorCode.INVALID_CREDENTIALS

    outcome = services["fallback_authenticator"].attempt("sam@acme.com", "right")
    assert outcome.login_path == LoginPath.FALLBACK_RECORD
    assert outcome.identity.role == Role.ADMIN
    assert outcome.identity.id == "m-7"


def test_synthesis_can_be_disabled(
    config: AppConfig, store: InMemoryProfileStore, logger: StructuredLogger,
):
    strict = config.model_copy(update={"ALLOW_SYNTHETIC_LOGIN": False})
    authenticator = FallbackAuthenticator(store=store, config=strict, logger=logger)

    with pytest.raises(IdentityResolutionError) as err:
        authenticator.attempt("alice@x.com", "pw")
    assert err.value.code == AuthErrorCode.USER_NOT_FOUND
