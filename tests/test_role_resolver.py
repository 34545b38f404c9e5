"""
Concurrent role resolution across the member and client collections.
"""

from __future__ import annotations

import pytest

from consultops.models.auth_models import AuthErrorCode
from consultops.models.enums import ProfileCollection, Role
from consultops.services import ServiceContainer
from consultops.services.role_resolver import IdentityResolutionError, most_informative
from fakes import InMemoryProfileStore, store_unavailable

MEMBER = ProfileCollection.MEMBER
CLIENT = ProfileCollection.CLIENT


@pytest.mark.parametrize("slow", [MEMBER, CLIENT])
@pytest.mark.parametrize("home", [MEMBER, CLIENT])
def test_resolution_is_independent_of_completion_order(
    services: ServiceContainer,
    store: InMemoryProfileStore,
    home: ProfileCollection,
    slow: ProfileCollection,
):
    store.put(home, "u-1", resourceRoleType="Project Manager", name="Rae")
    store.delays[slow] = 0.05

    resolved = services["role_resolver"].resolve("u-1", "rae@acme.com")

    assert resolved.identity.role == Role.MANAGER
    assert resolved.collection == home
    assert resolved.identity.id == "u-1"
    assert resolved.identity.email == "rae@acme.com"
    assert resolved.identity.display_name == "Rae"


@pytest.mark.parametrize("slow", [MEMBER, CLIENT])
def test_member_collection_wins_ties(
    services: ServiceContainer, store: InMemoryProfileStore, slow: ProfileCollection,
):
    store.put(MEMBER, "u-2", role="admin")
    store.put(CLIENT, "u-2", role="client")
    store.delays[slow] = 0.05

    resolved = services["role_resolver"].resolve("u-2", "dual@acme.com")

    assert resolved.collection == MEMBER
    assert resolved.identity.role == Role.ADMIN


def test_unrecognised_role_is_rejected_not_defaulted(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(MEMBER, "u-3", role="bogus")

    with pytest.raises(IdentityResolutionError) as err:
        services["role_resolver"].resolve("u-3", "b@acme.com")
    assert err.value.code == AuthErrorCode.ROLE_NOT_FOUND


def test_missing_everywhere_is_user_not_found(services: ServiceContainer):
    with pytest.raises(IdentityResolutionError) as err:
        services["role_resolver"].resolve("nobody", "n@acme.com")
    assert err.value.code == AuthErrorCode.USER_NOT_FOUND


def test_store_failure_reported_as_network_error(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.read_errors[CLIENT] = store_unavailable()

    with pytest.raises(IdentityResolutionError) as err:
        services["role_resolver"].resolve("u-4", "c@acme.com")
    assert err.value.code == AuthErrorCode.NETWORK_ERROR


def test_store_failure_does_not_hide_a_usable_record(
    services: ServiceContainer, store: InMemoryProfileStore,
):
    store.put(CLIENT, "u-5", role="client")
    store.read_errors[MEMBER] = store_unavailable()

    resolved = services["role_resolver"].resolve("u-5", "c@acme.com")
    assert resolved.identity.role == Role.CLIENT


def test_most_informative_precedence():
    assert most_informative(
        [AuthErrorCode.USER_NOT_FOUND, AuthErrorCode.NETWORK_ERROR, AuthErrorCode.ROLE_NOT_FOUND]
    ) == AuthErrorCode.ROLE_NOT_FOUND
    assert most_informative([AuthErrorCode.USER_NOT_FOUND, AuthErrorCode.UNKNOWN]) == AuthErrorCode.UNKNOWN
    assert most_informative([]) == AuthErrorCode.USER_NOT_FOUND
