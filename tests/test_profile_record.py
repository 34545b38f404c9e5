"""
Role normalisation and legacy field-synonym resolution.
"""

from __future__ import annotations

from typing import Optional

import pytest

from consultops.models.enums import ProfileCollection, Role
from consultops.models.profile_record import (
    ROLE_STORAGE_VALUES,
    ProfileDocument,
    ProfileRecord,
    first_present,
    normalize_role,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Admin", Role.ADMIN),
        ("ADMIN", Role.ADMIN),
        (" admin ", Role.ADMIN),
        ("Project Manager", Role.MANAGER),
        ("manager", Role.MANAGER),
        ("superadmin", Role.SUPER_ADMIN),
        ("super_admin", Role.SUPER_ADMIN),
        ("client", Role.CLIENT),
        ("Member", Role.EMPLOYEE),
        ("bogus", None),
        ("administrator", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_role(raw: Optional[str], expected: Optional[Role]):
    assert normalize_role(raw) == expected


def test_stored_role_strings_round_trip():
    for role, stored in ROLE_STORAGE_VALUES.items():
        assert normalize_role(stored) == role


def test_first_present_skips_blank_and_non_string_values():
    data = {"clientName": "   ", "name": 42, "displayName": "Dana"}
    assert first_present(data, "display_name") == "Dana"


def test_role_synonym_priority():
    data = {"role": "client", "roleType": "admin", "resourceRoleType": "manager"}
    assert first_present(data, "role") == "manager"


def test_record_falls_back_to_email_for_display_name():
    doc = ProfileDocument(
        collection=ProfileCollection.CLIENT,
        record_id="c-1",
        data={"role": "client", "photoURL": "https://img/1.png"},
    )
    record = ProfileRecord.from_document(doc, "pat@acme.com")

    assert record.email == "pat@acme.com"
    assert record.display_name == "pat@acme.com"
    assert record.role == Role.CLIENT
    assert record.profile_image_ref == "https://img/1.png"
    assert record.fallback_password is None


def test_record_keeps_unrecognised_role_for_diagnostics():
    doc = ProfileDocument(
        collection=ProfileCollection.MEMBER,
        record_id="m-1",
        data={"resourceRoleType": "intern", "devPassword": "pw"},
    )
    record = ProfileRecord.from_document(doc, "x@acme.com")

    assert record.role is None
    assert record.raw_role == "intern"
    assert record.fallback_password == "pw"
