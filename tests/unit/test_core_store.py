import datetime

import pytest

from idp.core.exceptions import AttributeNotFound, ValidationFailed
from idp.core.models import AttributeDefinition, AttributeType, Scope, SubjectRef, User
from idp.core.store import Directory, InMemoryAttributeStore, InMemoryUserRepository
from tests.conftest import ALICE_UUID, BOB_UUID, SP1, utc


def test_seed_file_loads(directory):
    assert [d.name for d in directory.attributes.find_all()] == ["office", "languages", "department"]
    assert [r.name for r in directory.roles.find_all()] == ["Staff", "Library"]
    assert directory.user_types.find_one_by_alias("teacher").edu_person == ["faculty", "staff"]

    alice = directory.users.find_one_by_username("alice")
    assert alice.uuid == ALICE_UUID
    assert alice.roles[0].role.name == "Staff"
    assert alice.roles[0].assigned_at == utc(2024, 1, 1, 8)

    bob = directory.users.find_one_by_external_id("S-100")
    assert bob.grade == "10a"
    assert bob.roles == []


def test_seed_values_are_stored(directory):
    alice = directory.users.find_one_by_uuid(ALICE_UUID)
    stored = {
        (v.definition_id, v.scope): v.value
        for v in directory.attributes.find_for_subjects([SubjectRef.for_user(alice)])
    }

    assert stored == {
        (2, Scope.user_override()): ["en", "de"],
        (1, Scope.service_override(SP1)): "305",
    }


def test_seed_rejects_invalid_choice():
    data = {
        "attributes": [{"id": 1, "name": "lang", "type": "choice", "options": {"English": "en"}}],
        "roles": [{"id": 1, "name": "Staff"}],
        "role_attributes": {1: {"lang": "xx"}},
    }

    with pytest.raises(ValidationFailed):
        Directory.from_dict(data)


def test_seed_rejects_unknown_allow_listed_attribute():
    data = {"service_providers": [{"entity_id": "urn:sp", "attributes": ["missing"]}]}

    with pytest.raises(ValueError, match="unknown attribute"):
        Directory.from_dict(data)


def test_seed_rejects_unknown_user_type():
    data = {"users": [{"uuid": "u-1", "username": "zed", "type": "alien"}]}

    with pytest.raises(ValueError, match="unknown type"):
        Directory.from_dict(data)


def test_empty_seed_gives_empty_directory():
    directory = Directory.from_dict({})

    assert directory.attributes.find_all() == []
    assert directory.users.find_all_uuids() == []


def test_duplicate_attribute_name_rejected(office):
    store = InMemoryAttributeStore([office])

    with pytest.raises(ValueError, match="already in use"):
        store.add_definition(AttributeDefinition(id=9, name="office", saml_attribute_name="x"))


def test_find_by_id_unknown_raises(store):
    with pytest.raises(AttributeNotFound):
        store.find_by_id(99)


def test_allow_unknown_definition_raises(store):
    with pytest.raises(AttributeNotFound):
        store.allow(SP1, [1, 99])


def test_choice_definition_requires_options():
    with pytest.raises(ValueError):
        AttributeDefinition(id=1, name="lang", saml_attribute_name="lang", type=AttributeType.CHOICE)


def test_service_scope_requires_entity_id():
    with pytest.raises(ValueError):
        Scope.service_override("")


def test_user_uuids_pagination():
    users = InMemoryUserRepository(User(username=f"user{i}", uuid=f"uuid-{i}") for i in range(5))

    assert users.find_all_uuids() == [f"uuid-{i}" for i in range(5)]
    assert users.find_all_uuids(1, 2) == ["uuid-1", "uuid-2"]
    assert users.find_all_uuids(4, 10) == ["uuid-4"]
    assert users.find_all_uuids(10) == []


def test_user_without_uuid_rejected():
    with pytest.raises(ValueError):
        InMemoryUserRepository().persist(User(username="nouuid"))


def test_user_active_window():
    now = datetime.datetime(2025, 6, 1, tzinfo=datetime.timezone.utc)
    user = User(username="window", uuid="u", enabled_from=utc(2025, 1, 1), enabled_until=utc(2025, 12, 31))

    assert user.is_active(now)
    assert not user.is_active(utc(2026, 1, 1))
    user.active = False
    assert not user.is_active(now)


def test_removed_user_no_longer_found(directory):
    bob = directory.users.find_one_by_uuid(BOB_UUID)
    directory.users.remove(bob)

    assert directory.users.find_one_by_username("bob") is None


def test_add_if_unique_inserts_new_user():
    users = InMemoryUserRepository([User(username="alice", uuid="u-1", email="alice@example.org")])

    assert users.add_if_unique(User(username="carol", uuid="u-2", email="carol@example.org")) == []
    assert users.find_one_by_uuid("u-2").username == "carol"


def test_add_if_unique_reports_conflicts_without_inserting():
    users = InMemoryUserRepository([
        User(username="alice", uuid="u-1", email="alice@example.org", external_id="T-001"),
    ])
    clash = User(username="alice", uuid="u-2", email="other@example.org", external_id="T-001")

    assert users.add_if_unique(clash) == ["username", "external_id"]
    assert users.find_one_by_uuid("u-2") is None


def test_add_if_unique_requires_uuid():
    with pytest.raises(ValueError):
        InMemoryUserRepository().add_if_unique(User(username="nouuid"))
