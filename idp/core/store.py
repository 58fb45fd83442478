"""In-memory implementations of the repository interfaces.

Used by the Flask app (seeded from a YAML directory file) and by tests.
Writes are serialised with a lock and last writer wins per key. Stored
records are replaced whole, never mutated in place, so a reader holding a
record never observes a half-applied write.

Usage:
    directory = Directory.from_yaml("directory.yaml")
    user = directory.users.find_one_by_username("alice")
"""
from __future__ import annotations
import datetime
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from .exceptions import AttributeNotFound
from .models import (
    AttributeDefinition,
    AttributeType,
    AttributeValue,
    RoleAssignment,
    Scope,
    ServiceProvider,
    SubjectRef,
    User,
    UserRole,
    UserType,
)

logger = logging.getLogger(__name__)


class InMemoryAttributeStore:
    """Attribute definitions, stored values and per-SP allow-lists."""

    def __init__(self, definitions: Iterable[AttributeDefinition] = ()):
        self._lock = threading.RLock()
        self._definitions: dict[int, AttributeDefinition] = {}
        self._values: dict[tuple, AttributeValue] = {}
        self._allow_lists: dict[str, list[int]] = {}
        for definition in definitions:
            self.add_definition(definition)

    # Definitions -------------------------------------------------------------

    def add_definition(self, definition: AttributeDefinition) -> None:
        with self._lock:
            for existing in self._definitions.values():
                if existing.name == definition.name and existing.id != definition.id:
                    raise ValueError(f"Attribute name '{definition.name}' already in use")
            self._definitions[definition.id] = definition

    def find_all(self) -> list[AttributeDefinition]:
        with self._lock:
            return [self._definitions[key] for key in sorted(self._definitions)]

    def find_by_id(self, definition_id: int) -> AttributeDefinition:
        with self._lock:
            try:
                return self._definitions[definition_id]
            except KeyError:
                raise AttributeNotFound(definition_id) from None

    def find_by_name(self, name: str) -> Optional[AttributeDefinition]:
        with self._lock:
            return next((d for d in self._definitions.values() if d.name == name), None)

    # Values ------------------------------------------------------------------

    def find_for_subjects(self, subjects: Iterable[SubjectRef]) -> list[AttributeValue]:
        wanted = set(subjects)
        with self._lock:
            return [value for value in self._values.values() if value.subject in wanted]

    def upsert(self, value: AttributeValue) -> None:
        with self._lock:
            self._values[value.key] = value

    def delete(self, definition_id: int, subject: SubjectRef, scope: Scope) -> bool:
        with self._lock:
            return self._values.pop((definition_id, subject, scope.source, scope.entity_id), None) is not None

    def delete_for_subject(self, subject: SubjectRef) -> int:
        with self._lock:
            keys = [key for key, value in self._values.items() if value.subject == subject]
            for key in keys:
                del self._values[key]
            return len(keys)

    # Service allow-lists -----------------------------------------------------

    def allow(self, entity_id: str, definition_ids: Iterable[int]) -> None:
        with self._lock:
            ids = list(definition_ids)
            for definition_id in ids:
                if definition_id not in self._definitions:
                    raise AttributeNotFound(definition_id)
            self._allow_lists[entity_id] = ids

    def get_attributes_for_service_provider(self, entity_id: str) -> list[AttributeDefinition]:
        with self._lock:
            return [
                self._definitions[definition_id]
                for definition_id in self._allow_lists.get(entity_id, [])
                if definition_id in self._definitions
            ]


class InMemoryUserRepository:
    def __init__(self, users: Iterable[User] = ()):
        self._lock = threading.RLock()
        self._users: dict[str, User] = {}
        for user in users:
            self.persist(user)

    def find_one_by_uuid(self, uuid: str) -> Optional[User]:
        with self._lock:
            return self._users.get(uuid)

    def _find_by(self, attr: str, value: Optional[str]) -> Optional[User]:
        if not value:
            return None
        with self._lock:
            return next((u for u in self._users.values() if getattr(u, attr) == value), None)

    def find_one_by_username(self, username: str) -> Optional[User]:
        return self._find_by("username", username)

    def find_one_by_email(self, email: str) -> Optional[User]:
        return self._find_by("email", email)

    def find_one_by_external_id(self, external_id: str) -> Optional[User]:
        return self._find_by("external_id", external_id)

    def find_all_uuids(self, offset: int = 0, limit: Optional[int] = None) -> list[str]:
        with self._lock:
            uuids = list(self._users)
        end = None if limit is None else offset + limit
        return uuids[offset:end]

    def persist(self, user: User) -> None:
        if not user.uuid:
            raise ValueError("User uuid is required")
        with self._lock:
            self._users[user.uuid] = user

    def add_if_unique(self, user: User) -> list[str]:
        """Insert a new user unless username, email or external id is taken.

        Check and insert happen under one lock.

        Returns:
            Names of the conflicting fields; empty when the user was added
        """
        if not user.uuid:
            raise ValueError("User uuid is required")
        with self._lock:
            conflicts = [
                attr for attr in ("username", "email", "external_id")
                if self._find_by(attr, getattr(user, attr)) is not None
            ]
            if not conflicts:
                self._users[user.uuid] = user
            return conflicts

    def remove(self, user: User) -> None:
        with self._lock:
            self._users.pop(user.uuid, None)


class InMemoryUserTypeRepository:
    def __init__(self, types: Iterable[UserType] = ()):
        self._types = {user_type.id: user_type for user_type in types}

    def find_one_by_id(self, type_id: int) -> Optional[UserType]:
        return self._types.get(type_id)

    def find_one_by_alias(self, alias: str) -> Optional[UserType]:
        return next((t for t in self._types.values() if t.alias == alias), None)


class InMemoryUserRoleRepository:
    def __init__(self, roles: Iterable[UserRole] = ()):
        self._roles = {role.id: role for role in roles}

    def find_one_by_id(self, role_id: int) -> Optional[UserRole]:
        return self._roles.get(role_id)

    def find_all(self) -> list[UserRole]:
        return [self._roles[key] for key in sorted(self._roles)]


class InMemoryServiceProviderRegistry:
    """Service providers plus who may use them.

    A user is authorized for a service when their uuid or their user type
    alias is registered for it. Services are returned in registration order.
    """

    def __init__(self):
        self._services: dict[str, ServiceProvider] = {}
        self._user_grants: dict[str, set[str]] = {}
        self._type_grants: dict[str, set[str]] = {}

    def register(self, service: ServiceProvider, users: Iterable[str] = (), user_types: Iterable[str] = ()) -> None:
        self._services[service.entity_id] = service
        self._user_grants[service.entity_id] = set(users)
        self._type_grants[service.entity_id] = set(user_types)

    def find_one_by_entity_id(self, entity_id: str) -> Optional[ServiceProvider]:
        return self._services.get(entity_id)

    def get_services(self, user: User) -> list[ServiceProvider]:
        type_alias = user.type.alias if user.type else None
        return [
            service
            for entity_id, service in self._services.items()
            if user.uuid in self._user_grants[entity_id] or type_alias in self._type_grants[entity_id]
        ]


# ─────────────────────────────────────────────────────────────────────────────
# YAML seed
# ─────────────────────────────────────────────────────────────────────────────

def _parse_datetime(raw: Any) -> Optional[datetime.datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime.datetime):
        value = raw
    elif isinstance(raw, datetime.date):
        value = datetime.datetime(raw.year, raw.month, raw.day)
    else:
        value = datetime.datetime.fromisoformat(str(raw))
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


@dataclass
class Directory:
    """All in-memory repositories of one identity directory."""
    attributes: InMemoryAttributeStore = field(default_factory=InMemoryAttributeStore)
    users: InMemoryUserRepository = field(default_factory=InMemoryUserRepository)
    user_types: InMemoryUserTypeRepository = field(default_factory=InMemoryUserTypeRepository)
    roles: InMemoryUserRoleRepository = field(default_factory=InMemoryUserRoleRepository)
    service_providers: InMemoryServiceProviderRegistry = field(default_factory=InMemoryServiceProviderRegistry)

    @classmethod
    def from_yaml(cls, path: Path | str, separator: str = ",") -> "Directory":
        with Path(path).open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        directory = cls.from_dict(data, separator=separator)
        logger.info("Loaded directory seed from %s", path)
        return directory

    @classmethod
    def from_dict(cls, data: dict, separator: str = ",") -> "Directory":
        """Build a directory from seed data.

        Attribute values go through AttributePersister, so seed values are
        validated exactly like API input.
        """
        from .persister import AttributePersister

        user_types = InMemoryUserTypeRepository(
            UserType(
                id=int(item["id"]),
                name=item.get("name", item["alias"]),
                alias=item["alias"],
                edu_person=list(item.get("edu_person") or []),
            )
            for item in data.get("user_types") or []
        )
        roles = InMemoryUserRoleRepository(
            UserRole(id=int(item["id"]), name=item["name"], description=item.get("description", ""))
            for item in data.get("roles") or []
        )
        attributes = InMemoryAttributeStore(
            AttributeDefinition(
                id=int(item["id"]),
                name=item["name"],
                saml_attribute_name=item.get("saml_attribute_name") or item["name"],
                type=AttributeType(item.get("type", "text")),
                label=item.get("label", ""),
                description=item.get("description", ""),
                options={str(k): str(v) for k, v in (item.get("options") or {}).items()},
                multiple_choice=bool(item.get("multiple_choice", False)),
                user_editable=bool(item.get("user_editable", False)),
            )
            for item in data.get("attributes") or []
        )

        directory = cls(attributes=attributes, user_types=user_types, roles=roles)
        persister = AttributePersister(attributes, attributes, separator=separator)

        for item in data.get("service_providers") or []:
            service = ServiceProvider(
                entity_id=item["entity_id"],
                name=item.get("name", item["entity_id"]),
                url=item.get("url", ""),
                description=item.get("description", ""),
            )
            directory.service_providers.register(
                service,
                users=item.get("users") or [],
                user_types=item.get("user_types") or [],
            )
            allowed = []
            for name in item.get("attributes") or []:
                definition = attributes.find_by_name(name)
                if definition is None:
                    raise ValueError(f"Service provider {service.entity_id} allows unknown attribute '{name}'")
                allowed.append(definition.id)
            attributes.allow(service.entity_id, allowed)

        for role_id, values in (data.get("role_attributes") or {}).items():
            role = roles.find_one_by_id(int(role_id))
            if role is None:
                raise ValueError(f"Attribute values for unknown role {role_id}")
            persister.persist(values or {}, role, Scope.role_default())

        for item in data.get("users") or []:
            user = directory._user_from_seed(item)
            directory.users.persist(user)
            persister.persist(item.get("attributes") or {}, user, Scope.user_override())
            for entity_id, values in (item.get("service_attributes") or {}).items():
                persister.persist(values or {}, user, Scope.service_override(entity_id))

        return directory

    def _user_from_seed(self, item: dict) -> User:
        user_type = None
        if item.get("type"):
            user_type = self.user_types.find_one_by_alias(item["type"])
            if user_type is None:
                raise ValueError(f"User {item['username']} references unknown type '{item['type']}'")

        assignments = []
        for entry in item.get("roles") or []:
            role = self.roles.find_one_by_id(int(entry["role"]))
            if role is None:
                raise ValueError(f"User {item['username']} references unknown role {entry['role']}")
            assigned_at = _parse_datetime(entry.get("assigned_at")) or datetime.datetime.now(datetime.timezone.utc)
            assignments.append(RoleAssignment(role=role, assigned_at=assigned_at))

        return User(
            username=item["username"],
            uuid=str(item["uuid"]),
            email=item.get("email", ""),
            firstname=item.get("firstname", ""),
            lastname=item.get("lastname", ""),
            external_id=item.get("external_id"),
            grade=item.get("grade"),
            type=user_type,
            enabled_from=_parse_datetime(item.get("enabled_from")),
            enabled_until=_parse_datetime(item.get("enabled_until")),
            active=bool(item.get("active", True)),
            is_provisioned=bool(item.get("is_provisioned", True)),
            externally_managed=bool(item.get("externally_managed", False)),
            roles=assignments,
        )
