"""Collaborator interfaces consumed by the core.

The core never reaches for a global container: every component receives
the repositories it needs through its constructor. Any object satisfying
these protocols works (see ``idp.core.store`` for the in-memory ones).
"""
from __future__ import annotations
from typing import Iterable, Optional, Protocol, Sequence

from .models import (
    AttributeDefinition,
    AttributeValue,
    Scope,
    ServiceProvider,
    SubjectRef,
    User,
    UserRole,
    UserType,
)


class AttributeDefinitionRepository(Protocol):
    def find_all(self) -> list[AttributeDefinition]:
        """Return all definitions ordered by id."""
        ...

    def find_by_id(self, definition_id: int) -> AttributeDefinition:
        """Raises AttributeNotFound for an unknown id."""
        ...

    def find_by_name(self, name: str) -> Optional[AttributeDefinition]:
        ...


class AttributeValueRepository(Protocol):
    def find_for_subjects(self, subjects: Iterable[SubjectRef]) -> list[AttributeValue]:
        ...

    def upsert(self, value: AttributeValue) -> None:
        ...

    def delete(self, definition_id: int, subject: SubjectRef, scope: Scope) -> bool:
        """Delete the value at exactly this scope. Returns False if none existed."""
        ...

    def delete_for_subject(self, subject: SubjectRef) -> int:
        ...


class ServiceAttributeRepository(Protocol):
    def get_attributes_for_service_provider(self, entity_id: str) -> list[AttributeDefinition]:
        """Allow-listed definitions for a service provider, empty when unknown."""
        ...


class ServiceProviderResolver(Protocol):
    def get_services(self, user: User) -> Sequence[ServiceProvider]:
        """Service providers the user is authorized for, in display order."""
        ...


class UserRepository(Protocol):
    def find_one_by_uuid(self, uuid: str) -> Optional[User]:
        ...

    def find_one_by_username(self, username: str) -> Optional[User]:
        ...

    def find_one_by_email(self, email: str) -> Optional[User]:
        ...

    def find_one_by_external_id(self, external_id: str) -> Optional[User]:
        ...

    def find_all_uuids(self, offset: int = 0, limit: Optional[int] = None) -> list[str]:
        ...

    def persist(self, user: User) -> None:
        ...

    def add_if_unique(self, user: User) -> list[str]:
        """Atomically insert a new user; returns the conflicting field names
        (username, email, external_id) instead of inserting on a clash."""
        ...

    def remove(self, user: User) -> None:
        ...


class UserTypeRepository(Protocol):
    def find_one_by_id(self, type_id: int) -> Optional[UserType]:
        ...

    def find_one_by_alias(self, alias: str) -> Optional[UserType]:
        ...


class UserRoleRepository(Protocol):
    def find_one_by_id(self, role_id: int) -> Optional[UserRole]:
        ...

    def find_all(self) -> list[UserRole]:
        ...
