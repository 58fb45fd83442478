"""Exceptions raised by the attribute resolution core."""
from __future__ import annotations
from dataclasses import dataclass


class IdentityError(Exception):
    """Base exception for all identity/attribute operations."""
    pass


class NotFoundError(IdentityError):
    """Lookup miss for a user, role or attribute definition."""
    pass


class UserNotFoundError(NotFoundError):
    """No user matches the given uuid, username or external id."""
    pass


class RoleNotFoundError(NotFoundError):
    """User role does not exist."""
    pass


class AttributeNotFound(NotFoundError):
    """Attribute definition id is unknown.

    Attributes:
        definition_id: The id that was looked up
    """

    def __init__(self, definition_id):
        self.definition_id = definition_id
        super().__init__(f"Attribute definition {definition_id!r} does not exist")


class UnknownAttribute(IdentityError):
    """Persist referenced an attribute name that has no definition."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown attribute '{name}'")


@dataclass(frozen=True)
class Violation:
    property: str
    message: str

    def to_dict(self) -> dict:
        return {"property": self.property, "message": self.message}


class ValidationFailed(IdentityError):
    """Input was rejected. Carries every violation found, not just the first.

    Attributes:
        violations: List of Violation (property + message)
    """

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        summary = "; ".join(f"{v.property}: {v.message}" for v in self.violations)
        super().__init__(f"Validation failed: {summary}")

    def to_dict(self) -> dict:
        return {"violations": [v.to_dict() for v in self.violations]}
