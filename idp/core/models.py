"""Identity and attribute data model.

Plain dataclasses shared by every core component. Nothing in here talks to
a store; repositories hand these objects to the resolver, the persister and
the claim assembler.
"""
from __future__ import annotations
import datetime
import enum
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union

# A stored or resolved attribute value: scalar for text/single choice,
# list for multiple choice.
AttributeValueData = Union[str, list[str]]


class AttributeType(str, enum.Enum):
    TEXT = "text"
    CHOICE = "choice"


@dataclass(frozen=True)
class AttributeDefinition:
    """Administrator-managed definition of a custom attribute.

    ``options`` maps the display label to the stored option value and keeps
    insertion order.
    """
    id: int
    name: str
    saml_attribute_name: str
    type: AttributeType = AttributeType.TEXT
    label: str = ""
    description: str = ""
    options: dict[str, str] = field(default_factory=dict)
    multiple_choice: bool = False
    user_editable: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("Attribute name is required")
        if self.type == AttributeType.CHOICE and not self.options:
            raise ValueError(f"Choice attribute '{self.name}' requires at least one option")

    @property
    def is_choice(self) -> bool:
        return self.type == AttributeType.CHOICE

    def option_values(self) -> list[str]:
        return list(self.options.values())

    def __hash__(self):
        return hash(self.id)


class ValueSource(str, enum.Enum):
    ROLE_DEFAULT = "role_default"
    USER_OVERRIDE = "user_override"
    SERVICE_OVERRIDE = "service_override"


@dataclass(frozen=True)
class Scope:
    """Where an attribute value applies: a source kind plus, for service
    overrides, the entity id of the target service provider."""
    source: ValueSource
    entity_id: Optional[str] = None

    def __post_init__(self):
        if self.source == ValueSource.SERVICE_OVERRIDE and not self.entity_id:
            raise ValueError("Service override scope requires an entity id")
        if self.source != ValueSource.SERVICE_OVERRIDE and self.entity_id is not None:
            raise ValueError(f"Scope {self.source.value} does not take an entity id")

    @classmethod
    def role_default(cls) -> "Scope":
        return cls(ValueSource.ROLE_DEFAULT)

    @classmethod
    def user_override(cls) -> "Scope":
        return cls(ValueSource.USER_OVERRIDE)

    @classmethod
    def service_override(cls, entity_id: str) -> "Scope":
        return cls(ValueSource.SERVICE_OVERRIDE, entity_id)


class SubjectKind(str, enum.Enum):
    USER = "user"
    ROLE = "role"


@dataclass(frozen=True)
class SubjectRef:
    kind: SubjectKind
    id: str

    @classmethod
    def for_user(cls, user: "User") -> "SubjectRef":
        return cls(SubjectKind.USER, str(user.uuid))

    @classmethod
    def for_role(cls, role: "UserRole") -> "SubjectRef":
        return cls(SubjectKind.ROLE, str(role.id))


@dataclass(frozen=True)
class AttributeValue:
    definition_id: int
    subject: SubjectRef
    scope: Scope
    value: AttributeValueData

    @property
    def key(self) -> tuple:
        """Uniqueness key: one value per (definition, subject, source, entity id)."""
        return (self.definition_id, self.subject, self.scope.source, self.scope.entity_id)


@dataclass
class UserType:
    id: int
    name: str
    alias: str
    edu_person: list[str] = field(default_factory=list)


@dataclass
class UserRole:
    id: int
    name: str
    description: str = ""


@dataclass
class RoleAssignment:
    role: UserRole
    assigned_at: datetime.datetime


@dataclass
class Principal:
    """Any authenticated principal. Only the username is known for sure."""
    username: str


@dataclass
class User(Principal):
    """Full identity record.

    ``externally_managed`` marks accounts sourced from a directory (Active
    Directory); their profile fields are owned by the directory and are
    never overwritten through the API.
    """
    uuid: str = ""
    email: str = ""
    firstname: str = ""
    lastname: str = ""
    external_id: Optional[str] = None
    grade: Optional[str] = None
    type: Optional[UserType] = None
    enabled_from: Optional[datetime.datetime] = None
    enabled_until: Optional[datetime.datetime] = None
    active: bool = True
    is_provisioned: bool = True
    externally_managed: bool = False
    roles: list[RoleAssignment] = field(default_factory=list)

    def is_active(self, now: Optional[datetime.datetime] = None) -> bool:
        if not self.active:
            return False
        now = now or datetime.datetime.now(datetime.timezone.utc)
        if self.enabled_from is not None and now < self.enabled_from:
            return False
        if self.enabled_until is not None and now > self.enabled_until:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "username": self.username,
            "email": self.email,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "external_id": self.external_id,
            "grade": self.grade,
            "type": self.type.alias if self.type else None,
            "enabled_from": self.enabled_from.isoformat() if self.enabled_from else None,
            "enabled_until": self.enabled_until.isoformat() if self.enabled_until else None,
            "active": self.active,
            "is_provisioned": self.is_provisioned,
            "externally_managed": self.externally_managed,
            "roles": [assignment.role.name for assignment in self.roles],
        }


@dataclass(frozen=True)
class ServiceProvider:
    entity_id: str
    name: str
    url: str = ""
    description: str = ""


@dataclass(frozen=True)
class ResolvedAttribute:
    """Effective value of one definition for one user. Never persisted."""
    definition: AttributeDefinition
    value: AttributeValueData
    source: ValueSource


class Claim(NamedTuple):
    name: str
    value: Union[str, list[str], None]
