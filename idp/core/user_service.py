"""User and role management use cases.

Shared by the JSON API and scripts. All validation problems of a request
are collected and raised together as one ValidationFailed; duplicate
usernames/emails are reported the same way, next to the field errors.

Directory-sourced users (``externally_managed``) keep their profile fields:
names, email, external id, enabled window and active flag coming from the
request are ignored for them. Username is never changed by an update.
"""
from __future__ import annotations
import dataclasses
import datetime
import logging
import uuid as uuid_lib
from typing import Any, Mapping, Optional

from .audit import AuditTrail
from .exceptions import RoleNotFoundError, UserNotFoundError, ValidationFailed, Violation
from .models import AttributeValueData, RoleAssignment, Scope, SubjectRef, User, UserRole
from .persister import AttributePersister
from .repositories import UserRepository, UserRoleRepository, UserTypeRepository
from .resolver import AttributeResolver
from .validators import normalize_username, parse_optional_datetime, validate_email, validate_name

logger = logging.getLogger(__name__)

CONFLICT_MESSAGES = {
    "username": "Username already in use.",
    "email": "Email address already in use.",
    "external_id": "External ID already in use.",
}


def _is_uuid(value: str) -> bool:
    try:
        uuid_lib.UUID(str(value))
        return True
    except ValueError:
        return False


def sanitize_pagination(offset: Any, limit: Any) -> tuple[int, Optional[int]]:
    """Clamp query parameters: bad offset -> 0, bad limit -> no limit."""
    try:
        offset = int(offset)
    except (TypeError, ValueError):
        offset = 0
    if offset < 0:
        offset = 0

    try:
        limit = int(limit) if limit is not None else None
    except (TypeError, ValueError):
        limit = None
    if limit is not None and limit < 0:
        limit = None

    return offset, limit


class UserService:
    def __init__(
        self,
        users: UserRepository,
        user_types: UserTypeRepository,
        roles: UserRoleRepository,
        persister: AttributePersister,
        resolver: AttributeResolver,
        audit: Optional[AuditTrail] = None,
    ):
        self.users = users
        self.user_types = user_types
        self.roles = roles
        self.persister = persister
        self.resolver = resolver
        self.audit = audit

    # ─────────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────────

    def list_uuids(self, offset: Any = 0, limit: Any = None) -> list[str]:
        offset, limit = sanitize_pagination(offset, limit)
        return self.users.find_all_uuids(offset, limit)

    def get_user(self, uuid_or_external_id: str) -> User:
        """Find a user by uuid, falling back to external id.

        Raises:
            UserNotFoundError: If neither matches
        """
        if _is_uuid(uuid_or_external_id):
            user = self.users.find_one_by_uuid(str(uuid_or_external_id))
            if user is not None:
                return user

        user = self.users.find_one_by_external_id(uuid_or_external_id)
        if user is not None:
            return user

        raise UserNotFoundError(f"User '{uuid_or_external_id}' not found")

    def get_role(self, role_id: Any) -> UserRole:
        try:
            role = self.roles.find_one_by_id(int(role_id))
        except (TypeError, ValueError):
            role = None
        if role is None:
            raise RoleNotFoundError(f"Role '{role_id}' not found")
        return role

    # ─────────────────────────────────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────────────────────────────────

    def add_user(self, payload: Mapping[str, Any], operator: str = "system") -> User:
        """Create a user.

        Raises:
            ValidationFailed: Duplicate username/email/external id or invalid fields
        """
        violations: list[Violation] = []

        if self.users.find_one_by_username((payload.get("username") or "").strip().lower()) is not None:
            violations.append(Violation("username", CONFLICT_MESSAGES["username"]))
        if self.users.find_one_by_email((payload.get("email") or "").strip().lower()) is not None:
            violations.append(Violation("email", CONFLICT_MESSAGES["email"]))

        user = User(username="", uuid=str(uuid_lib.uuid4()))
        try:
            user.username = normalize_username(payload.get("username", ""))
        except ValueError as exc:
            violations.append(Violation("username", str(exc)))

        violations.extend(self._apply_payload(user, payload))

        if violations:
            raise ValidationFailed(violations)

        # A concurrent create may have taken a value since the checks above
        conflicts = self.users.add_if_unique(user)
        if conflicts:
            raise ValidationFailed([Violation(attr, CONFLICT_MESSAGES[attr]) for attr in conflicts])

        logger.info("Created user %s (%s)", user.username, user.uuid)
        self._audit("user_create", user.username, operator, {"uuid": user.uuid})
        return user

    def update_user(self, uuid_or_external_id: str, payload: Mapping[str, Any], operator: str = "system") -> User:
        """Update a user; the username is kept.

        The stored record is replaced by an updated copy, never edited in place.

        Raises:
            UserNotFoundError: Unknown user
            ValidationFailed: Invalid fields
        """
        user = self.get_user(uuid_or_external_id)

        candidate = dataclasses.replace(user, roles=list(user.roles))
        violations = self._apply_payload(candidate, payload)
        if violations:
            raise ValidationFailed(violations)

        self.users.persist(candidate)
        logger.info("Updated user %s", candidate.username)
        self._audit("user_update", candidate.username, operator, {"uuid": candidate.uuid})
        return candidate

    def remove_user(self, uuid_or_external_id: str, operator: str = "system") -> None:
        user = self.get_user(uuid_or_external_id)
        removed = self.persister.remove_subject(user)
        self.users.remove(user)
        logger.info("Removed user %s and %d attribute value(s)", user.username, removed)
        self._audit("user_delete", user.username, operator, {"uuid": user.uuid})

    def _apply_payload(self, user: User, payload: Mapping[str, Any]) -> list[Violation]:
        violations: list[Violation] = []

        if not user.externally_managed:
            violations.extend(self._apply_profile(user, payload))

        # Type may be omitted on update, the current one is kept
        type_alias = payload.get("type")
        if type_alias:
            user_type = self.user_types.find_one_by_alias(type_alias)
            if user_type is None:
                violations.append(Violation("type", "User type not found."))
            else:
                user.type = user_type
        elif user.type is None:
            violations.append(Violation("type", "User type is required."))

        grade = payload.get("grade")
        user.grade = str(grade).strip() if grade not in (None, "") else None

        if "roles" in payload:
            violations.extend(self._apply_roles(user, payload.get("roles") or []))

        return violations

    def _apply_profile(self, user: User, payload: Mapping[str, Any]) -> list[Violation]:
        violations: list[Violation] = []

        for field, label in (("firstname", "First name"), ("lastname", "Last name")):
            try:
                setattr(user, field, validate_name(payload.get(field, ""), label))
            except ValueError as exc:
                violations.append(Violation(field, str(exc)))

        try:
            user.email = validate_email(payload.get("email", ""))
        except ValueError as exc:
            violations.append(Violation("email", str(exc)))

        external_id = (payload.get("external_id") or "").strip() or None
        if external_id is not None:
            owner = self.users.find_one_by_external_id(external_id)
            if owner is not None and owner.uuid != user.uuid:
                violations.append(Violation("external_id", CONFLICT_MESSAGES["external_id"]))
        user.external_id = external_id

        for field in ("enabled_from", "enabled_until"):
            try:
                setattr(user, field, parse_optional_datetime(payload.get(field), field))
            except ValueError as exc:
                violations.append(Violation(field, str(exc)))

        if user.enabled_from and user.enabled_until and user.enabled_until < user.enabled_from:
            violations.append(Violation("enabled_until", "End of the enabled window lies before its start."))

        user.active = bool(payload.get("active", True))
        return violations

    def _apply_roles(self, user: User, role_ids: list) -> list[Violation]:
        """Replace role assignments; roles already held keep their assignment time."""
        current = {assignment.role.id: assignment for assignment in user.roles}
        now = datetime.datetime.now(datetime.timezone.utc)
        assignments: list[RoleAssignment] = []

        for role_id in role_ids:
            try:
                role = self.get_role(role_id)
            except RoleNotFoundError:
                return [Violation("roles", f"Role '{role_id}' not found.")]
            if role.id in current:
                assignments.append(current[role.id])
            elif all(a.role.id != role.id for a in assignments):
                assignments.append(RoleAssignment(role=role, assigned_at=now))

        user.roles = assignments
        return []

    # ─────────────────────────────────────────────────────────────────────────
    # Attributes
    # ─────────────────────────────────────────────────────────────────────────

    def update_attributes(
        self,
        uuid_or_external_id: str,
        attributes: Mapping[str, Any],
        entity_id: Optional[str] = None,
        operator: str = "system",
        only_user_editable: bool = False,
    ) -> None:
        """Persist user overrides; only the given attributes are touched.

        With ``entity_id`` the values become overrides for that service
        provider only. With ``only_user_editable`` (self-service writes)
        attributes not marked user editable are rejected.
        """
        user = self.get_user(uuid_or_external_id)
        if entity_id:
            self.persister.persist_service_attributes(
                attributes, user, entity_id, operator=operator, only_user_editable=only_user_editable,
            )
        else:
            self.persister.persist_user_attributes(
                attributes, user, operator=operator, only_user_editable=only_user_editable,
            )

    def user_attributes(self, uuid_or_external_id: str, entity_id: Optional[str] = None) -> dict[str, dict[str, AttributeValueData]]:
        """Resolved values plus the user's own overrides, keyed by attribute name."""
        user = self.get_user(uuid_or_external_id)
        return {
            "resolved": self.resolver.resolve_by_name(user, entity_id),
            "overrides": self.resolver.values_for_subject(SubjectRef.for_user(user), Scope.user_override()),
        }

    def update_role_attributes(self, role_id: Any, attributes: Mapping[str, Any], operator: str = "system") -> UserRole:
        role = self.get_role(role_id)
        self.persister.persist_user_role_attributes(attributes, role, operator=operator)
        return role

    def role_attributes(self, role_id: Any) -> dict[str, AttributeValueData]:
        role = self.get_role(role_id)
        return self.resolver.values_for_subject(SubjectRef.for_role(role), Scope.role_default())

    def _audit(self, event_type, subject: str, operator: str, details: dict) -> None:
        if self.audit is not None:
            self.audit.safe_log_event(event_type, subject, operator=operator, details=details)
