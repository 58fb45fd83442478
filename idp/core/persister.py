"""Writes attribute value overrides edited by administrators."""
from __future__ import annotations
import logging
from typing import Any, Mapping, Optional, Union

from .audit import AuditTrail
from .exceptions import UnknownAttribute, ValidationFailed, Violation
from .models import (
    AttributeDefinition,
    AttributeValue,
    AttributeValueData,
    Scope,
    SubjectRef,
    User,
    UserRole,
    ValueSource,
)
from .repositories import AttributeDefinitionRepository, AttributeValueRepository

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = ","


def _is_empty(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    if isinstance(raw, (list, tuple, set)):
        return all(_is_empty(item) for item in raw)
    return False


class AttributePersister:
    """Validates and upserts attribute values for users and roles.

    Empty input deletes the stored value at that exact scope; "unset" is
    represented by absence, never by an empty string.
    """

    def __init__(
        self,
        definitions: AttributeDefinitionRepository,
        values: AttributeValueRepository,
        separator: str = DEFAULT_SEPARATOR,
        audit: Optional[AuditTrail] = None,
    ):
        self.definitions = definitions
        self.values = values
        self.separator = separator
        self.audit = audit

    def _selection(self, raw: Any, split: bool) -> list[str]:
        """Selected option values, stripped and de-duplicated in input order.

        Strings are split on the separator only when ``split`` is set.
        """
        if isinstance(raw, str):
            items = raw.split(self.separator) if split else [raw]
        elif isinstance(raw, (list, tuple, set)):
            items = list(raw)
        else:
            items = [raw]

        result: list[str] = []
        for item in items:
            text = str(item).strip() if item is not None else ""
            if text and text not in result:
                result.append(text)
        return result

    def coerce(self, definition: AttributeDefinition, raw: Any) -> tuple[Optional[AttributeValueData], list[Violation]]:
        """Convert a raw input value into its stored form.

        Returns:
            (value, violations); value is None when the input is empty
        """
        if _is_empty(raw):
            return None, []

        if not definition.is_choice:
            if isinstance(raw, (list, tuple, set)):
                return None, [Violation(definition.name, "This value should be a string.")]
            return str(raw).strip(), []

        selected = self._selection(raw, split=definition.multiple_choice)
        if not selected:
            return None, []

        allowed = definition.option_values()
        violations = [
            Violation(definition.name, f"The value '{value}' is not a valid choice.")
            for value in selected if value not in allowed
        ]

        if definition.multiple_choice:
            return selected, violations

        if len(selected) > 1:
            violations.append(Violation(definition.name, "Only one choice may be selected."))
        return selected[0], violations

    def persist(
        self,
        values: Mapping[str, Any],
        subject: Union[User, UserRole],
        scope: Scope,
        only_user_editable: bool = False,
    ) -> None:
        """Persist attribute values of a subject at one scope.

        Every name is looked up and every value validated before anything is
        written. A store error mid-batch leaves the already written
        attributes in place.

        Args:
            values: Mapping attribute name -> raw value (str, list or None)
            subject: User or UserRole owning the values
            scope: Role default, user override or service override
            only_user_editable: Reject attributes the user may not edit
                (self-service writes)

        Raises:
            UnknownAttribute: If a name has no definition
            ValidationFailed: If a value is not acceptable for its definition
            ValueError: If the scope does not fit the subject kind
        """
        subject_ref = self._subject_ref(subject, scope)

        pending: list[tuple[AttributeDefinition, Optional[AttributeValueData]]] = []
        violations: list[Violation] = []

        for name, raw in values.items():
            definition = self.definitions.find_by_name(name)
            if definition is None:
                raise UnknownAttribute(name)

            if only_user_editable and not definition.user_editable:
                violations.append(Violation(definition.name, "This attribute cannot be edited by the user."))
                continue

            value, problems = self.coerce(definition, raw)
            violations.extend(problems)
            pending.append((definition, value))

        if violations:
            raise ValidationFailed(violations)

        for definition, value in pending:
            if value is None:
                if self.values.delete(definition.id, subject_ref, scope):
                    logger.debug("Cleared %s of %s/%s", definition.name, subject_ref.kind.value, subject_ref.id)
                continue

            self.values.upsert(AttributeValue(
                definition_id=definition.id,
                subject=subject_ref,
                scope=scope,
                value=value,
            ))

        logger.info(
            "Persisted %d attribute(s) for %s %s at %s",
            len(pending), subject_ref.kind.value, subject_ref.id, scope.source.value,
        )

    def persist_user_attributes(
        self,
        values: Mapping[str, Any],
        user: User,
        operator: str = "system",
        only_user_editable: bool = False,
    ) -> None:
        scope = Scope.user_override()
        self.persist(values, user, scope, only_user_editable=only_user_editable)
        self._audit("user_attributes_update", user.username, values, scope, operator)

    def persist_user_role_attributes(self, values: Mapping[str, Any], role: UserRole, operator: str = "system") -> None:
        scope = Scope.role_default()
        self.persist(values, role, scope)
        self._audit("role_attributes_update", role.name, values, scope, operator)

    def persist_service_attributes(
        self,
        values: Mapping[str, Any],
        user: User,
        entity_id: str,
        operator: str = "system",
        only_user_editable: bool = False,
    ) -> None:
        scope = Scope.service_override(entity_id)
        self.persist(values, user, scope, only_user_editable=only_user_editable)
        self._audit("service_attributes_update", user.username, values, scope, operator)

    def remove_subject(self, subject: Union[User, UserRole]) -> int:
        """Delete every stored value of a subject (the subject is being deleted)."""
        ref = SubjectRef.for_user(subject) if isinstance(subject, User) else SubjectRef.for_role(subject)
        return self.values.delete_for_subject(ref)

    @staticmethod
    def _subject_ref(subject: Union[User, UserRole], scope: Scope) -> SubjectRef:
        if scope.source == ValueSource.ROLE_DEFAULT:
            if not isinstance(subject, UserRole):
                raise ValueError("Role default values can only be stored on a user role")
            return SubjectRef.for_role(subject)

        if not isinstance(subject, User):
            raise ValueError(f"{scope.source.value} values can only be stored on a user")
        return SubjectRef.for_user(subject)

    def _audit(self, event_type, subject: str, values: Mapping[str, Any], scope: Scope, operator: str) -> None:
        if self.audit is None:
            return
        self.audit.safe_log_event(
            event_type,
            subject,
            operator=operator,
            details={
                "attributes": sorted(values.keys()),
                "scope": scope.source.value,
                "entity_id": scope.entity_id,
            },
        )
