"""Attribute value resolution.

For every attribute definition the effective value of a user is picked from
an ordered list of strategies, highest precedence first:

    service_override  value stored on the user for the requesting SP
    user_override     value stored on the user
    role_default      value stored on one of the user's roles

The first strategy returning a value wins; lower levels are never merged
in. No winner means the attribute is absent from the result.

Usage:
    resolver = AttributeResolver(definitions, values)
    resolved = resolver.resolve(user, entity_id="https://sp.example.org")
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .exceptions import AttributeNotFound
from .models import (
    AttributeDefinition,
    AttributeValue,
    AttributeValueData,
    ResolvedAttribute,
    RoleAssignment,
    Scope,
    SubjectRef,
    User,
    ValueSource,
)
from .repositories import AttributeDefinitionRepository, AttributeValueRepository

logger = logging.getLogger(__name__)

ROLE_PRECEDENCE_MOST_RECENT = "most_recent"
ROLE_PRECEDENCE_ROLE_ID = "role_id"


def order_roles(assignments: Iterable[RoleAssignment], policy: str = ROLE_PRECEDENCE_MOST_RECENT) -> list[RoleAssignment]:
    """Order role assignments so the winning role comes first.

    ``most_recent``: latest ``assigned_at`` first, ties broken by role id.
    ``role_id``: lowest role id first, assignment time ignored.
    """
    if policy == ROLE_PRECEDENCE_MOST_RECENT:
        return sorted(assignments, key=lambda a: (-a.assigned_at.timestamp(), a.role.id))
    if policy == ROLE_PRECEDENCE_ROLE_ID:
        return sorted(assignments, key=lambda a: a.role.id)
    raise ValueError(f"Unknown role precedence policy: {policy}")


# ─────────────────────────────────────────────────────────────────────────────
# Resolution strategies
# ─────────────────────────────────────────────────────────────────────────────

class _ResolutionContext:
    """Per-request index of every stored value relevant to one user."""

    def __init__(self, user: User, entity_id: Optional[str], values: Iterable[AttributeValue], role_policy: str):
        self.user = user
        self.entity_id = entity_id
        self.user_ref = SubjectRef.for_user(user)
        self.role_refs = [SubjectRef.for_role(a.role) for a in order_roles(user.roles, role_policy)]
        self._index = {value.key: value for value in values}

    def lookup(self, definition_id: int, subject: SubjectRef, scope: Scope) -> Optional[AttributeValue]:
        return self._index.get((definition_id, subject, scope.source, scope.entity_id))


@dataclass(frozen=True)
class ResolutionStrategy:
    name: str
    source: ValueSource
    lookup: Callable[[_ResolutionContext, AttributeDefinition], Optional[AttributeValue]]


def _service_override(ctx: _ResolutionContext, definition: AttributeDefinition) -> Optional[AttributeValue]:
    if not ctx.entity_id:
        return None
    return ctx.lookup(definition.id, ctx.user_ref, Scope.service_override(ctx.entity_id))


def _user_override(ctx: _ResolutionContext, definition: AttributeDefinition) -> Optional[AttributeValue]:
    return ctx.lookup(definition.id, ctx.user_ref, Scope.user_override())


def _role_default(ctx: _ResolutionContext, definition: AttributeDefinition) -> Optional[AttributeValue]:
    for role_ref in ctx.role_refs:
        value = ctx.lookup(definition.id, role_ref, Scope.role_default())
        if value is not None:
            return value
    return None


DEFAULT_STRATEGIES: tuple[ResolutionStrategy, ...] = (
    ResolutionStrategy("service_override", ValueSource.SERVICE_OVERRIDE, _service_override),
    ResolutionStrategy("user_override", ValueSource.USER_OVERRIDE, _user_override),
    ResolutionStrategy("role_default", ValueSource.ROLE_DEFAULT, _role_default),
)


def effective_value(definition: AttributeDefinition, raw: AttributeValueData) -> Optional[AttributeValueData]:
    """Normalize a stored value against the definition's current shape.

    Choice values whose option has since been removed are dropped. Returns
    None when nothing usable is left.
    """
    if not definition.is_choice:
        if isinstance(raw, list):
            raw = ", ".join(v for v in raw if v)
        return raw if raw else None

    allowed = set(definition.option_values())
    candidates = raw if isinstance(raw, list) else [raw]
    kept = [v for v in candidates if v in allowed]

    if len(kept) != len(candidates):
        logger.debug(
            "Dropped stale options %s of attribute '%s'",
            [v for v in candidates if v not in allowed], definition.name,
        )

    if not kept:
        return None
    if definition.multiple_choice:
        return kept
    return kept[0]


# ─────────────────────────────────────────────────────────────────────────────
# Resolver
# ─────────────────────────────────────────────────────────────────────────────

class AttributeResolver:
    """Computes the resulting attribute values of a user."""

    def __init__(
        self,
        definitions: AttributeDefinitionRepository,
        values: AttributeValueRepository,
        role_precedence: str = ROLE_PRECEDENCE_MOST_RECENT,
        strategies: Sequence[ResolutionStrategy] = DEFAULT_STRATEGIES,
    ):
        order_roles([], role_precedence)  # raises on unknown policy
        self.definitions = definitions
        self.values = values
        self.role_precedence = role_precedence
        self.strategies = tuple(strategies)

    def _context(self, user: User, entity_id: Optional[str]) -> _ResolutionContext:
        subjects = [SubjectRef.for_user(user)] + [SubjectRef.for_role(a.role) for a in user.roles]
        stored = self.values.find_for_subjects(subjects)
        return _ResolutionContext(user, entity_id, stored, self.role_precedence)

    def _resolve_one(self, ctx: _ResolutionContext, definition: AttributeDefinition) -> Optional[ResolvedAttribute]:
        for strategy in self.strategies:
            stored = strategy.lookup(ctx, definition)
            if stored is None:
                continue
            value = effective_value(definition, stored.value)
            if value is None:
                return None
            return ResolvedAttribute(definition=definition, value=value, source=strategy.source)
        return None

    def resolve(self, user: User, entity_id: Optional[str] = None) -> dict[int, ResolvedAttribute]:
        """Resolve every attribute definition for the user.

        Args:
            user: User to resolve attributes for
            entity_id: Entity id of the requesting service provider, enables
                service overrides when given

        Returns:
            Mapping definition id -> ResolvedAttribute, in definition order.
            Definitions without a value are not present.
        """
        ctx = self._context(user, entity_id)
        result: dict[int, ResolvedAttribute] = {}

        for definition in self.definitions.find_all():
            resolved = self._resolve_one(ctx, definition)
            if resolved is not None:
                result[definition.id] = resolved

        return result

    def resolve_attribute(self, user: User, definition_id: int, entity_id: Optional[str] = None) -> Optional[ResolvedAttribute]:
        """Resolve a single definition.

        Raises:
            AttributeNotFound: If the definition id is unknown
        """
        definition = self.definitions.find_by_id(definition_id)
        return self._resolve_one(self._context(user, entity_id), definition)

    def resolve_by_name(self, user: User, entity_id: Optional[str] = None) -> dict[str, AttributeValueData]:
        """Resolved values keyed by attribute name, for display."""
        return {
            resolved.definition.name: resolved.value
            for resolved in self.resolve(user, entity_id).values()
        }

    def values_for_subject(self, subject: SubjectRef, scope: Scope) -> dict[str, AttributeValueData]:
        """Raw values stored on one subject at exactly one scope, keyed by name.

        Used to prefill edit forms; no precedence is applied.
        """
        result: dict[str, AttributeValueData] = {}
        for stored in self.values.find_for_subjects([subject]):
            if stored.scope != scope:
                continue
            try:
                definition = self.definitions.find_by_id(stored.definition_id)
            except AttributeNotFound:
                logger.warning("Ignoring value of deleted attribute definition %s", stored.definition_id)
                continue
            result[definition.name] = stored.value
        return result
