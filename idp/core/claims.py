"""SAML claim assembly.

Builds the attribute list handed to the assertion builder for one
authenticated principal and one requesting service provider:

    CommonName                      always
    id, surname, given name, ...    full users only, always emitted
    custom attributes               allow-listed AND resolved only

Claim names are interop constants shared with every downstream service
provider; they must stay byte-exact.
"""
from __future__ import annotations
import json
import logging
from typing import Optional

from .models import Claim, Principal, User
from .repositories import ServiceProviderResolver
from .resolver import AttributeResolver
from .service_filter import ServiceProviderAttributeFilter

logger = logging.getLogger(__name__)


class ClaimTypes:
    COMMON_NAME = "http://schemas.xmlsoap.org/claims/CommonName"
    SURNAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/surname"
    GIVEN_NAME = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/givenname"
    EMAIL_ADDRESS = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"

    # Extended claims
    ID = "urn:id"
    EXTERNAL_ID = "urn:external-id"
    SERVICES = "urn:services"
    GRADE = "urn:grade"
    TYPE = "urn:type"
    EDU_PERSON_AFFILIATION = "urn:oid:1.3.6.1.4.1.5923.1.1.1.1"


def _or_empty(value: Optional[str]) -> str:
    return value if value is not None else ""


class ClaimAssembler:
    """Computes the claims released to a service provider for a principal."""

    def __init__(
        self,
        resolver: AttributeResolver,
        attribute_filter: ServiceProviderAttributeFilter,
        service_provider_resolver: ServiceProviderResolver,
    ):
        self.resolver = resolver
        self.attribute_filter = attribute_filter
        self.service_provider_resolver = service_provider_resolver

    def get_services(self, user: User) -> list[str]:
        """One JSON record (url, name, description) per authorized service."""
        return [
            json.dumps({
                "url": service.url,
                "name": service.name,
                "description": service.description,
            })
            for service in self.service_provider_resolver.get_services(user)
        ]

    def get_common_claims(self, user: User) -> list[Claim]:
        """Claims included in every response, empty fields included."""
        user_type = user.type
        return [
            Claim(ClaimTypes.ID, _or_empty(user.uuid)),
            Claim(ClaimTypes.SURNAME, _or_empty(user.lastname)),
            Claim(ClaimTypes.GIVEN_NAME, _or_empty(user.firstname)),
            Claim(ClaimTypes.EMAIL_ADDRESS, _or_empty(user.email)),
            Claim(ClaimTypes.EXTERNAL_ID, _or_empty(user.external_id)),
            Claim(ClaimTypes.SERVICES, self.get_services(user)),
            Claim(ClaimTypes.GRADE, _or_empty(user.grade)),
            Claim(ClaimTypes.TYPE, user_type.alias if user_type else ""),
            # eduPersonAffiliation
            Claim(ClaimTypes.EDU_PERSON_AFFILIATION, list(user_type.edu_person) if user_type else []),
        ]

    def get_custom_claims(self, user: User, entity_id: str) -> list[Claim]:
        """Custom attributes the service provider requested and the user has."""
        requested = self.attribute_filter.attributes_for(entity_id)
        if not requested:
            return []

        resolved = self.resolver.resolve(user, entity_id)
        claims = []

        for definition_id, definition in requested.items():
            if definition_id in resolved:
                claims.append(Claim(definition.saml_attribute_name, resolved[definition_id].value))

        return claims

    def build_claims(self, principal: Principal, entity_id: str) -> list[Claim]:
        """Assemble the full attribute list for a SAML assertion.

        Args:
            principal: Authenticated principal; only a full User record gets
                more than CommonName
            entity_id: Entity id of the requesting service provider

        Returns:
            Ordered list of Claim(name, value). Names may repeat.
        """
        claims = [Claim(ClaimTypes.COMMON_NAME, principal.username)]

        if not isinstance(principal, User):
            logger.debug("Principal %s is not a full user, releasing CommonName only", principal.username)
            return claims

        claims.extend(self.get_common_claims(principal))
        claims.extend(self.get_custom_claims(principal, entity_id))

        return claims

    # Name used by the assertion builder
    get_values_for_user = build_claims
