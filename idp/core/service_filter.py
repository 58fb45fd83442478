"""Per service provider attribute allow-list."""
from __future__ import annotations
import logging

from .models import AttributeDefinition
from .repositories import ServiceAttributeRepository

logger = logging.getLogger(__name__)


class ServiceProviderAttributeFilter:
    """Decides which attribute definitions a service provider may receive."""

    def __init__(self, service_attributes: ServiceAttributeRepository):
        self.service_attributes = service_attributes

    def attributes_for(self, entity_id: str) -> dict[int, AttributeDefinition]:
        """Allow-listed definitions keyed by definition id, in repository order.

        An unknown entity id yields an empty mapping; relying parties that
        are not configured must not learn which attributes exist.
        """
        if not entity_id:
            return {}

        definitions = self.service_attributes.get_attributes_for_service_provider(entity_id)
        if not definitions:
            logger.debug("No attributes configured for service provider %s", entity_id)

        return {definition.id: definition for definition in definitions}
