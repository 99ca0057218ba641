"""Pass 4: assemble address components into whole addresses.

classify -> link -> score -> convert.  A grouped address subsumes any
ADDRESS/LOCATION entity it overlaps; entities of other types inside the
address span (a phone number on the same line, say) are kept.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from piiguard.core.detection.address_classifier import AddressClassifier
from piiguard.core.detection.address_linker import AddressLinker
from piiguard.core.detection.address_scorer import AddressScorer, update_entity_with_score
from piiguard.core.detection.detection_config import LinkerConfig, ScorerConfig
from piiguard.core.detection.passes.base import pipeline_config
from piiguard.models.schemas import (
    ADDRESS_TYPES,
    AddressPattern,
    Entity,
    EntityType,
    PipelineContext,
    ScoredAddress,
)

logger = logging.getLogger(__name__)

_SWISS_POSTAL = re.compile(r"^[1-9]\d{3}$")


def address_type_for(address: ScoredAddress) -> EntityType:
    postal = address.components.postal or ""
    if "CH" in postal.upper() or _SWISS_POSTAL.match(postal) or address.pattern == AddressPattern.SWISS:
        return EntityType.SWISS_ADDRESS
    if address.pattern == AddressPattern.EU or address.components.country or len(postal) == 5:
        return EntityType.EU_ADDRESS
    return EntityType.ADDRESS


class AddressRelationshipPass:
    name = "address_relationship"
    order = 40

    def __init__(
        self,
        linker_config: Optional[LinkerConfig] = None,
        scorer_config: Optional[ScorerConfig] = None,
        enabled: bool = True,
    ):
        linker_config = linker_config or LinkerConfig()
        self.classifier = AddressClassifier(max_component_distance=linker_config.proximity_threshold)
        self.linker = AddressLinker(linker_config, classifier=self.classifier)
        self.scorer = AddressScorer(scorer_config)
        self.enabled = enabled

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        components = self.classifier.classify(text)
        if not components:
            return entities

        grouped = self.linker.link_and_group(components, text).grouped_addresses
        scored = self.scorer.score_addresses(grouped)
        addresses = self.to_entities(scored)

        if pipeline_config(context).debug:
            logger.debug(f"Address pass: {len(components)} components, {len(addresses)} addresses")
        return merge_addresses(entities, addresses)

    def to_entities(self, scored: list[ScoredAddress]) -> list[Entity]:
        base = self.linker.grouped_addresses_to_entities(scored)
        return [
            update_entity_with_score(entity, address).model_copy(update={"type": address_type_for(address)})
            for entity, address in zip(base, scored)
        ]


def merge_addresses(entities: list[Entity], addresses: list[Entity]) -> list[Entity]:
    """Grouped addresses replace the address-like entities they overlap."""
    result = list(addresses)
    for entity in entities:
        subsumed = entity.type in ADDRESS_TYPES and any(entity.overlaps(a) for a in addresses)
        if not subsumed:
            result.append(entity)
    result.sort(key=lambda e: e.start)
    return result
