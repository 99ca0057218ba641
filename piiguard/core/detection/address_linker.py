"""Address linker: group nearby address components into full addresses.

Recognized shapes:

    SWISS        Bahnhofstrasse 10, 8001 Zürich
    EU           Bahnhofstrasse 10, 8001 Zürich, Schweiz
    ALTERNATIVE  8001 Zürich, Bahnhofstrasse 10
    PARTIAL      some street and some location information
    NONE         anything else

Algorithm:
  1. ``group_by_proximity`` sorts components and sweeps left to right,
     closing a group when the gap to the next component exceeds the
     threshold (wider when a line break separates them).
  2. ``detect_pattern`` classifies each group from the component types it
     contains and their order.
  3. ``create_grouped_address`` spans the group, copies and tags its
     components, and scores it.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from piiguard.core.detection.address_classifier import AddressClassifier
from piiguard.core.detection.detection_config import LinkerConfig
from piiguard.models.schemas import (
    AddressBreakdown,
    AddressComponent,
    AddressComponentType,
    AddressPattern,
    Entity,
    EntityMetadata,
    EntitySource,
    EntityType,
    GroupedAddress,
    ValidationStatus,
    new_id,
)

logger = logging.getLogger(__name__)

C = AddressComponentType

_BASE_CONFIDENCE: dict[AddressPattern, float] = {
    AddressPattern.SWISS: 0.85,
    AddressPattern.EU: 0.85,
    AddressPattern.ALTERNATIVE: 0.75,
    AddressPattern.PARTIAL: 0.5,
    AddressPattern.NONE: 0.3,
}

_STATUS: dict[AddressPattern, ValidationStatus] = {
    AddressPattern.SWISS: ValidationStatus.VALID,
    AddressPattern.EU: ValidationStatus.VALID,
    AddressPattern.ALTERNATIVE: ValidationStatus.PARTIAL,
    AddressPattern.PARTIAL: ValidationStatus.UNCERTAIN,
    AddressPattern.NONE: ValidationStatus.UNCERTAIN,
}

_BREAKDOWN_FIELDS: dict[AddressComponentType, str] = {
    C.STREET_NAME: "street",
    C.STREET_NUMBER: "number",
    C.POSTAL_CODE: "postal",
    C.CITY: "city",
    C.COUNTRY: "country",
    C.REGION: "region",
}


class LinkResult(NamedTuple):
    grouped_addresses: list[GroupedAddress]
    linked_components: list[AddressComponent]
    unlinked_components: list[AddressComponent]


def validation_status_for(pattern: AddressPattern) -> ValidationStatus:
    return _STATUS[pattern]


class AddressLinker:
    """Proximity grouping + pattern matching over address components."""

    def __init__(
        self,
        config: Optional[LinkerConfig] = None,
        classifier: Optional[AddressClassifier] = None,
    ):
        self.config = config or LinkerConfig()
        self.classifier = classifier or AddressClassifier(
            max_component_distance=self.config.proximity_threshold,
        )

    # ------------------------------------------------------------------
    # Step 1: proximity grouping
    # ------------------------------------------------------------------

    def group_by_proximity(
        self,
        components: list[AddressComponent],
        text: str,
    ) -> list[list[AddressComponent]]:
        """Split components into runs whose consecutive gaps stay within threshold.

        Groups smaller than ``min_components`` are dropped; a run longer
        than ``max_components`` is cut into consecutive groups.
        """
        if not components:
            return []

        ordered = sorted(components, key=lambda c: c.start)
        groups: list[list[AddressComponent]] = []
        current = [ordered[0]]

        for prev, comp in zip(ordered, ordered[1:]):
            gap = comp.start - prev.end
            between = text[prev.end:comp.start]
            threshold = (
                self.config.newline_threshold
                if "\n" in between or "\r" in between
                else self.config.proximity_threshold
            )
            if 0 <= gap <= threshold and len(current) < self.config.max_components:
                current.append(comp)
                continue
            if len(current) >= self.config.min_components:
                groups.append(current)
            current = [comp]

        if len(current) >= self.config.min_components:
            groups.append(current)
        return groups

    # ------------------------------------------------------------------
    # Step 2: pattern detection
    # ------------------------------------------------------------------

    @staticmethod
    def detect_pattern(components: list[AddressComponent]) -> AddressPattern:
        """Classify a component group.

        Decision table (first matching row wins):

            street+postal+city, country          -> EU
            street+postal+city, street first     -> SWISS
            street+postal+city, postal first     -> ALTERNATIVE
            (street|number) and (postal|city)    -> PARTIAL
            postal and city                      -> PARTIAL
            otherwise                            -> NONE
        """
        types = {c.type for c in components}
        street, number = C.STREET_NAME in types, C.STREET_NUMBER in types
        postal, city = C.POSTAL_CODE in types, C.CITY in types
        country = C.COUNTRY in types

        if street and postal and city:
            if country:
                return AddressPattern.EU
            ordered = sorted(components, key=lambda c: c.start)
            street_at = next(i for i, c in enumerate(ordered) if c.type == C.STREET_NAME)
            postal_at = next(i for i, c in enumerate(ordered) if c.type == C.POSTAL_CODE)
            return AddressPattern.SWISS if street_at < postal_at else AddressPattern.ALTERNATIVE

        if (street or number) and (postal or city):
            return AddressPattern.PARTIAL
        if postal and city:
            return AddressPattern.PARTIAL
        return AddressPattern.NONE

    # ------------------------------------------------------------------
    # Step 3: scoring and grouped-address creation
    # ------------------------------------------------------------------

    def calculate_confidence(
        self,
        pattern: AddressPattern,
        components: list[AddressComponent],
    ) -> float:
        confidence = _BASE_CONFIDENCE[pattern]

        extra = len(components) - self.config.min_components
        if extra > 0:
            confidence += 0.02 * extra

        types = {c.type for c in components}
        if C.STREET_NAME in types and C.STREET_NUMBER in types:
            confidence += 0.05
        if C.POSTAL_CODE in types and C.CITY in types:
            confidence += 0.05

        return min(confidence, 1.0)

    def create_grouped_address(
        self,
        components: list[AddressComponent],
        text: str,
        pattern: Optional[AddressPattern] = None,
    ) -> GroupedAddress:
        ordered = sorted(components, key=lambda c: c.start)
        if pattern is None:
            pattern = self.detect_pattern(ordered)

        start = min(c.start for c in ordered)
        end = max(c.end for c in ordered)
        group_id = new_id()

        breakdown = AddressBreakdown()
        for comp in ordered:
            field = _BREAKDOWN_FIELDS[comp.type]
            if getattr(breakdown, field) is None:
                setattr(breakdown, field, comp.text)

        tagged = [
            c.model_copy(update={"linked": True, "linked_to_group_id": group_id})
            for c in ordered
        ]

        return GroupedAddress(
            id=group_id,
            text=text[start:end],
            start=start,
            end=end,
            pattern=pattern,
            components=breakdown,
            component_entities=tagged,
            confidence=self.calculate_confidence(pattern, ordered),
            validation_status=validation_status_for(pattern),
        )

    # ------------------------------------------------------------------
    # Full linking
    # ------------------------------------------------------------------

    def link_and_group(self, components: list[AddressComponent], text: str) -> LinkResult:
        grouped: list[GroupedAddress] = []
        linked: list[AddressComponent] = []
        absorbed: set[str] = set()

        for group in self.group_by_proximity(components, text):
            pattern = self.detect_pattern(group)
            if pattern == AddressPattern.NONE:
                continue
            address = self.create_grouped_address(group, text, pattern)
            grouped.append(address)
            linked.extend(address.component_entities)
            absorbed.update(c.id for c in group)

        unlinked = [c for c in components if c.id not in absorbed]
        logger.debug(
            f"Linked {len(linked)} of {len(components)} components "
            f"into {len(grouped)} addresses"
        )
        return LinkResult(grouped, linked, unlinked)

    @staticmethod
    def grouped_addresses_to_entities(
        addresses: list[GroupedAddress],
        source: EntitySource = EntitySource.LINKED,
    ) -> list[Entity]:
        return [
            Entity(
                id=addr.id,
                type=EntityType.ADDRESS,
                text=addr.text,
                start=addr.start,
                end=addr.end,
                confidence=addr.confidence,
                source=source,
                components=addr.component_entities,
                metadata=EntityMetadata(
                    is_grouped_address=True,
                    pattern_type=addr.pattern,
                    breakdown=addr.components,
                    component_count=len(addr.component_entities),
                    validation_status=addr.validation_status.value,
                ),
            )
            for addr in addresses
        ]

    def process_text(self, text: str) -> list[Entity]:
        """Classify, link and convert in one call."""
        components = self.classifier.classify(text)
        return self.grouped_addresses_to_entities(
            self.link_and_group(components, text).grouped_addresses
        )
