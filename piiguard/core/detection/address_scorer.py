"""Multi-factor confidence scoring for grouped addresses.

Five independently weighted factors; the final confidence is the sum of
factor scores over the sum of their maxima:

    component completeness   0.2 per distinct component type (max 1.0)
    pattern match            0.3 SWISS/EU, x0.8 ALTERNATIVE, x0.5 PARTIAL
    postal code              0.2 known Swiss range, x0.8 five-digit EU,
                             x0.7 four-digit (Austria), x0.3 unverified
    city                     0.1 known Swiss city, x0.5 after a postal
                             code, x0.3 unverified
    country                  0.1 explicit, x0.5 from a "CH-" postal prefix
"""

from __future__ import annotations

import logging
from typing import Optional

from piiguard.core.detection import postal_data as pd
from piiguard.core.detection.detection_config import ScorerConfig
from piiguard.models.schemas import (
    AddressComponentType,
    AddressPattern,
    Entity,
    GroupedAddress,
    ScoredAddress,
    ScoringFactor,
)

logger = logging.getLogger(__name__)


class AddressScorer:
    def __init__(self, config: Optional[ScorerConfig] = None):
        self.config = config or ScorerConfig()

    def score_address(self, address: GroupedAddress) -> ScoredAddress:
        factors = [
            self._completeness(address),
            self._pattern(address),
            self._postal_code(address),
            self._city(address),
            self._country(address),
        ]
        total = sum(f.score for f in factors)
        max_total = sum(f.max_score for f in factors)
        final = max(0.0, min(total / max_total, 1.0)) if max_total > 0 else 0.0
        flagged, auto = self.review_flags(final)

        return ScoredAddress(
            **dict(address),
            final_confidence=final,
            scoring_factors=factors,
            flagged_for_review=flagged,
            auto_anonymize=auto,
        )

    def score_addresses(self, addresses: list[GroupedAddress]) -> list[ScoredAddress]:
        return [self.score_address(a) for a in addresses]

    def review_flags(self, confidence: float) -> tuple[bool, bool]:
        """``(flagged_for_review, auto_anonymize)`` for a final confidence."""
        return (
            confidence < self.config.review_threshold,
            confidence >= self.config.auto_anonymize_threshold,
        )

    # -- factors ---------------------------------------------------------

    def _completeness(self, address: GroupedAddress) -> ScoringFactor:
        types = {c.type for c in address.component_entities}
        score = min(len(types) * self.config.weights.component_completeness, 1.0)

        wanted = {
            AddressComponentType.STREET_NAME: "street",
            AddressComponentType.STREET_NUMBER: "number",
            AddressComponentType.POSTAL_CODE: "postal code",
            AddressComponentType.CITY: "city",
        }
        missing = [label for t, label in wanted.items() if t not in types]
        description = f"{len(types)} unique component types"
        description += f" (missing: {', '.join(missing)})" if missing else " (complete address)"

        return ScoringFactor(
            name="Component Completeness",
            score=score,
            max_score=1.0,
            matched=len(types) >= 4,
            description=description,
        )

    def _pattern(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.weights.pattern_match
        multiplier, label = {
            AddressPattern.SWISS: (1.0, "standard format"),
            AddressPattern.EU: (1.0, "standard format"),
            AddressPattern.ALTERNATIVE: (0.8, "alternative format"),
            AddressPattern.PARTIAL: (0.5, "partial match"),
        }.get(address.pattern, (0.0, "unknown format"))

        return ScoringFactor(
            name="Pattern Match",
            score=weight * multiplier,
            max_score=weight,
            matched=address.pattern in (AddressPattern.SWISS, AddressPattern.EU, AddressPattern.ALTERNATIVE),
            description=f"Pattern: {address.pattern.value} ({label})",
        )

    def _postal_code(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.weights.postal_code_validation
        postal = address.components.postal

        def factor(multiplier: float, matched: bool, description: str) -> ScoringFactor:
            return ScoringFactor(
                name="Postal Code Validation",
                score=weight * multiplier,
                max_score=weight,
                matched=matched,
                description=description,
            )

        if not postal:
            return factor(0.0, False, "No postal code found")

        digits = pd.postal_digits(postal)
        if len(digits) == 4:
            canton = pd.canton_for_postal_code(int(digits))
            if canton is not None:
                return factor(1.0, True, f"Valid Swiss postal code ({canton})")
        if len(digits) == 5:
            return factor(0.8, True, "Valid EU postal code format")
        if len(digits) == 4 and 1000 <= int(digits) <= 9999:
            return factor(0.7, True, "Possible Austrian postal code")
        return factor(0.3, False, f"Unverified postal code: {postal}")

    def _city(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.weights.city_validation
        city = address.components.city

        if not city:
            multiplier, matched, description = 0.0, False, "No city found"
        elif pd.is_known_swiss_city(city):
            multiplier, matched, description = 1.0, True, f"Known Swiss city: {city}"
        elif address.components.postal:
            multiplier, matched, description = 0.5, False, f"City after postal code: {city}"
        else:
            multiplier, matched, description = 0.3, False, f"Unverified city: {city}"

        return ScoringFactor(
            name="City Validation",
            score=weight * multiplier,
            max_score=weight,
            matched=matched,
            description=description,
        )

    def _country(self, address: GroupedAddress) -> ScoringFactor:
        weight = self.config.weights.country_present
        country = address.components.country
        postal = address.components.postal or ""

        if country:
            multiplier, matched, description = 1.0, True, f"Country specified: {country}"
        elif "CH" in postal.upper():
            multiplier, matched, description = 0.5, True, "Swiss country code in postal code"
        else:
            multiplier, matched, description = 0.0, False, "No country specified"

        return ScoringFactor(
            name="Country Presence",
            score=weight * multiplier,
            max_score=weight,
            matched=matched,
            description=description,
        )


def update_entity_with_score(entity: Entity, scored: ScoredAddress) -> Entity:
    """Copy of *entity* carrying the address score and review decision."""
    metadata = entity.metadata.model_copy(update={
        "scoring_factors": scored.scoring_factors,
        "auto_anonymize": scored.auto_anonymize,
        "pattern_type": scored.pattern,
    })
    return entity.model_copy(update={
        "confidence": scored.final_confidence,
        "flagged_for_review": scored.flagged_for_review,
        "metadata": metadata,
    })
