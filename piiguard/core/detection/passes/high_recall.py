"""Pass 1: cast a wide net.

Runs the optional ML detector and the Swiss/EU pattern engine, merges
spans both layers agree on into a single ``BOTH`` entity, and drops
anything on the deny list.
"""

from __future__ import annotations

import logging
from typing import Optional

from piiguard.core.detection.deny_list import DenyList, default_deny_list
from piiguard.core.detection.passes.base import MLDetector, pipeline_config
from piiguard.core.detection.regex_detector import RegexMatch, SwissEuDetector
from piiguard.models.schemas import Entity, EntityMetadata, EntitySource, PipelineContext

logger = logging.getLogger(__name__)


class HighRecallPass:
    name = "high_recall"
    order = 10

    def __init__(
        self,
        ml_detector: Optional[MLDetector] = None,
        detector: Optional[SwissEuDetector] = None,
        deny_list: Optional[DenyList] = None,
        enabled: bool = True,
    ):
        self.ml_detector = ml_detector
        self.detector = detector or SwissEuDetector()
        self.deny_list = deny_list or default_deny_list
        self.enabled = enabled

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        cfg = pipeline_config(context)

        ml_entities = self._ml_entities(text, context.language, cfg.ml_confidence_threshold)
        rule_entities = [_from_regex(m) for m in self.detector.detect(text)]
        merged = merge_sources(ml_entities, rule_entities, text)

        kept: list[Entity] = []
        filtered: dict[str, int] = {}
        for entity in merged:
            if self.deny_list.is_denied(entity.text, entity.type.value, context.language):
                filtered[entity.type.value] = filtered.get(entity.type.value, 0) + 1
                continue
            kept.append(entity)

        if cfg.enable_epic8_features and filtered:
            counts = dict(context.metadata.deny_list_filtered)
            for etype, n in filtered.items():
                counts[etype] = counts.get(etype, 0) + n
            context.metadata.deny_list_filtered = counts

        if cfg.debug:
            logger.debug(
                f"High recall: {len(ml_entities)} ML, {len(rule_entities)} rule, "
                f"{sum(filtered.values())} deny-listed"
            )
        return list(entities) + kept

    def _ml_entities(self, text: str, language: str, threshold: float) -> list[Entity]:
        if self.ml_detector is None:
            return []
        out = []
        for m in self.ml_detector.detect(text, language):
            if m.confidence < threshold:
                continue
            out.append(Entity(
                type=m.entity_type,
                text=text[m.start:m.end],
                start=m.start,
                end=m.end,
                confidence=m.confidence,
                source=EntitySource.ML,
            ))
        return out


def _from_regex(m: RegexMatch) -> Entity:
    return Entity(
        type=m.entity_type,
        text=m.text,
        start=m.start,
        end=m.end,
        confidence=m.confidence,
        source=EntitySource.RULE,
        metadata=EntityMetadata(pattern=m.rule),
    )


def merge_sources(ml_entities: list[Entity], rule_entities: list[Entity], text: str) -> list[Entity]:
    """Combine ML and rule candidates.

    An ML entity overlapping a rule entity becomes one ``BOTH`` entity
    spanning the union of the two, with the higher confidence and the type
    of the more confident side.  Unmatched entities pass through.
    """
    merged: list[Entity] = []
    used: set[int] = set()

    for ml in ml_entities:
        partner = next(
            (i for i, r in enumerate(rule_entities) if i not in used and r.overlaps(ml)),
            None,
        )
        if partner is None:
            merged.append(ml)
            continue
        used.add(partner)
        rule = rule_entities[partner]
        winner = rule if rule.confidence >= ml.confidence else ml
        start, end = min(ml.start, rule.start), max(ml.end, rule.end)
        merged.append(winner.model_copy(update={
            "start": start,
            "end": end,
            "text": text[start:end],
            "confidence": max(ml.confidence, rule.confidence),
            "source": EntitySource.BOTH,
        }))

    merged.extend(r for i, r in enumerate(rule_entities) if i not in used)
    merged.sort(key=lambda e: e.start)
    return merged
