"""Multi-pass PII detection pipeline.

``DetectionPipeline.process`` runs:

  1. text normalization (optional), keeping an index map back to the
     original text;
  2. language detection when no language is given;
  3. every enabled pass in ascending ``order``; each pass gets a private
     copy of the entity list and returns its replacement.  A pass that
     raises is logged and recorded, and the pipeline carries on with the
     list as it was before that pass;
  4. offset repair: spans are mapped back to the original text and
     ``text`` is re-sliced from it;
  5. greedy overlap deduplication;
  6. review flagging against ``auto_anonymize_threshold``;
  7. result metadata (per-pass deltas and timings, counts by type).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from piiguard.core.config import PipelineConfig, config as app_config
from piiguard.core.detection.language import detect_language
from piiguard.core.detection.passes import (
    AddressRelationshipPass,
    ContextScoringPass,
    DetectionPass,
    DocumentTypePass,
    FormatValidationPass,
    HighRecallPass,
    MLDetector,
)
from piiguard.core.detection.text_normalizer import TextNormalizer, map_span
from piiguard.core.errors import PassError
from piiguard.models.schemas import (
    DetectionMetadata,
    DetectionResult,
    DocumentType,
    Entity,
    Epic8Metadata,
    PassResult,
    PipelineContext,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Post-processing
# ═══════════════════════════════════════════════════════════════════════════

def map_entities_to_original(
    entities: list[Entity],
    index_map: list[int],
    original_text: str,
) -> list[Entity]:
    """Move spans from normalized to original coordinates and re-slice the text.

    Entities whose span collapses to nothing are dropped with a warning.
    """
    out: list[Entity] = []
    for entity in entities:
        start, end = map_span(entity.start, entity.end, index_map)
        end = min(end, len(original_text))
        if start >= end:
            logger.warning(
                f"Dropping {entity.type.value} entity: span [{entity.start}, {entity.end}) "
                f"did not map back to the original text"
            )
            continue
        out.append(entity.model_copy(update={
            "start": start,
            "end": end,
            "text": original_text[start:end],
        }))
    return out


def deduplicate(entities: list[Entity]) -> list[Entity]:
    """Greedy interval deduplication.

    Entities are visited by start, longest first at equal starts.  One
    overlapping the last accepted entity replaces it only with strictly
    higher confidence; otherwise it is dropped.  The result is overlap-free,
    so running it again changes nothing.
    """
    ordered = sorted(entities, key=lambda e: (e.start, -(e.end - e.start)))
    accepted: list[Entity] = []
    for entity in ordered:
        if accepted and entity.start < accepted[-1].end:
            if entity.confidence > accepted[-1].confidence:
                accepted[-1] = entity
            continue
        accepted.append(entity)
    return accepted


def flag_for_review(entities: list[Entity], threshold: float) -> list[Entity]:
    return [
        e.model_copy(update={
            "flagged_for_review": e.confidence < threshold,
            "selected": e.confidence >= threshold,
        })
        for e in entities
    ]


def _delta(before: list[Entity], after: list[Entity]) -> tuple[int, int, int]:
    old = {e.id: e for e in before}
    new = {e.id: e for e in after}
    added = sum(1 for k in new if k not in old)
    removed = sum(1 for k in old if k not in new)
    modified = sum(1 for k, e in new.items() if k in old and old[k] != e)
    return added, modified, removed


# ═══════════════════════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════════════════════

class DetectionPipeline:
    """Ordered registry of passes plus the post-processing around them."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        passes: Optional[list[DetectionPass]] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.config = config or PipelineConfig()
        self.normalizer = normalizer or TextNormalizer()
        self._passes: list[DetectionPass] = []
        for p in passes or []:
            self.add_pass(p)

    # -- pass management ---------------------------------------------------

    def add_pass(self, detection_pass: DetectionPass) -> None:
        # sorted() is stable, so equal orders keep registration order
        self._passes.append(detection_pass)
        self._passes = sorted(self._passes, key=lambda p: p.order)

    def remove_pass(self, name: str) -> bool:
        before = len(self._passes)
        self._passes = [p for p in self._passes if p.name != name]
        return len(self._passes) != before

    def get_passes(self) -> list[DetectionPass]:
        return list(self._passes)

    def configure(self, **overrides: Any) -> "DetectionPipeline":
        """Apply config overrides; raises ConfigError on invalid values."""
        self.config = self.config.merged(overrides)
        return self

    def _is_enabled(self, detection_pass: DetectionPass) -> bool:
        return detection_pass.enabled and self.config.enabled_passes.is_enabled(detection_pass.name)

    # -- processing ----------------------------------------------------------

    def process(
        self,
        text: str,
        document_id: Optional[str] = None,
        language: Optional[str] = None,
    ) -> DetectionResult:
        context = PipelineContext(original_text=text, config=self.config)
        if document_id:
            context.document_id = document_id

        working = text
        if self.config.enable_normalization and text:
            context.normalization = self.normalizer.normalize(text)
            working = context.normalization.normalized_text

        context.language = language or detect_language(working, default=app_config.default_language)

        entities: list[Entity] = []
        for detection_pass in self._passes:
            if not self._is_enabled(detection_pass):
                continue
            entities = self._run_pass(detection_pass, working, entities, context)

        if context.normalization is not None:
            entities = map_entities_to_original(entities, context.normalization.index_map, text)

        entities = deduplicate(entities)
        entities = flag_for_review(entities, self.config.auto_anonymize_threshold)
        return self._build_result(entities, context)

    def _run_pass(
        self,
        detection_pass: DetectionPass,
        text: str,
        entities: list[Entity],
        context: PipelineContext,
    ) -> list[Entity]:
        snapshot = [e.model_copy(deep=True) for e in entities]
        started = time.perf_counter()
        try:
            result = list(detection_pass.execute(text, snapshot, context))
        except Exception as exc:
            duration = (time.perf_counter() - started) * 1000
            error = PassError(detection_pass.name, exc)
            logger.exception(str(error))
            context.pass_results[detection_pass.name] = PassResult(
                pass_name=detection_pass.name,
                duration_ms=duration,
                error=str(error),
            )
            return entities

        duration = (time.perf_counter() - started) * 1000
        added, modified, removed = _delta(entities, result)
        context.pass_results[detection_pass.name] = PassResult(
            pass_name=detection_pass.name,
            entities_added=added,
            entities_modified=modified,
            entities_removed=removed,
            duration_ms=duration,
        )
        if self.config.debug:
            logger.debug(
                f"Pass {detection_pass.name}: +{added} ~{modified} -{removed} "
                f"({duration:.1f}ms, {len(result)} entities)"
            )
        return result

    def _build_result(self, entities: list[Entity], context: PipelineContext) -> DetectionResult:
        counts: dict[str, int] = {}
        for e in entities:
            counts[e.type.value] = counts.get(e.type.value, 0) + 1

        results = list(context.pass_results.values())
        metadata = DetectionMetadata(
            total_duration_ms=(time.perf_counter() - context.start_time) * 1000,
            pass_results=results,
            entity_counts=counts,
            flagged_count=sum(1 for e in entities if e.flagged_for_review),
            pass_timings={r.pass_name: r.duration_ms for r in results},
        )
        if self.config.enable_epic8_features:
            metadata.epic8 = Epic8Metadata(
                deny_list_filtered=dict(context.metadata.deny_list_filtered),
                context_boosted=context.metadata.context_boosted,
            )

        logger.info(
            f"Document {context.document_id}: {len(entities)} entities, "
            f"{metadata.flagged_count} flagged, {metadata.total_duration_ms:.1f}ms"
        )
        return DetectionResult(
            entities=entities,
            document_type=context.metadata.document_type or DocumentType.UNKNOWN,
            language=context.language,
            metadata=metadata,
        )


def create_default_pipeline(
    config: Optional[PipelineConfig] = None,
    ml_detector: Optional[MLDetector] = None,
) -> DetectionPipeline:
    """Pipeline with the five built-in passes registered."""
    return DetectionPipeline(
        config=config,
        passes=[
            DocumentTypePass(),
            HighRecallPass(ml_detector=ml_detector),
            FormatValidationPass(),
            ContextScoringPass(),
            AddressRelationshipPass(),
        ],
    )
