"""Pass 0: classify the document and apply its rule module.

Runs before everything else (order 5).  Pipelines skip it unless the
``enabled_passes.document_type`` config switch is turned on.  The
classification is written to the pipeline context so later passes and
the final result can read it.
"""

from __future__ import annotations

import logging
from typing import Optional

from piiguard.core.detection.detection_config import FOOTER_ZONE, HEADER_ZONE, ClassifierConfig
from piiguard.core.detection.document_classifier import DocumentClassifier
from piiguard.core.detection.passes.base import pipeline_config
from piiguard.core.detection.rules import rules_for
from piiguard.models.schemas import DocumentClassification, DocumentType, Entity, EntityType, PipelineContext

logger = logging.getLogger(__name__)

MIN_CLASSIFICATION_CONFIDENCE = 0.4

# (document type, entity type, zone) -> confidence adjustment
ZONE_ADJUSTMENTS: dict[tuple[DocumentType, EntityType, str], float] = {
    (DocumentType.INVOICE, EntityType.INVOICE_NUMBER, "header"): 0.1,
    (DocumentType.INVOICE, EntityType.AMOUNT, "body"): 0.05,
    (DocumentType.INVOICE, EntityType.IBAN, "footer"): 0.1,
    (DocumentType.INVOICE, EntityType.PAYMENT_REF, "footer"): 0.1,
    (DocumentType.LETTER, EntityType.SENDER, "header"): 0.15,
    (DocumentType.LETTER, EntityType.SIGNATURE, "footer"): 0.15,
    (DocumentType.LETTER, EntityType.SALUTATION_NAME, "header"): 0.1,
    (DocumentType.LETTER, EntityType.SALUTATION_NAME, "body"): 0.1,
    (DocumentType.CONTRACT, EntityType.ORG, "header"): 0.1,
    (DocumentType.CONTRACT, EntityType.SIGNATURE, "footer"): 0.15,
}


def position_zone(start: int, length: int) -> str:
    ratio = start / length if length else 0.0
    if ratio < HEADER_ZONE:
        return "header"
    if ratio > FOOTER_ZONE:
        return "footer"
    return "body"


class DocumentTypePass:
    name = "document_type"
    order = 5

    def __init__(
        self,
        classifier_config: Optional[ClassifierConfig] = None,
        min_confidence: float = MIN_CLASSIFICATION_CONFIDENCE,
        apply_type_rules: bool = True,
        enabled: bool = True,
    ):
        self.classifier = DocumentClassifier(classifier_config)
        self.min_confidence = min_confidence
        self.apply_type_rules = apply_type_rules
        self.enabled = enabled

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        classification = self.classifier.classify(text)
        context.metadata.document_classification = classification
        context.metadata.document_type = classification.type
        context.metadata.document_language = classification.language

        if pipeline_config(context).debug:
            logger.debug(
                f"Document type {classification.type.value} "
                f"(confidence={classification.confidence:.2f}, {len(classification.features)} features)"
            )

        result = entities
        if self.apply_type_rules and classification.confidence >= self.min_confidence:
            rules = rules_for(classification.type)
            if rules is not None:
                result = rules.apply(text, result, classification.language)

        return [self._enrich(e, classification, len(text)) for e in result]

    @staticmethod
    def _enrich(entity: Entity, classification: DocumentClassification, length: int) -> Entity:
        zone = position_zone(entity.start, length)
        adjustment = ZONE_ADJUSTMENTS.get((classification.type, entity.type, zone), 0.0)
        return entity.model_copy(update={
            "confidence": min(max(entity.confidence + adjustment, 0.0), 1.0),
            "metadata": entity.metadata.model_copy(update={
                "position_zone": zone,
                "document_type": entity.metadata.document_type or classification.type,
            }),
        })
