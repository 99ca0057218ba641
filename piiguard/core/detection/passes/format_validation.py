"""Pass 2: checksum and format validation.

Entities that fail validation are demoted, never removed; the review
flagging at the end of the pipeline decides what the user sees.
"""

from __future__ import annotations

import logging
from typing import Optional

from piiguard.core.detection.passes.base import pipeline_config
from piiguard.core.detection.validators import VALIDATORS, ValidationResult, Validator, swiss_address_result
from piiguard.models.schemas import Entity, EntityType, PipelineContext

logger = logging.getLogger(__name__)

VALID_BOOST = 1.2


class FormatValidationPass:
    name = "format_validation"
    order = 20

    def __init__(self, validators: Optional[dict[EntityType, Validator]] = None, enabled: bool = True):
        self.validators = dict(VALIDATORS if validators is None else validators)
        self.enabled = enabled

    def add_validator(self, entity_type: EntityType, validator: Validator) -> None:
        self.validators[entity_type] = validator

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        out = [self.validate_entity(e, text) for e in entities]
        if pipeline_config(context).debug:
            invalid = sum(1 for e in out if e.metadata.validation_status == "invalid")
            logger.debug(f"Format validation: {invalid}/{len(out)} invalid")
        return out

    def validate_entity(self, entity: Entity, text: str = "") -> Entity:
        validator = self.validators.get(entity.type)
        if validator is None:
            return _with_status(entity, entity.confidence, "unchecked", f"No validator for type {entity.type.value}")

        result = self._run(validator, entity, text)
        if result.is_valid:
            confidence = min(1.0, entity.confidence * VALID_BOOST)
        else:
            confidence = min(entity.confidence, result.confidence)
        return _with_status(entity, confidence, "valid" if result.is_valid else "invalid", result.reason)

    @staticmethod
    def _run(validator: Validator, entity: Entity, text: str) -> ValidationResult:
        # Address validation looks at the surrounding text for year false positives
        if validator is swiss_address_result:
            return swiss_address_result(entity.text, text, entity.start)
        return validator(entity.text)


def _with_status(entity: Entity, confidence: float, status: str, reason: str) -> Entity:
    return entity.model_copy(update={
        "confidence": confidence,
        "metadata": entity.metadata.model_copy(update={
            "validation_status": status,
            "validation_reason": reason or None,
        }),
    })
