"""Built-in detection passes, in execution order."""

from piiguard.core.detection.passes.address_relationship import AddressRelationshipPass
from piiguard.core.detection.passes.base import DetectionPass, MLDetector, MLMatch
from piiguard.core.detection.passes.context_scoring import ContextScoringPass
from piiguard.core.detection.passes.document_type import DocumentTypePass
from piiguard.core.detection.passes.format_validation import FormatValidationPass
from piiguard.core.detection.passes.high_recall import HighRecallPass

__all__ = [
    "AddressRelationshipPass",
    "ContextScoringPass",
    "DetectionPass",
    "DocumentTypePass",
    "FormatValidationPass",
    "HighRecallPass",
    "MLDetector",
    "MLMatch",
]
