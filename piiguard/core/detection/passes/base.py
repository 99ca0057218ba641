"""Pass protocol and pluggable ML detector contract."""

from __future__ import annotations

from typing import NamedTuple, Protocol, runtime_checkable

from piiguard.core.config import PipelineConfig
from piiguard.models.schemas import Entity, EntityType, PipelineContext


@runtime_checkable
class DetectionPass(Protocol):
    """One stage of the pipeline.

    ``execute`` receives the entities produced so far and returns the
    replacement list; it may add, transform or drop entities.  Passes are
    run in ascending ``order``; ``enabled`` is checked before each call.
    """

    name: str
    order: int
    enabled: bool

    def execute(self, text: str, entities: list[Entity], context: PipelineContext) -> list[Entity]:
        ...


class MLMatch(NamedTuple):
    start: int
    end: int
    text: str
    entity_type: EntityType
    confidence: float


class MLDetector(Protocol):
    """A model-backed detector (NER, GLiNER, ...) plugged into the high-recall pass."""

    def detect(self, text: str, language: str) -> list[MLMatch]:
        ...


def pipeline_config(context: PipelineContext) -> PipelineConfig:
    """The config the pipeline attached to *context* (defaults when run standalone)."""
    return context.config if isinstance(context.config, PipelineConfig) else PipelineConfig()
