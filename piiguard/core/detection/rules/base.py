"""Shared plumbing for document-type rule modules."""

from __future__ import annotations

from typing import Iterable, Protocol

from piiguard.models.schemas import Entity


class DocumentRules(Protocol):
    """A rule module layered on top of the generic detector.

    ``apply`` returns the merged entity list: *entities* plus whatever the
    module found, with overlaps resolved by :func:`merge_by_confidence`.
    """

    name: str

    def apply(self, text: str, entities: list[Entity], language: str = "en") -> list[Entity]:
        ...


def merge_by_confidence(existing: Iterable[Entity], found: Iterable[Entity]) -> list[Entity]:
    """Add *found* to *existing*; on overlap the higher confidence wins.

    A new entity goes in only when its confidence is strictly higher than
    every existing entity it overlaps, and then all of those are removed.
    """
    result = list(existing)
    for entity in found:
        clashes = [e for e in result if e.overlaps(entity)]
        if all(entity.confidence > e.confidence for e in clashes):
            result = [e for e in result if not e.overlaps(entity)]
            result.append(entity)
    result.sort(key=lambda e: e.start)
    return result


def boosted(entity: Entity, boost: float, zone: str) -> Entity:
    """Copy of *entity* with confidence raised by *boost* (capped at 1)."""
    return entity.model_copy(update={
        "confidence": min(entity.confidence + boost, 1.0),
        "metadata": entity.metadata.model_copy(update={"position_boost": zone}),
    })
