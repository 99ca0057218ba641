"""piiguard: multi-pass PII detection for Swiss and EU documents."""

from __future__ import annotations

from typing import Optional

__version__ = "0.1.0"

_default_pipeline = None


def process(text: str, document_id: Optional[str] = None, language: Optional[str] = None):
    """Detect PII in *text* with the default pipeline; returns a DetectionResult."""
    global _default_pipeline
    if _default_pipeline is None:
        from piiguard.core.detection.pipeline import create_default_pipeline
        _default_pipeline = create_default_pipeline()
    return _default_pipeline.process(text, document_id, language)


def __getattr__(name: str):
    if name == "DetectionPipeline":
        from piiguard.core.detection.pipeline import DetectionPipeline
        return DetectionPipeline
    if name == "Entity":
        from piiguard.models.schemas import Entity
        return Entity
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["DetectionPipeline", "Entity", "__version__", "process"]
