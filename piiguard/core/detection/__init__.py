"""Detection package."""


def __getattr__(name: str):
    """Lazy re-export so ``from piiguard.core.detection import DetectionPipeline``
    works without importing every pass up front."""
    if name in ("DetectionPipeline", "create_default_pipeline"):
        from piiguard.core.detection import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
