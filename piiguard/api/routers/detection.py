"""Text detection endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from piiguard.core.detection.pipeline import create_default_pipeline
from piiguard.core.errors import ConfigError
from piiguard.models.schemas import DetectRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["detection"])


@router.post("/detect")
async def detect(req: DetectRequest) -> dict[str, Any]:
    """Run the detection pipeline over ``req.text``.

    Pass failures never surface as errors here; they are listed in
    ``metadata.pass_results``.
    """
    pipeline = create_default_pipeline()
    try:
        pipeline.configure(**req.config)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    # Detection is CPU-bound; keep the event loop free
    result = await asyncio.to_thread(pipeline.process, req.text, req.document_id, req.language)
    logger.info(f"Detected {len(result.entities)} entities in {len(req.text)} chars")
    return result.model_dump(mode="json")
