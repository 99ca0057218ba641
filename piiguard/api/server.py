"""FastAPI application for the piiguard detection service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from piiguard import __version__
from piiguard.api.routers import detection

logger = logging.getLogger(__name__)

app = FastAPI(
    title="piiguard",
    version=__version__,
    description="Multi-pass PII detection for Swiss and EU documents",
)

# Local UI clients call from their own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(detection.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
