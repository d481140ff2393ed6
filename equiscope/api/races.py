"""API endpoints for race analytics and vector store management."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from equiscope.config import settings
from equiscope.errors import InvalidRaceIdError, RaceNotFoundError, UpstreamUnavailableError
from equiscope.racing.guid import RaceGuid

logger = logging.getLogger(__name__)

router = APIRouter()


class CleanupRequest(BaseModel):
    """Options for a manual vector store cleanup."""

    retention_days: Optional[int] = None


def _validate_guid(guid: str) -> None:
    try:
        RaceGuid.parse(guid)
    except InvalidRaceIdError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/races/{guid}/charts")
async def get_race_charts(guid: str, request: Request):
    """Full chart bundle for one race."""
    _validate_guid(guid)
    analytics = request.app.state.analytics
    try:
        return await analytics.compute_charts(guid)
    except RaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/races/{guid}/vectors")
async def ingest_race_vectors(guid: str, request: Request):
    """(Re)build the vector store for one race."""
    _validate_guid(guid)
    builder = request.app.state.document_builder
    try:
        count = await builder.ingest_race(guid)
    except RaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamUnavailableError as e:
        logger.error(f"Ingestion of {guid} failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"race_guid": guid, "documents": count}


@router.post("/vectors/cleanup")
async def cleanup_vectors(request: Request, body: Optional[CleanupRequest] = None):
    """Delete vector stores older than the retention window."""
    retention = settings.retention_days
    if body and body.retention_days is not None:
        if body.retention_days < 0:
            raise HTTPException(status_code=400, detail="retention_days must be >= 0")
        retention = body.retention_days
    registry = request.app.state.vector_registry
    removed = await registry.cleanup(retention)
    return {"removed": removed, "retention_days": retention}
