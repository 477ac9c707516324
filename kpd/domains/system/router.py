"""
System endpoints: liveness and classification statistics.
"""

from datetime import datetime, timezone
from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...core.database import DatabaseManager
from ...core.dependencies import get_database_manager, get_product_class_service
from ...shared.responses import HTTPStatusCodes
from ..product_classes.schemas import ProductClassStats
from ..product_classes.service import ProductClassService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["System"])


class HealthPayload(BaseModel):
    status: str
    database: Dict[str, Any]
    timestamp: datetime


@router.get("/health", response_model=HealthPayload, summary="Service health")
async def health(db: DatabaseManager = Depends(get_database_manager)):
    """Report "ok" when the database answers, "degraded" with 503 otherwise."""
    healthy = await db.is_healthy()
    payload = HealthPayload(
        status="ok" if healthy else "degraded",
        database=db.get_connection_stats(),
        timestamp=datetime.now(timezone.utc),
    )
    if not healthy:
        logger.warning("Health check reports a degraded database")
        return JSONResponse(
            status_code=HTTPStatusCodes.SERVICE_UNAVAILABLE,
            content=payload.model_dump(mode="json"),
        )
    return payload


@router.get("/stats", response_model=ProductClassStats, summary="Entry counts per level")
async def stats(service: ProductClassService = Depends(get_product_class_service)) -> ProductClassStats:
    return await service.stats()
