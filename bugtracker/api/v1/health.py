"""Health check endpoint with database connectivity check."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bugtracker.api.responses import envelope
from bugtracker.core.config import settings
from bugtracker.core.database import check_db_connected, get_db
from bugtracker.schemas.health import HealthResponse

router = APIRouter()


@router.get("")
def get_health(db: Session = Depends(get_db)) -> dict[str, Any]:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"
    health = HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
    )
    return envelope("Service healthy", health.model_dump())
