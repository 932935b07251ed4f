"""Health check endpoint with database connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatekeeper.core.config import get_settings
from gatekeeper.core.database import check_db_connected, get_db
from gatekeeper.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Report whether the service can reach its users/sessions store.
    Used by load balancers and monitoring.
    """
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=get_settings().APP_ENV,
        database="connected" if connected else "disconnected",
    )
