"""Health check endpoints."""
from fastapi import APIRouter, Depends

from memberhub.api.deps import get_services
from memberhub.core.container import AppServices
from memberhub.db.session import check_db_connection

router = APIRouter()


@router.get("/health")
def health_check(services: AppServices = Depends(get_services)) -> dict:
    """
    Health check endpoint.
    Returns status and database connectivity.
    """
    database = "ok" if check_db_connection(services.engine) else "unavailable"
    return {"status": "ok", "database": database}
