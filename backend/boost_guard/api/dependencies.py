"""
FastAPI dependencies
"""
from fastapi import HTTPException, Request

from boost_guard.services.status_service import StatusService


def get_status_service(request: Request) -> StatusService:
    """Status service built in the application lifespan"""
    service = getattr(request.app.state, "status_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="status service is not ready")
    return service
