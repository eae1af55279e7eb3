"""
Operational endpoints: liveness, component health and Prometheus metrics
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from boost_guard import __version__
from boost_guard.core.config import get_settings
from boost_guard.core.database import get_db
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.metrics import get_metrics, get_metrics_content_type

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ledger_health(db: Session) -> Dict[str, Any]:
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Claim ledger database unreachable", exc_info=True)
        return {"status": "unhealthy", "error": type(e).__name__, "message": str(e)}
    return {"status": "healthy", "dialect": db.get_bind().dialect.name}


def _service_health(service) -> Dict[str, Dict[str, Any]]:
    guards = service.issuer.key_custody.guards()
    return {
        "strategies": {"status": "healthy", "registered": service.evaluator.registry.names()},
        # No guard keys means every issuance fails with signing_unavailable
        "key_custody": {"status": "healthy" if guards else "degraded", "guards": len(guards)},
        "registry": {"status": "healthy", "backend": type(service.registry).__name__},
    }


@router.get("/health")
async def health_check():
    """Liveness check"""
    return {"status": "healthy", "timestamp": _now(), "service": get_settings().app_name}


@router.get("/health/detailed")
async def detailed_health_check(request: Request, db: Session = Depends(get_db)):
    """Claim ledger database, strategies, key custody and boost registry"""
    settings = get_settings()
    components = {"database": _ledger_health(db)}

    service = getattr(request.app.state, "status_service", None)
    if service is None:
        components["status_service"] = {"status": "unhealthy", "message": "not initialized"}
    else:
        components.update(_service_health(service))

    healthy = all(c["status"] != "unhealthy" for c in components.values())
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": _now(),
        "service": settings.app_name,
        "version": __version__,
        "environment": settings.app_env,
        "components": components,
    }


@router.get("/metrics", tags=["metrics"])
async def metrics():
    """Prometheus text exposition"""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())
