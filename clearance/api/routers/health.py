"""Health check endpoints for the clearance portal.

Provides:
- /health: Basic health check
- /health/live: Liveness probe (is the app running?)
- /health/ready: Readiness probe (database reachable, office registry loaded)
- /health/detailed: Readiness checks plus disk and memory
"""

from datetime import datetime
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clearance import __version__
from clearance.api.deps import get_db, get_registry
from clearance.core.offices import OfficeRegistry

router = APIRouter(tags=["health"])

# Thresholds
DISK_WARNING_PERCENT = 85
DISK_CRITICAL_PERCENT = 95
MEMORY_WARNING_PERCENT = 85
MEMORY_CRITICAL_PERCENT = 95


def _usage_status(percent_used: float, warning: float, critical: float) -> str:
    if percent_used >= critical:
        return "critical"
    if percent_used >= warning:
        return "warning"
    return "healthy"


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return {"status": "healthy", "dialect": db.get_bind().dialect.name}
    except SQLAlchemyError as e:
        return {"status": "unhealthy", "error": str(e)}


def check_office_registry(registry: OfficeRegistry) -> Dict[str, Any]:
    """Report the loaded clearance sequence. Misconfiguration fails at startup instead."""
    return {"status": "healthy", "offices": registry.total, "steps": len(registry.steps())}


def check_disk() -> Dict[str, Any]:
    """Check disk space."""
    try:
        disk = psutil.disk_usage("/")
    except OSError as e:
        return {"status": "unknown", "error": str(e)}

    return {
        "status": _usage_status(disk.percent, DISK_WARNING_PERCENT, DISK_CRITICAL_PERCENT),
        "total_gb": round(disk.total / (1024**3), 2),
        "free_gb": round(disk.free / (1024**3), 2),
        "percent_used": disk.percent,
    }


def check_memory() -> Dict[str, Any]:
    """Check memory usage."""
    memory = psutil.virtual_memory()
    return {
        "status": _usage_status(memory.percent, MEMORY_WARNING_PERCENT, MEMORY_CRITICAL_PERCENT),
        "total_gb": round(memory.total / (1024**3), 2),
        "available_gb": round(memory.available / (1024**3), 2),
        "percent_used": memory.percent,
    }


@router.get("/health")
async def health_check():
    """Returns 200 if the application is running."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/live")
async def liveness_probe():
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "alive", "timestamp": datetime.utcnow().isoformat()},
    )


@router.get("/health/ready")
def readiness_probe(
    db: Session = Depends(get_db),
    registry: OfficeRegistry = Depends(get_registry),
):
    """
    Readiness probe.

    Failure means traffic should not be routed to this instance.
    """
    checks = {
        "database": check_database(db),
        "office_registry": check_office_registry(registry),
    }
    failed = [name for name, check in checks.items() if check["status"] != "healthy"]
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if failed else status.HTTP_200_OK,
        content={
            "status": "not_ready" if failed else "ready",
            "checks": checks,
            "failed": failed,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    registry: OfficeRegistry = Depends(get_registry),
):
    checks = {
        "database": check_database(db),
        "office_registry": check_office_registry(registry),
        "disk": check_disk(),
        "memory": check_memory(),
    }
    statuses = [check.get("status", "unknown") for check in checks.values()]

    if "unhealthy" in statuses or "critical" in statuses:
        overall_status = "unhealthy"
        http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    elif "warning" in statuses:
        overall_status = "degraded"
        http_status = status.HTTP_200_OK
    else:
        overall_status = "healthy"
        http_status = status.HTTP_200_OK

    return JSONResponse(
        status_code=http_status,
        content={
            "status": overall_status,
            "version": __version__,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
