"""
Health API Router
Exposes the current health report and the last one handed to publishers.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from healthchecks_telegram.common_types import HealthStatus
from healthchecks_telegram.dependencies import get_health_check_service, get_scheduler
from healthchecks_telegram.services.health_checks import HealthCheckService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def get_health(health_checks: HealthCheckService = Depends(get_health_check_service)):
    """Run every check now. 503 when the overall status is Unhealthy."""
    report = await health_checks.check_health()
    status_code = 503 if report.status == HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


@router.get("/last")
async def get_last_report():
    """Return the report produced by the last scheduler tick."""
    scheduler = get_scheduler()
    if scheduler is None or scheduler.last_report is None:
        raise HTTPException(status_code=404, detail="No health report published yet")
    return scheduler.last_report.model_dump(mode="json")
