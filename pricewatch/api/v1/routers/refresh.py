# pricewatch/api/v1/routers/refresh.py
import logging
from fastapi import APIRouter, Depends

from pricewatch.api.deps import refresh_scheduler
from pricewatch.core.errors import RefreshNotRun, RefreshUnavailable
from pricewatch.domain.services.refresh_svc import RefreshReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/refresh", tags=["refresh"])


@router.post("/run", response_model=RefreshReport)
async def run_refresh(scheduler = Depends(refresh_scheduler)):
    """Run one refresh batch now (operators only; blocks until the batch is done)."""
    if scheduler is None:
        raise RefreshUnavailable("Refresh scheduler not configured")
    logger.info("Request: manual refresh run")
    return await scheduler.run_once()


@router.get("/last", response_model=RefreshReport)
async def last_refresh(scheduler = Depends(refresh_scheduler)):
    if scheduler is None or scheduler.last_report is None:
        raise RefreshNotRun("No refresh has run yet")
    return scheduler.last_report
