# pricewatch/api/v1/routers/health.py
import time
import subprocess
from fastapi import APIRouter, Depends
from pricewatch.api.deps import refresh_scheduler
from pricewatch.core.config import get_settings
from pricewatch.db import mongo
from pricewatch.db.redis import get_redis  # returns Redis instance or None

router = APIRouter()
START_TIME = time.time()


def _git_sha(short: bool = True) -> str:
    try:
        cmd = ["git", "rev-parse", "--short" if short else "HEAD"]
        return subprocess.check_output(cmd, stderr=subprocess.DEVNULL).decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


@router.get("/health")
async def health(scheduler = Depends(refresh_scheduler)):
    """
    Tolerant health check:
    - ping Mongo via Motor (async)
    - Redis 'skipped' when not configured
    - refresh scheduler state ('disabled' when not started)
    """
    settings = get_settings()
    checks: dict[str, object] = {
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
        "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
        "uptime_seconds": int(time.time() - START_TIME),
    }

    # --- Mongo ---
    try:
        db = mongo.get_db()
        await db.command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    # --- Redis (optional) ---
    try:
        r = get_redis()
        if r:
            await r.ping()
            checks["redis"] = "ok"
        else:
            checks["redis"] = "skipped"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    # --- Refresh scheduler ---
    if scheduler is None:
        checks["scheduler"] = "disabled"
    else:
        checks["scheduler"] = "ok" if scheduler.running else "stopped"
        if scheduler.last_report is not None:
            checks["last_refresh_at"] = scheduler.last_report.finished_at
            checks["last_refresh_failures"] = len(scheduler.last_report.failures)

    def _is_ok(v):
        return v in ("ok", "skipped", "disabled")

    health_keys = ("mongodb", "redis", "scheduler")
    status = "ok" if all(_is_ok(checks.get(k)) for k in health_keys) else "error"

    return {"status": status, "checks": checks, "timestamp": int(time.time())}
