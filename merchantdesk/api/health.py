"""
Liveness and configuration status
"""
import os
from datetime import datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from merchantdesk import __version__
from merchantdesk.config import get_settings
from merchantdesk.models.base import session_scope
from merchantdesk.scheduler import get_scheduled_jobs
from merchantdesk.utils.logger import log

router = APIRouter()


def _database_ok() -> bool:
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        log.error(f"Health check database error: {e}")
        return False


@router.get("/health")
async def health_check():
    """Liveness plus a database round trip; 503 when the database is unreachable."""
    database_ok = _database_ok()
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "degraded",
            "database": "ok" if database_ok else "unavailable",
            "timestamp": datetime.utcnow().isoformat(),
            "version": __version__,
        },
    )


@router.get("/status")
async def get_status():
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "google_sign_in": bool(settings.google_client_id and settings.google_client_secret),
            "service_account_key": os.path.exists(settings.google_service_account_path),
            "llm_optimization": settings.enable_llm_optimization,
            "llm_provider": settings.llm_provider,
            "fallback_merchant_ids": bool(settings.merchant_ids.strip()),
        },
        "product_cache_ttl_seconds": settings.product_cache_ttl_seconds,
        "scheduled_jobs": get_scheduled_jobs() if settings.enable_scheduler else [],
        "timestamp": datetime.utcnow().isoformat(),
    }
