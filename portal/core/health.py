from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import text

from portal.core.settings import settings
from portal.db.session import engine
from portal.services.wizard_store import get_redis_client

APP_VERSION = "0.1.0"


async def _check_db() -> dict[str, str]:
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    if settings.wizard_session_backend != "redis":
        return {"status": "ok", "backend": settings.wizard_session_backend}
    try:
        redis = get_redis_client()
        await redis.ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


async def _check_storage() -> dict[str, str]:
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket:
            return {"status": "error", "provider": "gcs", "error": "GCS bucket is not configured"}
        return {"status": "ok", "provider": "gcs"}
    base = Path(settings.local_upload_dir)
    if base.exists() and not os.access(base, os.W_OK):
        return {"status": "error", "provider": "local", "error": "Upload directory is not writable"}
    return {"status": "ok", "provider": "local"}


async def _check_api() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if ready else "degraded", ready)


async def _run_checks() -> dict[str, dict[str, str]]:
    return {
        "api": await _check_api(),
        "database": await _check_db(),
        "redis": await _check_redis(),
        "storage": await _check_storage(),
    }


async def live_payload() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def ready_payload() -> dict[str, Any]:
    checks = await _run_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["wizard_session_backend"] = settings.wizard_session_backend
    payload["storage_provider"] = settings.storage_provider
    return payload
