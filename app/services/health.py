# app/services/health.py

import logging
import time
from typing import Any, Dict

from app.services.cloudflare import CloudflareClient
from app.services.supabase import DocumentStore
from app.utils.timestamps import utcnow_iso

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def _service(up: bool, started: float, ok_message: str, down_message: str) -> Dict[str, Any]:
    return {
        "status": "up" if up else "down",
        "response_time": int((time.monotonic() - started) * 1000),
        "last_check": utcnow_iso(),
        "message": ok_message if up else down_message,
    }


def overall_status(services: Dict[str, Dict[str, Any]]) -> str:
    """healthy when all are up, unhealthy when any is down, degraded otherwise (e.g. slow)."""
    statuses = [service["status"] for service in services.values()]
    if all(status == "up" for status in statuses):
        return "healthy"
    if any(status == "down" for status in statuses):
        return "unhealthy"
    return "degraded"


async def check_health(store: DocumentStore, cloudflare: CloudflareClient, version: str) -> Dict[str, Any]:
    check_start = time.monotonic()

    db_start = time.monotonic()
    db_up = await store.ping()
    database = _service(db_up, db_start, "Connected", "Connection failed")

    cf_start = time.monotonic()
    cf_up = await cloudflare.health_check()
    dns = _service(cf_up, cf_start, "API accessible", "Health check returned false")

    services = {
        "database": database,
        "cloudflare": dns,
        "api": _service(True, check_start, "API responding", ""),
    }
    status = overall_status(services)
    if status != "healthy":
        logger.warning(f"Health check {status}: " + ", ".join(
            f"{name}={service['status']}" for name, service in services.items()
        ))

    return {
        "status": status,
        "timestamp": utcnow_iso(),
        "services": services,
        "uptime": int(time.monotonic() - STARTED_AT),
        "version": version,
    }
