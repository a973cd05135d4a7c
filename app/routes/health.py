# app/routes/health.py

from fastapi import APIRouter, Depends, Response
from app.core.config import settings
from app.core.limiter import limiter
from app.core.responses import success_response
from app.deps.services import get_cloudflare, get_store
from app.services.cloudflare import CloudflareClient
from app.services.health import check_health
from app.services.supabase import DocumentStore

router = APIRouter()

@router.get("/health")
async def health_check(
    store: DocumentStore = Depends(get_store),
    cloudflare: CloudflareClient = Depends(get_cloudflare),
):
    """
    Checks the document store and the DNS provider.

    Returns:
        200 when healthy, 503 otherwise. `success` stays true while degraded
        and turns false once any service is down.
    """
    report = await check_health(store, cloudflare, settings.API_VERSION)
    status_code = 200 if report["status"] == "healthy" else 503
    return success_response(report, status_code=status_code, success=report["status"] != "unhealthy")

@router.head("/health")
@limiter.exempt
def health_head():
    """Liveness only: answers 200 with no body and no dependency checks."""
    return Response(status_code=200)

"""
------------------------------------------------------------
✅ Purpose:
Readiness endpoint for load balancers, uptime monitors and the dashboard status page.

🔍 What It Does:
- GET: checks the database and Cloudflare, reports each with response time.
- HEAD: cheap liveness check, no external calls.

🔐 Security:
- Public and unauthenticated. HEAD is exempt from the global rate limit.
- Reports up/down only; never leaks credentials or error bodies.

------------------------------------------------------------
"""
