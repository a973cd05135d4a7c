# app/routes/subdomains.py

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from app.core.errors import ValidationFailed
from app.core.responses import success_response
from app.deps.auth import get_current_user
from app.deps.services import get_subdomains
from app.services.subdomains import SubdomainRegistry
from app.utils.validators import read_json_body

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("")
async def create_subdomain(
    request: Request,
    user=Depends(get_current_user),
    subdomains: SubdomainRegistry = Depends(get_subdomains),
):
    """Provisions a generated subdomain for one of the caller's deployments (404 otherwise)."""
    body = await read_json_body(request)
    deployment_id = body.get("deployment_id")
    if not deployment_id:
        raise ValidationFailed("deployment_id is required", code="MISSING_FIELDS")

    result = await subdomains.create(user["id"], deployment_id, body.get("public_ip"))
    return success_response(
        {
            "subdomain": result.subdomain,
            "url": result.url,
            "dns_record_id": result.dns_record_id,
            "status": result.status,
        },
        status_code=201,
    )

@router.get("")
async def list_subdomains(
    deployment_id: Optional[str] = None,
    user=Depends(get_current_user),
    subdomains: SubdomainRegistry = Depends(get_subdomains),
):
    """Subdomains of the caller, optionally narrowed to one deployment."""
    records = await subdomains.list_subdomains(user_id=user["id"], deployment_id=deployment_id)
    return success_response({"subdomains": records})

@router.put("")
async def update_subdomain(
    request: Request,
    user=Depends(get_current_user),
    subdomains: SubdomainRegistry = Depends(get_subdomains),
):
    """
    Points an existing subdomain at a new public IP.
    Body: public_ip plus deployment_id or subdomain.
    """
    body = await read_json_body(request)
    logger.info(f"Retarget requested by user_id={user['id']}")
    result = await subdomains.retarget(
        body.get("public_ip"),
        deployment_id=body.get("deployment_id"),
        subdomain=body.get("subdomain"),
        user_id=user["id"],
    )
    return success_response(result)
