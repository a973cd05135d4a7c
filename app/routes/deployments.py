# app/routes/deployments.py

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from app.core.responses import success_response
from app.deps.auth import get_current_user
from app.deps.services import get_deployments
from app.services.deployments import DeploymentManager
from app.utils.validators import read_json_body

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("")
async def create_deployment(
    request: Request,
    user=Depends(get_current_user),
    deployments: DeploymentManager = Depends(get_deployments),
):
    """
    Creates a deployment record and provisions its subdomain.

    Body:
        project_name, framework (required); public_ip, custom_subdomain, port,
        git_repository, git_branch, build_command, output_directory,
        environment_variables (optional).

    Returns:
        201 envelope: { deployment, subdomain, url }
    """
    payload = await read_json_body(request)
    logger.info(f"Create deployment requested by user_id={user['id']}")
    created = await deployments.create(user["id"], payload)
    return success_response(created, status_code=201)

@router.get("")
async def list_deployments(
    status: Optional[str] = None,
    framework: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    user=Depends(get_current_user),
    deployments: DeploymentManager = Depends(get_deployments),
):
    """The caller's deployments, newest first, with pagination info."""
    result = await deployments.list_deployments(
        user_id=user["id"], status=status, framework=framework, page=page, limit=limit
    )
    return success_response(result)

@router.get("/{deployment_id}")
async def get_deployment(
    deployment_id: str,
    user=Depends(get_current_user),
    deployments: DeploymentManager = Depends(get_deployments),
):
    """
    Stored deployment merged with live stats from its host.
    Answers 200 even when the host is down (health.status = "unreachable").
    """
    merged = await deployments.get_with_live_status(deployment_id, user_id=user["id"])
    return success_response(merged)

"""
--------------------------------------------------------------------
Purpose:
    Deployment endpoints for the CLI and dashboard.

What It Does:
    - POST /api/deployments: create + provision DNS (compensated on save failure).
    - GET  /api/deployments: filtered, paginated list for the authenticated user.
    - GET  /api/deployments/{id}: record + live stats from the host, with fallback.

Notes:
    - Ownership comes from the API key; a deployment owned by someone else is a 404.

--------------------------------------------------------------------
"""
