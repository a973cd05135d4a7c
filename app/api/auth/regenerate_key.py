# app/api/auth/regenerate_key.py

import logging
from fastapi import APIRouter, Depends, Request
from app.core.config import settings
from app.core.errors import ValidationFailed
from app.core.limiter import RateLimiter, enforce_rate_limit, get_client_ip
from app.core.responses import success_response
from app.deps.services import get_rate_limiter, get_users
from app.services.users import UserRepository
from app.utils.validators import read_json_body

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/regenerate-key")
async def regenerate_api_key(
    request: Request,
    users: UserRepository = Depends(get_users),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Replaces the user's API key after re-checking email and password.
    The old key stops working immediately.
    """
    enforce_rate_limit(
        rate_limiter,
        f"regenerate:{get_client_ip(request)}",
        settings.RATE_LIMIT_REGENERATE_KEY,
        "Too many API key regeneration attempts. Please try again later.",
    )

    data = await read_json_body(request)
    if not data.get("email") or not data.get("password"):
        raise ValidationFailed("Email and password are required", code="MISSING_FIELDS")

    user = await users.verify_password(data["email"], data["password"])
    new_key = await users.regenerate_api_key(user["id"])
    logger.info(f"API key regenerated for user {user['id']}")

    return success_response({
        "api_key": new_key,
        "message": "API key regenerated successfully. Please update your CLI configuration.",
    })

"""
--------------------------------------------------------------------
Purpose:
    Lets a user rotate their API key (lost or leaked key).

What It Does:
    - Rate limited per IP (RATE_LIMIT_REGENERATE_KEY, 3/hour by default).
    - Requires email + password, not the current key.
    - Returns the new key once; it is not retrievable later except via login.

Security:
    - Never logs the old or new key.

--------------------------------------------------------------------
"""
