# app/routes/auth/login.py

import logging
from fastapi import APIRouter, Depends, Request
from app.core.config import settings
from app.core.errors import ValidationFailed
from app.core.limiter import RateLimiter, enforce_rate_limit, get_client_ip
from app.core.responses import success_response
from app.deps.services import get_rate_limiter, get_users
from app.services.users import UserRepository
from app.utils.timestamps import utcnow_iso
from app.utils.validators import is_valid_email, read_json_body

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/login")
async def login_user(
    request: Request,
    users: UserRepository = Depends(get_users),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Authenticates a user with email/password and returns their API key.
    """
    client_ip = get_client_ip(request)
    enforce_rate_limit(
        rate_limiter,
        f"login:{client_ip}",
        settings.RATE_LIMIT_LOGIN,
        "Too many login attempts. Please try again later.",
    )

    data = await read_json_body(request)
    email = data.get("email")
    password = data.get("password")

    # Validate inputs
    if not email or not password:
        logger.warning(f"Missing email or password in login request from {client_ip}")
        raise ValidationFailed("Email and password are required", code="MISSING_FIELDS")

    if not is_valid_email(email):
        raise ValidationFailed("Invalid email format", code="INVALID_EMAIL")

    logger.info(f"Login attempt for email: {email}")
    user = await users.verify_password(email, password)
    await users.touch(user["id"])

    logger.info(f"Login successful for email: {email}")
    return success_response({
        "user": {
            "id": user["id"],
            "email": user["email"],
            "username": user.get("username"),
            "api_key": user["api_key"],
            "last_active_at": utcnow_iso(),
        },
        "message": "Login successful",
    })

"""
--------------------------------------------------------------------
Purpose:
    Exchanges email + password for the account's API key (CLI login).

What It Does:
    - Rate limits per client IP (RATE_LIMIT_LOGIN).
    - Verifies the bcrypt hash; unknown email and wrong password give the same 401.
    - Deactivated accounts get 403 ACCOUNT_DEACTIVATED.
    - Refreshes last_active_at.

Used By:
    - `/api/auth/login` from the CLI and dashboard.

--------------------------------------------------------------------
"""
