# app/api/auth/signup.py

import logging
from fastapi import APIRouter, Depends, Request
from app.core.config import settings
from app.core.errors import ValidationFailed
from app.core.limiter import RateLimiter, enforce_rate_limit, get_client_ip
from app.core.responses import success_response
from app.deps.services import get_rate_limiter, get_users
from app.services.users import UserRepository
from app.utils.validators import (
    is_valid_email,
    password_errors,
    read_json_body,
    username_errors,
)

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/signup")
async def signup(
    request: Request,
    users: UserRepository = Depends(get_users),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Creates a new account and returns its API key.
    - Rate limited per client IP before the body is even parsed.
    - Enforces email format, password strength and username policy.
    - Emails are unique (case-insensitive); duplicates get 409.

    Returns:
        201 envelope: { user: {id, email, username, api_key, created_at}, message }
    """
    client_ip = get_client_ip(request)
    enforce_rate_limit(
        rate_limiter,
        f"signup:{client_ip}",
        settings.RATE_LIMIT_SIGNUP,
        "Too many signup attempts. Please try again later.",
    )

    body = await read_json_body(request)
    email = body.get("email")
    password = body.get("password")
    username = body.get("username")

    # 1. Required fields
    if not email or not password:
        raise ValidationFailed("Email and password are required", code="MISSING_FIELDS")

    # 2. Email format
    if not is_valid_email(email):
        logger.warning(f"Signup with invalid email from {client_ip}")
        raise ValidationFailed("Invalid email format", code="INVALID_EMAIL")

    # 3. Password strength
    errors = password_errors(password)
    if errors:
        raise ValidationFailed(
            "Password does not meet security requirements",
            code="WEAK_PASSWORD",
            details={"errors": errors},
        )

    # 4. Username (optional)
    if username:
        errors = username_errors(username)
        if errors:
            raise ValidationFailed(
                "Username does not meet requirements",
                code="INVALID_USERNAME",
                details={"errors": errors},
            )

    # 5. Create user (raises EMAIL_EXISTS on duplicates)
    user = await users.create_user(email, password, username)
    logger.info(f"User registered successfully: {user['email']}")

    return success_response(
        {
            "user": {
                "id": user["id"],
                "email": user["email"],
                "username": user.get("username"),
                "api_key": user["api_key"],
                "created_at": user["created_at"],
            },
            "message": "Account created successfully",
        },
        status_code=201,
    )

"""
-------------------------------------------------------------------------------
✅ Purpose:
    Public signup for the platform (dashboard and CLI).

🔍 What It Does:
    - Counts the attempt against RATE_LIMIT_SIGNUP for the caller's IP.
    - Validates email, password and optional username.
    - Creates the user with a bcrypt password hash and a fresh API key.

📌 Used By:
    - CLI `signup` command and the web signup form.

🔒 Security:
    - The password hash is never returned or logged.
    - Email verification is not implemented (email_verified stays False).

-------------------------------------------------------------------------------
"""
