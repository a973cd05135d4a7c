# app/utils/validators.py

import ipaddress
import re
import logging
from typing import Any, Dict, List

from fastapi import Request

from app.core.errors import ValidationFailed

logger = logging.getLogger(__name__)

EMAIL_REGEX = r"[^\s@]+@[^\s@]+\.[^\s@]+"
USERNAME_REGEX = r"[A-Za-z0-9_-]+"
SPECIAL_CHARS_REGEX = r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]"

def is_valid_email(email: str) -> bool:
    """
    Basic email format check.
    - Only validates pattern: local@domain.tld
    - Does NOT check deliverability or advanced syntax
    """
    valid = bool(re.fullmatch(EMAIL_REGEX, email or ""))
    if not valid:
        logger.debug(f"Email validation failed: '{email}'")
    return valid

def normalize_email(email: str) -> str:
    """Lowercases and strips input for consistent email handling."""
    return (email or "").lower().strip()

def password_errors(password: str) -> List[str]:
    """
    Password strength policy. Returns every rule the password breaks (empty list = strong):
    - At least 8 characters
    - One lowercase, one uppercase, one digit, one special character
    """
    password = password or ""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(SPECIAL_CHARS_REGEX, password):
        errors.append("Password must contain at least one special character")
    if errors:
        logger.debug("Password failed strength validation.")
    return errors

def username_errors(username: str) -> List[str]:
    """
    Username policy: 3-20 characters, letters/numbers/hyphens/underscores,
    not starting or ending with a hyphen or underscore.
    """
    username = username or ""
    errors = []
    if len(username) < 3:
        errors.append("Username must be at least 3 characters long")
    if len(username) > 20:
        errors.append("Username must be no more than 20 characters long")
    if not re.fullmatch(USERNAME_REGEX, username):
        errors.append("Username can only contain letters, numbers, hyphens, and underscores")
    if username[:1] in ("_", "-") or username[-1:] in ("_", "-"):
        errors.append("Username cannot start or end with hyphens or underscores")
    if errors:
        logger.debug(f"Username validation failed: '{username}'")
    return errors

def is_valid_ipv4(value: str) -> bool:
    """Dotted-quad IPv4 literal with every octet in 0-255."""
    try:
        ipaddress.IPv4Address(value or "")
        return True
    except ValueError:
        return False

def is_valid_subdomain_label(label: str) -> bool:
    """Single DNS label: lowercase letters, digits and inner hyphens, 1-63 characters."""
    return bool(re.fullmatch(r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?", label or ""))

async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parses a JSON object body, raising INVALID_JSON (400) for anything else."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailed("Invalid JSON in request body", code="INVALID_JSON")
    if not isinstance(body, dict):
        raise ValidationFailed("Invalid JSON in request body", code="INVALID_JSON")
    return body

"""
----------------------------------------------------------
Purpose:
    Validation utilities for signup, login and deployment/subdomain payloads.

What It Does:
    - Checks email shape, password strength and username format.
    - Reports every broken password/username rule so the client can show them all.
    - Validates IPv4 targets and custom subdomain labels before any DNS call.

Used By:
    - app/api/auth/signup.py, app/routes/auth/login.py
    - app/services/deployments.py, app/services/subdomains.py

----------------------------------------------------------
"""
