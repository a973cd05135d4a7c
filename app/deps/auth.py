# app/deps/auth.py

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header

from app.core.errors import AuthenticationFailed
from app.deps.services import get_users
from app.services.credentials import extract_api_key, is_valid_api_key_format
from app.services.users import UserRepository

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    users: UserRepository = Depends(get_users),
) -> Dict[str, Any]:
    """
    FastAPI dependency resolving the API key in the Authorization header to a user.
    - Accepts 'Bearer <key>', 'ApiKey <key>' or the bare key.
    - Raises AuthenticationFailed (401, 403 for deactivated accounts).
    """
    api_key = extract_api_key(authorization)
    if not api_key:
        raise AuthenticationFailed(
            'API key is required. Please provide it in the Authorization header as "Bearer <api_key>" or "ApiKey <api_key>"',
            code="MISSING_API_KEY",
        )

    if not is_valid_api_key_format(api_key):
        raise AuthenticationFailed("Invalid API key format", code="INVALID_API_KEY_FORMAT")

    user = await users.find_by_api_key(api_key)
    if not user:
        logger.warning("Rejected unknown or expired API key")
        raise AuthenticationFailed("Invalid or expired API key", code="INVALID_API_KEY")

    if not user.get("is_active", True):
        raise AuthenticationFailed("User account is deactivated", code="ACCOUNT_DEACTIVATED", status_code=403)

    await users.touch(user["id"])
    return user

"""
----------------------------------------------------------
Purpose:
    Reusable dependency for API-key authenticated endpoints.

Used By:
    - /api/auth/verify, /api/auth/profile
    - /api/deployments*, /api/subdomains
    via `user=Depends(get_current_user)`.

Notes:
    - Keys look like fapi_<base36 ms timestamp>_<64 hex>; anything else is
      rejected before the store is queried.
    - Every successful call refreshes the user's last_active_at.
----------------------------------------------------------
"""
