# app/api/auth/profile.py

import logging
from fastapi import APIRouter, Depends
from app.core.responses import success_response
from app.deps.auth import get_current_user
from app.deps.services import get_users
from app.services.users import UserRepository, public_user
from app.utils.timestamps import utcnow_iso

router = APIRouter()
logger = logging.getLogger(__name__)

@router.api_route("/verify", methods=["GET", "POST"])
async def verify_api_key(user=Depends(get_current_user)):
    """Confirms the API key in the Authorization header is valid."""
    return success_response({
        "message": "API key is valid and authentication successful",
        "user": {
            "id": user["id"],
            "email": user["email"],
            "username": user.get("username"),
        },
        "timestamp": utcnow_iso(),
    })

@router.get("/profile")
async def profile(
    user=Depends(get_current_user),
    users: UserRepository = Depends(get_users),
):
    """
    Returns account info for dashboard display plus usage stats:
    total deployments, total subdomains, active deployments.
    """
    user_id = user["id"]
    logger.info(f"Profile requested by user_id={user_id}")
    stats = await users.get_stats(user_id)
    return success_response({"user": public_user(user), "stats": stats})
