# app/services/users.py

import logging
from typing import Any, Dict, Optional

from app.core.errors import AuthenticationFailed, Conflict, NotFound, PersistenceError
from app.services import credentials
from app.services.supabase import Collections, DocumentStore
from app.utils.timestamps import parse_timestamp, utcnow, utcnow_iso
from app.utils.validators import normalize_email

logger = logging.getLogger(__name__)

ACTIVE_DEPLOYMENT_STATUSES = ("pending", "building", "deploying", "deployed")


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User fields safe to return to the owner (never the password hash)."""
    return {
        "id": user["id"],
        "email": user["email"],
        "username": user.get("username"),
        "created_at": user.get("created_at"),
        "last_active_at": user.get("last_active_at"),
        "email_verified": user.get("email_verified", False),
    }


class UserRepository:
    """Credential service: user accounts, password checks and API keys."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # -------------------------------------------------
    # LOOKUPS
    # -------------------------------------------------

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self.store.find_one(Collections.USERS, {"email": normalize_email(email)})

    async def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.find_one(Collections.USERS, {"id": user_id})

    async def find_by_api_key(self, api_key: str) -> Optional[Dict[str, Any]]:
        """User owning `api_key`, or None if unknown or expired. Deactivation is checked by the caller."""
        user = await self.store.find_one(Collections.USERS, {"api_key": api_key})
        if not user:
            return None
        expires_at = user.get("api_key_expires_at")
        if expires_at and parse_timestamp(expires_at) <= utcnow():
            logger.info(f"Expired API key presented for user {user['id']}")
            return None
        return user

    # -------------------------------------------------
    # ACCOUNT LIFECYCLE
    # -------------------------------------------------

    async def create_user(self, email: str, password: str, username: Optional[str] = None) -> Dict[str, Any]:
        email = normalize_email(email)
        if await self.find_by_email(email):
            logger.warning(f"Signup failed: email already exists: {email}")
            raise Conflict("An account with this email already exists", code="EMAIL_EXISTS")

        now = utcnow_iso()
        user = {
            "id": credentials.generate_user_id(),
            "email": email,
            "username": username or None,
            "password_hash": credentials.hash_password(password),
            "api_key": credentials.generate_api_key(),
            "is_active": True,
            "email_verified": False,
            "created_at": now,
            "updated_at": now,
            "last_active_at": now,
        }
        if not await self.store.insert(Collections.USERS, user):
            raise PersistenceError("Failed to create user")
        logger.info(f"Created user {user['id']} for {email}")
        return user

    async def verify_password(self, email: str, password: str) -> Dict[str, Any]:
        """
        Returns the user when email + password match an active account.
        Unknown email and wrong password produce the same error.
        """
        user = await self.find_by_email(email)
        if not user:
            raise AuthenticationFailed("Invalid email or password", code="INVALID_CREDENTIALS")
        if not user.get("is_active", True):
            raise AuthenticationFailed(
                "Account is deactivated. Please contact support.",
                code="ACCOUNT_DEACTIVATED",
                status_code=403,
            )
        if not credentials.verify_password(password, user["password_hash"]):
            logger.warning(f"Invalid password for {user['email']}")
            raise AuthenticationFailed("Invalid email or password", code="INVALID_CREDENTIALS")
        return user

    async def regenerate_api_key(self, user_id: str) -> str:
        new_key = credentials.generate_api_key()
        now = utcnow_iso()
        updated = await self.store.update(
            Collections.USERS,
            {"id": user_id},
            {"api_key": new_key, "updated_at": now, "last_active_at": now},
        )
        if not updated:
            raise PersistenceError("Failed to update API key", code="UPDATE_FAILED")
        logger.info(f"Regenerated API key for user {user_id}")
        return new_key

    async def touch(self, user_id: str) -> bool:
        now = utcnow_iso()
        return await self.store.update(Collections.USERS, {"id": user_id}, {"last_active_at": now, "updated_at": now})

    async def deactivate(self, user_id: str) -> bool:
        return await self.store.update(
            Collections.USERS, {"id": user_id}, {"is_active": False, "updated_at": utcnow_iso()}
        )

    # -------------------------------------------------
    # STATS
    # -------------------------------------------------

    async def get_stats(self, user_id: str) -> Dict[str, int]:
        if not await self.find_by_id(user_id):
            raise NotFound("User not found", code="USER_NOT_FOUND")
        return {
            "total_deployments": await self.store.count(Collections.DEPLOYMENTS, {"user_id": user_id}),
            "total_subdomains": await self.store.count(Collections.SUBDOMAINS, {"user_id": user_id}),
            "active_deployments": await self.store.count(
                Collections.DEPLOYMENTS,
                {"user_id": user_id, "status": list(ACTIVE_DEPLOYMENT_STATUSES)},
            ),
        }

"""
--------------------------------------------------------------------
Purpose:
    Account storage and credential checks on top of the document store.

What It Does:
    - create_user(): unique (lower-cased) email, bcrypt hash, fresh API key.
    - verify_password(): generic error for unknown email or wrong password.
    - find_by_api_key(): owner of an unexpired key, active or not.
    - regenerate_api_key(), touch(), deactivate(), get_stats().

Used By:
    - Auth routes (signup, login, regenerate-key, profile).
    - app/deps/auth.py (API key authentication).

Security:
    - Password hashes never leave this module's callers; see public_user().
    - Email verification is not implemented; email_verified stays False.

--------------------------------------------------------------------
"""
