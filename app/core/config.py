# app/core/config.py

from functools import lru_cache
from typing import Set

from pydantic import field_validator
from pydantic_settings import BaseSettings

PLACEHOLDER_VALUES = {"your_api_token_here", "your_zone_id_here", "changeme", ""}

# ---------------------------------------------
# Settings class for all configuration values
# ---------------------------------------------
class Settings(BaseSettings):
    # Cloudflare (DNS provider) settings
    CLOUDFLARE_API_TOKEN: str
    CLOUDFLARE_ZONE_ID: str
    CLOUDFLARE_API_URL: str = "https://api.cloudflare.com/client/v4"
    CLOUDFLARE_TIMEOUT: float = 15.0
    DNS_OVER_HTTPS_URL: str = "https://cloudflare-dns.com/dns-query"

    # Subdomains
    BASE_DOMAIN: str
    SUBDOMAIN_LENGTH: int
    DNS_RECORD_TTL: int = 300
    DNS_PROXIED: bool = False
    DEFAULT_TARGET_IP: str = "192.0.2.1"
    # Cloudflare codes meaning "a record with that name already exists"
    DNS_DUPLICATE_ERROR_CODES: Set[int] = {81053, 81057, 81058}
    PROVISION_MAX_RETRIES: int = 5
    ALLOCATOR_MAX_ATTEMPTS: int = 10

    # Supabase settings (document store)
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_TIMEOUT: float = 15.0

    # Remote deployment hosts
    LIVE_STATS_TIMEOUT: float = 10.0
    DEFAULT_DEPLOYMENT_PORT: int = 8080

    # Frontend URL (used for CORS)
    FRONTEND_URL: str = "http://localhost:3000"
    API_VERSION: str = "1.0.0"

    # Rate limiting ("memory://" or e.g. "redis://host:6379")
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_DEFAULT: str = "60/minute"
    RATE_LIMIT_SIGNUP: str = "3/15 minutes"
    RATE_LIMIT_LOGIN: str = "5/15 minutes"
    RATE_LIMIT_REGENERATE_KEY: str = "3/hour"

    class Config:
        env_file = ".env"  # Load variables from .env by default

    @field_validator(
        "CLOUDFLARE_API_TOKEN",
        "CLOUDFLARE_ZONE_ID",
        "BASE_DOMAIN",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
    )
    @classmethod
    def reject_placeholders(cls, value: str, info):
        if value.strip() in PLACEHOLDER_VALUES:
            raise ValueError(f"Missing or invalid {info.field_name} in environment variables")
        return value.strip()

    @field_validator("SUBDOMAIN_LENGTH")
    @classmethod
    def check_label_length(cls, value: int):
        # DNS labels are 1..63 characters
        if not 1 <= value <= 63:
            raise ValueError("SUBDOMAIN_LENGTH must be between 1 and 63")
        return value

    @field_validator("PROVISION_MAX_RETRIES", "ALLOCATOR_MAX_ATTEMPTS")
    @classmethod
    def check_attempts(cls, value: int, info):
        if value < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return value

# ---------------------------------------------
# Singleton pattern for config (caches instance)
# ---------------------------------------------
@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()  # This is what you import elsewhere

"""
------------------------------------------------
✅ Purpose:
Centralizes all environment-based configuration for the Forge control plane.

🔍 What It Does:
- Loads and type-checks Cloudflare, Supabase and subdomain settings from the environment or .env.
- Fails at import time when a required value is missing or still a placeholder.
- Exposes a singleton `settings` object (cached with @lru_cache).

📌 Used By:
- Every service and route, imported as `from app.core.config import settings`.

🧠 Notes:
- DNS_DUPLICATE_ERROR_CODES is the allow-list of provider codes that the
  provisioning loop treats as a name collision. Anything else is not retried.
- Rate limits use the `limits` string notation ("3/15 minutes").

------------------------------------------------
"""
