# app/services/credentials.py

import hashlib
import base64
import re
import secrets
import time
from typing import Optional

import bcrypt

API_KEY_PREFIX = "fapi_"
API_KEY_REGEX = r"fapi_[a-z0-9]+_[a-f0-9]{64}"
BCRYPT_ROUNDS = 12

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = ""
    while True:
        number, rem = divmod(number, 36)
        digits = _BASE36[rem] + digits
        if not number:
            return digits


def _timestamp_base36() -> str:
    return _base36(int(time.time() * 1000))


def generate_api_key() -> str:
    """`fapi_<ms timestamp base36>_<64 hex chars>`"""
    return f"{API_KEY_PREFIX}{_timestamp_base36()}_{secrets.token_hex(32)}"


def generate_user_id() -> str:
    return f"user_{_timestamp_base36()}_{secrets.token_hex(16)}"


def is_valid_api_key_format(api_key: str) -> bool:
    return bool(re.fullmatch(API_KEY_REGEX, api_key or ""))


def extract_api_key(auth_header: Optional[str]) -> Optional[str]:
    """Accepts `Bearer <key>`, `ApiKey <key>` or a bare `fapi_...` header value."""
    if not auth_header:
        return None
    match = re.match(r"^(?:Bearer|ApiKey)\s+(.+)$", auth_header.strip(), re.IGNORECASE)
    if match:
        return match.group(1).strip()
    if auth_header.startswith(API_KEY_PREFIX):
        return auth_header.strip()
    return None


def _prehash(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
