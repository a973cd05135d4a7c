# app/core/errors.py

from typing import Any, Dict, Iterable, Optional


class ForgeError(Exception):
    """Base class for every error that is rendered into the response envelope."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details


class ValidationFailed(ForgeError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationFailed(ForgeError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"


class Conflict(ForgeError):
    status_code = 409
    code = "CONFLICT"


class NotFound(ForgeError):
    status_code = 404
    code = "NOT_FOUND"


class RateLimited(ForgeError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"


class PersistenceError(ForgeError):
    status_code = 500
    code = "PERSISTENCE_FAILED"


# ---------------------------------------------
# DNS / provisioning errors
# ---------------------------------------------

class ProviderError(ForgeError):
    """
    A failed call to the DNS provider.

    http_status is None for transport failures (timeouts, refused connections).
    error_codes holds the numeric codes from the provider's `errors` array.
    """

    status_code = 502
    code = "DNS_PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        error_codes: Iterable[int] = (),
        duplicate_codes: Iterable[int] = (),
    ):
        self.http_status = http_status
        self.error_codes = tuple(error_codes)
        self.is_duplicate = any(code in set(duplicate_codes) for code in self.error_codes)
        super().__init__(
            message,
            details={"http_status": http_status, "provider_codes": list(self.error_codes)},
        )


class AllocationExhausted(ForgeError):
    status_code = 503
    code = "ALLOCATION_EXHAUSTED"


class ProvisioningExhausted(ForgeError):
    status_code = 503
    code = "PROVISIONING_EXHAUSTED"

    def __init__(self, attempts: int, last_error: Optional[Exception]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to create subdomain after {attempts} attempts. Last error: {last_error}",
        )


class DnsUpdateFailed(ForgeError):
    status_code = 502
    code = "DNS_UPDATE_FAILED"
