# app/services/provisioning.py

import inspect
import logging
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Optional, TypeVar

from app.core.errors import DnsUpdateFailed, PersistenceError, ProviderError, ProvisioningExhausted
from app.services.allocator import SubdomainAllocator
from app.services.cloudflare import CloudflareClient, DnsRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUBDOMAIN_ACTIVE = "active"


@dataclass
class ProvisionResult:
    subdomain: str
    url: str
    dns_record_id: str
    status: str = SUBDOMAIN_ACTIVE

    def to_dict(self):
        return asdict(self)


async def run_with_compensation(
    action: Callable[[], Awaitable[T]],
    persist: Callable[[T], Any],
    compensate: Callable[[T], Awaitable[bool]],
    description: str = "operation",
) -> T:
    """
    Two-system write: a remote step that can be undone, then a local terminal step.

    1. `action()` runs the remote step. If it fails nothing needs undoing.
    2. `persist(result)` runs the local step (sync or async). Raising, or returning
       a falsy acknowledgement, counts as failure.
    3. On failure `compensate(result)` runs once. Its own failure is logged and
       swallowed; the persistence error is what the caller sees.

    Not atomic: a crash between 1 and 2 leaves the remote side behind.
    """
    result = await action()
    try:
        acknowledged = persist(result)
        if inspect.isawaitable(acknowledged):
            acknowledged = await acknowledged
        if not acknowledged:
            raise PersistenceError(f"Failed to save {description} to database")
    except Exception as e:
        logger.error(f"Persisting {description} failed, compensating: {e}")
        try:
            undone = await compensate(result)
        except Exception as undo_error:
            logger.error(f"Compensation for {description} raised: {undo_error}", exc_info=True)
            undone = False
        if not undone:
            logger.error(f"Compensation for {description} did not complete; remote state may be orphaned")
        if isinstance(e, PersistenceError):
            raise
        raise PersistenceError(f"Failed to save {description} to database: {e}") from e
    return result


class ProvisioningService:
    """Allocates a subdomain and creates its A-record, retrying on name collisions."""

    def __init__(
        self,
        cloudflare: CloudflareClient,
        allocator: SubdomainAllocator,
        base_domain: str,
        ttl: int = 300,
        proxied: bool = False,
        default_target_ip: str = "192.0.2.1",
        max_retries: int = 5,
    ):
        self.cloudflare = cloudflare
        self.allocator = allocator
        self.base_domain = base_domain
        self.ttl = ttl
        self.proxied = proxied
        self.default_target_ip = default_target_ip
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.max_retries = max_retries

    def build_url(self, subdomain: str) -> str:
        # Proxied records terminate TLS at Cloudflare; direct records are plain HTTP
        scheme = "https" if self.proxied else "http"
        return f"{scheme}://{subdomain}.{self.base_domain}"

    async def provision(
        self,
        preferred_name: Optional[str] = None,
        target_ip: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> ProvisionResult:
        """
        Creates the DNS record for `preferred_name` (first attempt only) or a
        generated name. Only provider duplicate-name rejections are retried;
        every other error propagates as-is after a single call.
        """
        target_ip = target_ip or self.default_target_ip
        if max_retries is None:
            max_retries = self.max_retries
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        candidate = preferred_name
        last_error: Optional[ProviderError] = None

        for attempt in range(1, max_retries + 1):
            if not candidate or attempt > 1:
                candidate = await self.allocator.allocate()

            logger.info(f"Attempting to create subdomain: {candidate} (attempt {attempt}/{max_retries})")
            try:
                record = await self.cloudflare.create_record(candidate, target_ip, self.ttl, self.proxied)
            except ProviderError as e:
                if not e.is_duplicate:
                    logger.error(f"Non-retryable error creating subdomain {candidate}: {e}")
                    raise
                logger.info(f"Subdomain {candidate} already exists, generating a new one")
                last_error = e
                candidate = None
                continue

            logger.info(f"Successfully created subdomain: {candidate}")
            return ProvisionResult(
                subdomain=candidate,
                url=self.build_url(candidate),
                dns_record_id=record.id,
                status=SUBDOMAIN_ACTIVE,
            )

        raise ProvisioningExhausted(max_retries, last_error)

    async def retarget(self, record_id: str, new_ip: str) -> DnsRecord:
        record = await self.cloudflare.update_record(record_id, content=new_ip)
        if record is None:
            raise DnsUpdateFailed(f"Failed to update DNS record {record_id}")
        logger.info(f"DNS record {record_id} now points to {new_ip}")
        return record

    async def release(self, record_id: str) -> bool:
        """Compensating delete; never raises."""
        return await self.cloudflare.delete_record(record_id)

    async def provision_and_persist(
        self,
        persist: Callable[[ProvisionResult], Any],
        preferred_name: Optional[str] = None,
        target_ip: Optional[str] = None,
        description: str = "subdomain",
    ) -> ProvisionResult:
        """provision() followed by `persist`, deleting the DNS record again if `persist` fails."""
        return await run_with_compensation(
            action=lambda: self.provision(preferred_name, target_ip),
            persist=persist,
            compensate=lambda result: self.release(result.dns_record_id),
            description=description,
        )

"""
--------------------------------------------------------------
Purpose:
    The create-with-retry-and-rollback logic for subdomains.

What It Does:
    - provision(): up to max_retries create calls; collisions (provider
      duplicate codes) trigger a fresh name, anything else aborts at once.
    - retarget(): single PATCH of the record content; DnsUpdateFailed on failure.
    - run_with_compensation(): DNS first, store second, delete DNS if the
      store write is not acknowledged.

Used By:
    - app/services/subdomains.py
    - app/services/deployments.py

Notes:
    - There is no background sweep for records orphaned by a crash between
      the DNS create and the store insert.

--------------------------------------------------------------
"""
