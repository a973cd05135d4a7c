# app/services/allocator.py

import logging
import secrets
import string

from app.core.errors import AllocationExhausted
from app.services.cloudflare import CloudflareClient

logger = logging.getLogger(__name__)

LABEL_ALPHABET = string.ascii_lowercase + string.digits


class SubdomainAllocator:
    """
    Picks random DNS labels and checks them against the provider.

    The availability check is check-then-act: two concurrent allocations can
    both see a name as free. It only saves a round trip in the common case.
    The provider rejecting a duplicate on create is what actually decides a
    collision (see ProvisioningService). Do not add locking here.
    """

    def __init__(self, cloudflare: CloudflareClient, length: int = 10, max_attempts: int = 10):
        self.cloudflare = cloudflare
        self.length = length
        self.max_attempts = max_attempts

    def generate(self) -> str:
        return "".join(secrets.choice(LABEL_ALPHABET) for _ in range(self.length))

    async def is_available(self, label: str) -> bool:
        records = await self.cloudflare.list_records(label)
        return len(records) == 0

    async def allocate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            label = self.generate()
            if await self.is_available(label):
                logger.debug(f"Allocated subdomain candidate {label} (attempt {attempt})")
                return label
            logger.info(f"Subdomain candidate {label} is taken, trying another")
        raise AllocationExhausted(
            f"Unable to generate unique subdomain after {self.max_attempts} attempts"
        )
