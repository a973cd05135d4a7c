# app/services/cloudflare.py

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.core.errors import ProviderError

logger = logging.getLogger(__name__)

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4"

TROUBLESHOOTING = {
    401: "Invalid or expired API token. Please check CLOUDFLARE_API_TOKEN.",
    403: (
        "This is likely due to insufficient API token permissions. The token needs "
        "Zone:Zone:Read, Zone:DNS:Edit and User:User:Read (for health checks)."
    ),
}


@dataclass
class DnsRecord:
    """A DNS record as returned by Cloudflare."""

    id: str
    type: str
    name: str
    content: str
    ttl: int
    proxied: bool

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DnsRecord":
        return cls(
            id=data["id"],
            type=data.get("type", "A"),
            name=data.get("name", ""),
            content=data.get("content", ""),
            ttl=int(data.get("ttl", 1)),
            proxied=bool(data.get("proxied", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DnsVerification:
    success: bool
    current_ip: Optional[str] = None
    error: Optional[str] = None


class CloudflareClient:
    """
    Async wrapper over the Cloudflare v4 zone / DNS record endpoints.

    Mutating calls change real DNS state and are not transactional with the
    document store. create_record raises ProviderError; the other calls are
    best effort and return False / None / [] on failure so they can be used
    during rollback without hiding the original error.
    """

    def __init__(
        self,
        api_token: str,
        zone_id: str,
        base_domain: str,
        api_url: str = CLOUDFLARE_API_URL,
        timeout: float = 15.0,
        duplicate_codes: Iterable[int] = (81053, 81057, 81058),
        doh_url: str = "https://cloudflare-dns.com/dns-query",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_token:
            raise ValueError("Cloudflare API token is not set.")
        if not zone_id:
            raise ValueError("Cloudflare zone id is not set.")
        self.api_token = api_token
        self.zone_id = zone_id
        self.base_domain = base_domain
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.duplicate_codes = frozenset(duplicate_codes)
        self.doh_url = doh_url
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def fqdn(self, name: str) -> str:
        """Expands a bare label to `label.base_domain`; fully-qualified names pass through."""
        if name == self.base_domain or name.endswith(f".{self.base_domain}"):
            return name
        return f"{name}.{self.base_domain}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Performs one API call and returns its `result`, raising ProviderError on any failure."""
        url = f"{self.api_url}{endpoint}"
        try:
            async with self._client() as client:
                response = await client.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"Cloudflare API request failed: {type(e).__name__}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("success"):
            return body.get("result")

        errors = [e for e in body.get("errors") or [] if isinstance(e, dict)]
        codes = [e["code"] for e in errors if isinstance(e.get("code"), int)]
        message = f"Cloudflare API error: {response.status_code} {response.reason_phrase}"
        if errors:
            message += " - " + ", ".join(
                f"[{e['code']}] {e.get('message', '')}" if "code" in e else str(e.get("message", ""))
                for e in errors
            )
        hint = TROUBLESHOOTING.get(response.status_code)
        if hint:
            message += f"\n{hint}"

        raise ProviderError(
            message,
            http_status=response.status_code,
            error_codes=codes,
            duplicate_codes=self.duplicate_codes,
        )

    # -------------------------------------------------
    # RECORD CRUD
    # -------------------------------------------------

    async def create_record(self, name: str, content: str, ttl: int = 300, proxied: bool = False) -> DnsRecord:
        record_data = {
            "type": "A",
            "name": name,
            "content": content,
            "ttl": ttl,
            "proxied": proxied,
        }
        logger.info(f"Creating DNS record: {self.fqdn(name)} -> {content}")
        result = await self._request("POST", f"/zones/{self.zone_id}/dns_records", json=record_data)
        record = DnsRecord.from_api(result)
        logger.info(f"DNS record created: {record.name} -> {record.content} (id={record.id})")
        return record

    async def delete_record(self, record_id: str) -> bool:
        try:
            await self._request("DELETE", f"/zones/{self.zone_id}/dns_records/{record_id}")
            logger.info(f"Deleted DNS record {record_id}")
            return True
        except ProviderError as e:
            logger.error(f"Error deleting DNS record {record_id}: {e}")
            return False

    async def update_record(self, record_id: str, **changes) -> Optional[DnsRecord]:
        """PATCHes only the given fields (content, ttl, proxied, name)."""
        try:
            result = await self._request(
                "PATCH", f"/zones/{self.zone_id}/dns_records/{record_id}", json=changes
            )
            return DnsRecord.from_api(result)
        except ProviderError as e:
            logger.error(f"Error updating DNS record {record_id}: {e}")
            return None

    async def get_record(self, record_id: str) -> Optional[DnsRecord]:
        try:
            result = await self._request("GET", f"/zones/{self.zone_id}/dns_records/{record_id}")
            return DnsRecord.from_api(result) if result else None
        except ProviderError as e:
            logger.error(f"Error fetching DNS record {record_id}: {e}")
            return None

    async def list_records(self, name: Optional[str] = None) -> List[DnsRecord]:
        params = {"name": self.fqdn(name)} if name else {}
        try:
            result = await self._request("GET", f"/zones/{self.zone_id}/dns_records", params=params)
            return [DnsRecord.from_api(item) for item in result or []]
        except ProviderError as e:
            logger.error(f"Error listing DNS records (name={name}): {e}")
            return []

    # -------------------------------------------------
    # HEALTH & VERIFICATION
    # -------------------------------------------------

    async def health_check(self) -> bool:
        """True only if the token verifies (GET /user) AND the zone is readable."""
        try:
            user = await self._request("GET", "/user")
            logger.debug(f"Cloudflare token verified for user {(user or {}).get('id')}")
            zone = await self._request("GET", f"/zones/{self.zone_id}")
            logger.debug(f"Cloudflare zone access verified for {(zone or {}).get('name')}")
            return True
        except ProviderError as e:
            logger.error(f"Cloudflare health check failed: {e}")
            return False

    async def verify_dns_record(self, subdomain: str, expected_ip: str) -> DnsVerification:
        """Resolves `subdomain` through public DNS-over-HTTPS and compares the first A answer."""
        full_domain = self.fqdn(subdomain)
        try:
            async with self._client() as client:
                response = await client.get(
                    self.doh_url,
                    params={"name": full_domain, "type": "A"},
                    headers={"Accept": "application/dns-json"},
                )
            if not response.is_success:
                return DnsVerification(success=False, error="DNS lookup failed")
            answers = response.json().get("Answer") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"DNS verification error for {full_domain}: {e}")
            return DnsVerification(success=False, error=str(e))

        if not answers:
            return DnsVerification(success=False, error="No DNS record found")
        current_ip = answers[0].get("data")
        if current_ip == expected_ip:
            return DnsVerification(success=True, current_ip=current_ip)
        return DnsVerification(
            success=False,
            current_ip=current_ip,
            error=f"IP mismatch: expected {expected_ip}, got {current_ip}",
        )

"""
--------------------------------------------------------------
Purpose:
    Typed client for the Cloudflare DNS records API, scoped to one zone.

What It Does:
    - Creates, reads, updates, deletes and lists A-records.
    - Classifies provider failures: ProviderError.is_duplicate is set when the
      response carries one of the configured "record already exists" codes.
    - Checks token + zone access for the platform health endpoint.
    - Verifies propagation through DNS-over-HTTPS.

Used By:
    - app/services/allocator.py (availability pre-check)
    - app/services/provisioning.py (create / retarget / compensating delete)
    - app/services/health.py

Security:
    - The API token is only ever sent in the Authorization header, never logged.

--------------------------------------------------------------
"""
