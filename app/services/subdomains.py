# app/services/subdomains.py

import logging
from typing import Any, Dict, List, Optional

from app.core.errors import NotFound, ValidationFailed
from app.services.provisioning import ProvisionResult, ProvisioningService
from app.services.supabase import Collections, DocumentStore
from app.utils.timestamps import utcnow_iso
from app.utils.validators import is_valid_ipv4

logger = logging.getLogger(__name__)


def subdomain_document(result: ProvisionResult, user_id: str, deployment_id: str) -> Dict[str, Any]:
    now = utcnow_iso()
    return {
        "subdomain": result.subdomain,
        "user_id": user_id,
        "deployment_id": deployment_id,
        "dns_record_id": result.dns_record_id,
        "status": result.status,
        "created_at": now,
        "updated_at": now,
    }


class SubdomainRegistry:
    """Stored subdomains and the DNS records behind them."""

    def __init__(self, store: DocumentStore, provisioning: ProvisioningService):
        self.store = store
        self.provisioning = provisioning

    async def create(self, user_id: str, deployment_id: str, public_ip: Optional[str] = None) -> ProvisionResult:
        """
        Provisions a generated subdomain for `deployment_id`, then stores it.
        The deployment must exist and belong to `user_id`; nothing is created otherwise.
        If the store does not acknowledge the insert the DNS record is deleted again.
        """
        if public_ip and not is_valid_ipv4(public_ip):
            raise ValidationFailed("Invalid public IP address format", code="INVALID_IP")

        deployment = await self.store.find_one(
            Collections.DEPLOYMENTS, {"id": deployment_id, "user_id": user_id}
        )
        if not deployment:
            logger.warning(f"Subdomain requested for unknown deployment {deployment_id} by user {user_id}")
            raise NotFound("Deployment not found", code="DEPLOYMENT_NOT_FOUND")

        async def persist(res: ProvisionResult) -> bool:
            return await self.store.insert(Collections.SUBDOMAINS, subdomain_document(res, user_id, deployment_id))

        result = await self.provisioning.provision_and_persist(
            persist=persist,
            target_ip=public_ip,
            description="subdomain",
        )
        logger.info(f"Subdomain {result.subdomain} stored for deployment {deployment_id}")
        return result

    async def list_subdomains(self, user_id: Optional[str] = None, deployment_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if not user_id and not deployment_id:
            raise ValidationFailed(
                "Either user_id or deployment_id parameter is required", code="MISSING_PARAMS"
            )
        filters = {}
        if user_id:
            filters["user_id"] = user_id
        if deployment_id:
            filters["deployment_id"] = deployment_id
        return await self.store.find(Collections.SUBDOMAINS, filters)

    async def retarget(
        self,
        public_ip: str,
        deployment_id: Optional[str] = None,
        subdomain: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Points an existing subdomain at `public_ip`. The stored document is only
        touched after the DNS update succeeds; DnsUpdateFailed leaves it as it was.
        """
        if not deployment_id and not subdomain:
            raise ValidationFailed("Either deployment_id or subdomain is required", code="MISSING_FIELDS")
        if not public_ip or not is_valid_ipv4(public_ip):
            raise ValidationFailed("Valid public IP address is required", code="INVALID_IP")

        filters = {}
        if deployment_id:
            filters["deployment_id"] = deployment_id
        if subdomain:
            filters["subdomain"] = subdomain
        if user_id:
            filters["user_id"] = user_id

        existing = await self.store.find_one(Collections.SUBDOMAINS, filters)
        if not existing:
            raise NotFound("Subdomain record not found", code="SUBDOMAIN_NOT_FOUND")

        record = await self.provisioning.retarget(existing["dns_record_id"], public_ip)

        if not await self.store.update(
            Collections.SUBDOMAINS,
            {"subdomain": existing["subdomain"]},
            {"updated_at": utcnow_iso(), "status": "active"},
        ):
            logger.warning(f"DNS for {existing['subdomain']} updated but the stored record was not")

        full_domain = f"{existing['subdomain']}.{self.provisioning.base_domain}"
        return {
            "subdomain": existing["subdomain"],
            "dns_record_id": record.id,
            "content": record.content,
            "message": f"DNS record updated for {full_domain} -> {public_ip}",
        }
