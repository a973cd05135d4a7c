# app/services/deployments.py

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import NotFound, ValidationFailed
from app.services.allocator import SubdomainAllocator
from app.services.provisioning import ProvisionResult, ProvisioningService
from app.services.subdomains import subdomain_document
from app.services.supabase import Collections, DocumentStore
from app.utils.timestamps import parse_timestamp, utcnow, utcnow_iso
from app.utils.validators import is_valid_ipv4, is_valid_subdomain_label

logger = logging.getLogger(__name__)

DISK_LIMIT_GB = 15
BYTES_PER_GB = 1024 ** 3
MAX_PAGE_SIZE = 100


def calculate_uptime(created_at, now: Optional[datetime] = None) -> str:
    """`Xd Yh Zm`, `Yh Zm` or `Zm` since `created_at`, floor-divided from milliseconds."""
    now = now or utcnow()
    diff_ms = max(0, int((now - parse_timestamp(created_at)).total_seconds() * 1000))
    days = diff_ms // (1000 * 60 * 60 * 24)
    hours = (diff_ms % (1000 * 60 * 60 * 24)) // (1000 * 60 * 60)
    minutes = (diff_ms % (1000 * 60 * 60)) // (1000 * 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def unreachable_stats(server_ip: Optional[str], port: int) -> Dict[str, Any]:
    """Stand-in live stats for a deployment host that could not be queried."""
    now = utcnow_iso()
    return {
        "status": "unknown",
        "resources": {"cpu": 0, "memory": 0, "disk_used": 0, "disk_usage_percent": 0},
        "health": {"status": "unreachable", "response_time": 0, "last_check": now},
        "ssl": None,
        "uptime": None,
        "logs": [
            f"[{now}] Failed to contact deployment server - server may be offline",
            f"[{now}] Attempted connection to {server_ip}:{port}",
            f"[{now}] This deployment may need manual restart",
        ],
    }


def _map_ssl(ssl: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(ssl, dict):
        return None
    mapped = {
        "enabled": bool(ssl.get("enabled", False)),
        "expires_at": ssl.get("expiresAt"),
        "issuer": ssl.get("issuer"),
        "days_until_expiry": ssl.get("daysUntilExpiry"),
        "certificate": ssl.get("certificate"),
    }
    return {key: value for key, value in mapped.items() if value is not None}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _number(value: Any) -> float:
    """Numeric stat from the host, 0 for anything missing, non-numeric or non-finite."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if math.isfinite(number) else 0


def parse_port(value: Any) -> Optional[int]:
    """TCP port as an int, or None when `value` is not one (bools and out-of-range included)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not 1 <= value <= 65535:
        return None
    return value


def map_remote_deployment(remote: Dict[str, Any]) -> Dict[str, Any]:
    """Translates the deployment host's payload into live stats. Wrongly typed fields read as empty."""
    resources = _as_dict(remote.get("resources"))
    health = _as_dict(remote.get("health"))
    return {
        "status": _text(remote.get("status")),
        "resources": {
            "cpu": _number(resources.get("cpu")),
            "memory": _number(resources.get("memory")),
            "disk_used": _number(resources.get("diskUsed")),
            "disk_usage_percent": _number(resources.get("disk")),
        },
        "health": {
            "status": _text(health.get("status"), "unknown"),
            "response_time": _number(health.get("responseTime")),
            "last_check": _text(health.get("lastCheck")) or utcnow_iso(),
        },
        "ssl": _map_ssl(remote.get("ssl")) or {"enabled": False},
        "uptime": _text(remote.get("uptime")),
        "logs": remote.get("logs") if isinstance(remote.get("logs"), list) else [],
    }


class DeploymentManager:
    """Deployment records: creation with a provisioned subdomain, listing, and live status."""

    def __init__(
        self,
        store: DocumentStore,
        provisioning: ProvisioningService,
        allocator: SubdomainAllocator,
        stats_timeout: float = 10.0,
        default_port: int = 8080,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.provisioning = provisioning
        self.allocator = allocator
        self.stats_timeout = stats_timeout
        self.default_port = default_port
        self.transport = transport

    # -------------------------------------------------
    # CREATE
    # -------------------------------------------------

    async def create(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        project_name = payload.get("project_name")
        framework = payload.get("framework")
        public_ip = payload.get("public_ip")
        custom_subdomain = payload.get("custom_subdomain")

        if not project_name or not framework:
            raise ValidationFailed(
                "Missing required fields: project_name and framework", code="MISSING_FIELDS"
            )
        if public_ip and not is_valid_ipv4(public_ip):
            raise ValidationFailed("Invalid public IP address format", code="INVALID_IP")
        if custom_subdomain and not is_valid_subdomain_label(custom_subdomain):
            raise ValidationFailed("Invalid custom subdomain", code="INVALID_SUBDOMAIN")
        port = self.default_port
        if payload.get("port") is not None:
            port = parse_port(payload["port"])
            if port is None:
                raise ValidationFailed("Port must be an integer between 1 and 65535", code="INVALID_PORT")

        deployment_id = str(uuid.uuid4())
        preferred = custom_subdomain or await self.allocator.allocate()
        documents: Dict[str, Dict[str, Any]] = {}

        async def persist(result: ProvisionResult) -> bool:
            now = utcnow_iso()
            target = f" pointing to {public_ip}" if public_ip else ""
            deployment = {
                "id": deployment_id,
                "user_id": user_id,
                "subdomain": result.subdomain,
                "project_name": project_name,
                "status": "pending",
                "url": result.url,
                "git_repository": payload.get("git_repository"),
                "git_branch": payload.get("git_branch") or "main",
                "framework": framework,
                "build_command": payload.get("build_command"),
                "output_directory": payload.get("output_directory"),
                "environment_variables": payload.get("environment_variables"),
                "server_ip": public_ip,
                "port": port,
                "logs": [{
                    "id": str(uuid.uuid4()),
                    "timestamp": now,
                    "level": "info",
                    "message": f"Deployment created with subdomain {result.subdomain}{target}",
                    "source": "system",
                }],
                "health_status": "unknown",
                "created_at": now,
                "updated_at": now,
            }
            documents["deployment"] = deployment
            return await self.store.insert(Collections.DEPLOYMENTS, deployment)

        result = await self.provisioning.provision_and_persist(
            persist=persist,
            preferred_name=preferred,
            target_ip=public_ip,
            description="deployment",
        )

        if not await self.store.insert(Collections.SUBDOMAINS, subdomain_document(result, user_id, deployment_id)):
            logger.warning(f"Deployment {deployment_id} saved but its subdomain record {result.subdomain} was not")

        logger.info(f"Deployment {deployment_id} created at {result.url}")
        return {
            "deployment": documents["deployment"],
            "subdomain": result.subdomain,
            "url": result.url,
        }

    # -------------------------------------------------
    # LIST
    # -------------------------------------------------

    async def list_deployments(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        framework: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationFailed(
                f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}", code="INVALID_PAGINATION"
            )
        filters = {}
        if user_id:
            filters["user_id"] = user_id
        if status:
            filters["status"] = status
        if framework:
            filters["framework"] = framework

        total = await self.store.count(Collections.DEPLOYMENTS, filters)
        deployments = await self.store.find(
            Collections.DEPLOYMENTS,
            filters,
            order_by="created_at",
            descending=True,
            skip=(page - 1) * limit,
            limit=limit,
        )
        total_pages = math.ceil(total / limit)
        return {
            "deployments": deployments,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    # -------------------------------------------------
    # LIVE STATUS
    # -------------------------------------------------

    async def fetch_live_stats(self, server_ip: Optional[str], deployment_id: str, port: int) -> Dict[str, Any]:
        """
        Asks the deployment host for live stats. Never raises: timeouts, errors and
        malformed payloads all give `unreachable_stats`.
        """
        if not server_ip:
            logger.info(f"Deployment {deployment_id} has no server IP; skipping live status")
            return unreachable_stats(server_ip, port)

        url = f"http://{server_ip}:{port}/api/deployments/{deployment_id}"
        logger.info(f"Fetching live stats for deployment {deployment_id} from {url}")
        try:
            async with httpx.AsyncClient(timeout=self.stats_timeout, transport=self.transport) as client:
                response = await client.get(url, headers={"Content-Type": "application/json"})
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict) or not data.get("success") or not isinstance(data.get("deployment"), dict):
                raise ValueError("Invalid response format from deployment server")
            return map_remote_deployment(data["deployment"])
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.error(f"Failed to contact deployment server {server_ip}:{port}: {type(e).__name__}: {e}")
            return unreachable_stats(server_ip, port)

    async def get_with_live_status(self, deployment_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        filters = {"id": deployment_id}
        if user_id:
            filters["user_id"] = user_id
        deployment = await self.store.find_one(Collections.DEPLOYMENTS, filters)
        if not deployment:
            raise NotFound("Deployment not found", code="DEPLOYMENT_NOT_FOUND")

        port = parse_port(deployment.get("port")) or self.default_port
        live = await self.fetch_live_stats(deployment.get("server_ip"), deployment_id, port)
        now = utcnow()
        resources = live["resources"]
        url = deployment.get("url") or ""

        merged = {
            "id": deployment["id"],
            "project_name": deployment.get("project_name"),
            "subdomain": deployment.get("subdomain"),
            "framework": deployment.get("framework"),
            "status": live.get("status") or deployment.get("status") or "unknown",
            "url": url,
            "uptime": live.get("uptime") or calculate_uptime(deployment["created_at"], now),
            "last_updated": now.isoformat(),
            "server_ip": deployment.get("server_ip"),
            "server_port": port,
            "created_at": deployment.get("created_at"),
            "health": {
                "status": live["health"].get("status") or "unknown",
                "response_time": live["health"].get("response_time") or 0,
                "last_check": now.isoformat(),
            },
            "resources": {
                "cpu": resources["cpu"],
                "memory": resources["memory"],
                "disk": resources["disk_usage_percent"],
                "disk_used": resources["disk_used"] / BYTES_PER_GB if resources["disk_used"] else 0,
            },
            "disk_limit": DISK_LIMIT_GB,
            "ssl": live.get("ssl") or {
                "enabled": url.startswith("https://"),
                "expires_at": deployment.get("ssl_expires_at") or (now + timedelta(days=90)).isoformat(),
            },
            "logs": live["logs"] if live.get("logs") is not None else [
                f"[{now.isoformat()}] Deployment created",
                f"[{deployment.get('created_at')}] Initial deployment completed",
            ],
        }

        # Lazy reconciliation: the read path records what it just observed
        if not await self.store.update(
            Collections.DEPLOYMENTS,
            {"id": deployment_id},
            {
                "last_checked": now.isoformat(),
                "status": merged["status"],
                "health": merged["health"],
                "health_status": merged["health"]["status"],
            },
        ):
            logger.warning(f"Could not store live status for deployment {deployment_id}")

        return merged

"""
--------------------------------------------------------------------
Purpose:
    Deployment metadata plus the live view of each deployment host.

What It Does:
    - create(): validates the payload (port included), picks a subdomain, provisions DNS (retrying on collisions),
      stores the deployment with the DNS delete as compensation, then stores
      the subdomain record.
    - list_deployments(): filters (user, status, framework), newest first, paginated.
    - get_with_live_status(): merges the stored record with the host's
      /api/deployments/{id} answer; an unreachable host degrades to
      `unreachable_stats` instead of failing. The merged status and health are
      written back on every read.

Used By:
    - app/routes/deployments.py

--------------------------------------------------------------------
"""
