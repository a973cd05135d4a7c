# app/deps/services.py

from functools import lru_cache

from fastapi import Depends

from app.core.config import settings
from app.core.limiter import RateLimiter, StorageRateLimiter
from app.services.allocator import SubdomainAllocator
from app.services.cloudflare import CloudflareClient
from app.services.deployments import DeploymentManager
from app.services.provisioning import ProvisioningService
from app.services.subdomains import SubdomainRegistry
from app.services.supabase import DocumentStore, SupabaseDocumentStore
from app.services.users import UserRepository

# --- Process-wide singletons (override in tests via app.dependency_overrides) ---

@lru_cache()
def get_store() -> DocumentStore:
    return SupabaseDocumentStore.from_settings(settings)

@lru_cache()
def get_cloudflare() -> CloudflareClient:
    return CloudflareClient(
        api_token=settings.CLOUDFLARE_API_TOKEN,
        zone_id=settings.CLOUDFLARE_ZONE_ID,
        base_domain=settings.BASE_DOMAIN,
        api_url=settings.CLOUDFLARE_API_URL,
        timeout=settings.CLOUDFLARE_TIMEOUT,
        duplicate_codes=settings.DNS_DUPLICATE_ERROR_CODES,
        doh_url=settings.DNS_OVER_HTTPS_URL,
    )

@lru_cache()
def get_rate_limiter() -> RateLimiter:
    return StorageRateLimiter(settings.RATE_LIMIT_STORAGE_URI)

# --- Per-request services built from the singletons ---

def get_allocator(cloudflare: CloudflareClient = Depends(get_cloudflare)) -> SubdomainAllocator:
    return SubdomainAllocator(
        cloudflare,
        length=settings.SUBDOMAIN_LENGTH,
        max_attempts=settings.ALLOCATOR_MAX_ATTEMPTS,
    )

def get_provisioning(
    cloudflare: CloudflareClient = Depends(get_cloudflare),
    allocator: SubdomainAllocator = Depends(get_allocator),
) -> ProvisioningService:
    return ProvisioningService(
        cloudflare,
        allocator,
        base_domain=settings.BASE_DOMAIN,
        ttl=settings.DNS_RECORD_TTL,
        proxied=settings.DNS_PROXIED,
        default_target_ip=settings.DEFAULT_TARGET_IP,
        max_retries=settings.PROVISION_MAX_RETRIES,
    )

def get_users(store: DocumentStore = Depends(get_store)) -> UserRepository:
    return UserRepository(store)

def get_subdomains(
    store: DocumentStore = Depends(get_store),
    provisioning: ProvisioningService = Depends(get_provisioning),
) -> SubdomainRegistry:
    return SubdomainRegistry(store, provisioning)

def get_deployments(
    store: DocumentStore = Depends(get_store),
    provisioning: ProvisioningService = Depends(get_provisioning),
    allocator: SubdomainAllocator = Depends(get_allocator),
) -> DeploymentManager:
    return DeploymentManager(
        store,
        provisioning,
        allocator,
        stats_timeout=settings.LIVE_STATS_TIMEOUT,
        default_port=settings.DEFAULT_DEPLOYMENT_PORT,
    )
