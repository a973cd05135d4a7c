"""Pytest configuration and fixtures."""
import os
import tempfile

# --- Environment must be in place before app.core.config is imported ---
os.environ.setdefault("CLOUDFLARE_API_TOKEN", "test-cloudflare-token")
os.environ.setdefault("CLOUDFLARE_ZONE_ID", "zone123")
os.environ.setdefault("BASE_DOMAIN", "forge.test")
os.environ.setdefault("SUBDOMAIN_LENGTH", "10")
os.environ.setdefault("SUPABASE_URL", "https://supabase.invalid")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="forge-logs-"))

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.limiter import StorageRateLimiter
from app.services import credentials
from app.services.allocator import SubdomainAllocator
from app.services.cloudflare import CloudflareClient
from app.services.deployments import DeploymentManager
from app.services.provisioning import ProvisioningService
from fakes import BASE_DOMAIN, ZONE_ID, FakeCloudflare, InMemoryDocumentStore

# --- Constants ---
TEST_EMAIL = "dev@example.com"
TEST_PASSWORD = "Sup3r$ecret"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost so password tests stay quick."""
    monkeypatch.setattr(credentials, "BCRYPT_ROUNDS", 4)


# --- Service fixtures ---

@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def fake_cloudflare():
    return FakeCloudflare()


@pytest.fixture
def cloudflare(fake_cloudflare):
    return CloudflareClient(
        api_token="test-cloudflare-token",
        zone_id=ZONE_ID,
        base_domain=BASE_DOMAIN,
        transport=fake_cloudflare.transport(),
    )


@pytest.fixture
def allocator(cloudflare):
    return SubdomainAllocator(cloudflare, length=10, max_attempts=10)


@pytest.fixture
def provisioning(cloudflare, allocator):
    return ProvisioningService(cloudflare, allocator, base_domain=BASE_DOMAIN, max_retries=5)


@pytest.fixture
def host_transport():
    """Transport used to reach deployment hosts; tests replace it with their own MockTransport."""
    return None


@pytest.fixture
def deployments(store, provisioning, allocator, host_transport):
    return DeploymentManager(store, provisioning, allocator, stats_timeout=1, transport=host_transport)


@pytest.fixture
def rate_limiter():
    return StorageRateLimiter("memory://")


# --- API client ---

@pytest.fixture
async def client(store, cloudflare, rate_limiter, deployments):
    """
    Async HTTP client against the FastAPI app with every external service overridden:
      - document store -> InMemoryDocumentStore
      - Cloudflare -> FakeCloudflare via MockTransport
      - auth rate limiter -> fresh in-memory counters
    """
    from app.core.limiter import limiter
    from app.deps.services import get_cloudflare, get_deployments, get_rate_limiter, get_store
    from app.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_store] = lambda: store
    fastapi_app.dependency_overrides[get_cloudflare] = lambda: cloudflare
    fastapi_app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    fastapi_app.dependency_overrides[get_deployments] = lambda: deployments
    limiter.reset()

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


async def signup(client, email=TEST_EMAIL, password=TEST_PASSWORD, ip="10.0.0.1", **extra):
    return await client.post(
        "/api/auth/signup",
        json={"email": email, "password": password, **extra},
        headers={"X-Forwarded-For": ip},
    )


@pytest.fixture
async def api_key(client):
    """API key of a freshly signed-up user."""
    resp = await signup(client)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["user"]["api_key"]


@pytest.fixture
def auth_headers(api_key):
    return {"Authorization": f"Bearer {api_key}"}
