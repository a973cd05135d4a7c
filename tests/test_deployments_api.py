"""Integration tests for /api/deployments."""

import httpx
import pytest

from fakes import BASE_DOMAIN, deployment_host_transport


@pytest.fixture
def host_transport():
    """Every deployment host in this module is down."""
    return deployment_host_transport(exc=httpx.ReadTimeout("timed out"))


async def create(client, auth_headers, **overrides):
    payload = {"project_name": "blog", "framework": "astro", "public_ip": "203.0.113.7", **overrides}
    return await client.post("/api/deployments", json=payload, headers=auth_headers)


class TestDeploymentsApi:

    async def test_requires_api_key(self, client):
        resp = await client.get("/api/deployments")

        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "MISSING_API_KEY"

    async def test_create_deployment(self, client, auth_headers):
        resp = await create(client, auth_headers, custom_subdomain="myblog")

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["subdomain"] == "myblog"
        assert body["data"]["url"] == f"http://myblog.{BASE_DOMAIN}"
        assert body["data"]["deployment"]["status"] == "pending"
        assert body["meta"]["version"] == "1.0.0"
        assert body["meta"]["request_id"]

    async def test_create_validation_error(self, client, auth_headers):
        resp = await create(client, auth_headers, public_ip="300.0.0.1")

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_IP"

    async def test_duplicate_custom_subdomain_gets_generated_name(self, client, auth_headers, fake_cloudflare):
        fake_cloudflare.add_record("taken")

        resp = await create(client, auth_headers, custom_subdomain="taken")

        assert resp.status_code == 201
        assert resp.json()["data"]["subdomain"] != "taken"

    async def test_provider_auth_failure_is_502(self, client, auth_headers, fake_cloudflare):
        fake_cloudflare.token_valid = False

        resp = await create(client, auth_headers, custom_subdomain="myblog")

        assert resp.status_code == 502
        error = resp.json()["error"]
        assert error["code"] == "DNS_PROVIDER_ERROR"
        assert error["details"]["http_status"] == 401

    async def test_list_deployments(self, client, auth_headers):
        await create(client, auth_headers, custom_subdomain="first")
        await create(client, auth_headers, custom_subdomain="second")

        resp = await client.get("/api/deployments", params={"limit": 1}, headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert len(data["deployments"]) == 1
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["has_next"] is True

    async def test_list_invalid_pagination(self, client, auth_headers):
        resp = await client.get("/api/deployments", params={"page": 0}, headers=auth_headers)

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_PAGINATION"

    async def test_unreachable_host_still_returns_200(self, client, auth_headers):
        created = await create(client, auth_headers, custom_subdomain="offline")
        deployment_id = created.json()["data"]["deployment"]["id"]

        resp = await client.get(f"/api/deployments/{deployment_id}", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["health"]["status"] == "unreachable"
        assert data["resources"] == {"cpu": 0, "memory": 0, "disk": 0, "disk_used": 0}
        assert data["disk_limit"] == 15

    async def test_unknown_deployment_is_404(self, client, auth_headers):
        resp = await client.get("/api/deployments/nope", headers=auth_headers)

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "DEPLOYMENT_NOT_FOUND"
