"""In-memory stand-ins for the document store, Cloudflare and deployment hosts."""
import copy
import itertools
import json
from typing import Any, Dict, List, Optional, Set

import httpx

BASE_DOMAIN = "forge.test"
ZONE_ID = "zone123"


class InMemoryDocumentStore:
    """DocumentStore backed by dicts; `fail_inserts` / `fail_updates` simulate unacknowledged writes."""

    def __init__(self):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_inserts: Set[str] = set()
        self.fail_updates: Set[str] = set()
        self.healthy = True

    @staticmethod
    def _matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                if document.get(column) not in value:
                    return False
            elif document.get(column) != value:
                return False
        return True

    async def insert(self, collection, document):
        if collection in self.fail_inserts:
            return False
        self.collections.setdefault(collection, []).append(copy.deepcopy(document))
        return True

    async def find_one(self, collection, filters):
        rows = await self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    async def find(self, collection, filters=None, order_by=None, descending=False, skip=0, limit=None):
        rows = [d for d in self.collections.get(collection, []) if self._matches(d, filters)]
        if order_by:
            rows.sort(key=lambda d: d.get(order_by) or "", reverse=descending)
        rows = rows[skip:]
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def count(self, collection, filters=None):
        return len([d for d in self.collections.get(collection, []) if self._matches(d, filters)])

    async def update(self, collection, filters, values):
        if collection in self.fail_updates:
            return False
        matched = [d for d in self.collections.get(collection, []) if self._matches(d, filters)]
        for document in matched:
            document.update(copy.deepcopy(values))
        return bool(matched)

    async def ping(self):
        return self.healthy


class FakeCloudflare:
    """
    Minimal Cloudflare v4 zone served through httpx.MockTransport.

    Records live in `self.records` keyed by id. Creating a name that already
    exists answers 400 with code 81057. `fail_next` queues canned error
    responses that are returned before normal handling.
    """

    def __init__(self, base_domain: str = BASE_DOMAIN, zone_id: str = ZONE_ID):
        self.base_domain = base_domain
        self.zone_id = zone_id
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[httpx.Request] = []
        self.fail_next: List[httpx.Response] = []
        self.token_valid = True
        self._ids = itertools.count(1)

    def fqdn(self, name: str) -> str:
        if name.endswith(f".{self.base_domain}"):
            return name
        return f"{name}.{self.base_domain}"

    def add_record(self, name: str, content: str = "192.0.2.1") -> Dict[str, Any]:
        record_id = f"rec{next(self._ids)}"
        record = {
            "id": record_id,
            "type": "A",
            "name": self.fqdn(name),
            "content": content,
            "ttl": 300,
            "proxied": False,
        }
        self.records[record_id] = record
        return record

    def calls_for(self, method: str, suffix: str = "/dns_records") -> List[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path.endswith(suffix)]

    @staticmethod
    def ok(result: Any, status_code: int = 200) -> httpx.Response:
        return httpx.Response(status_code, json={"success": True, "errors": [], "messages": [], "result": result})

    @staticmethod
    def error(status_code: int, code: int, message: str) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={"success": False, "errors": [{"code": code, "message": message}], "messages": [], "result": None},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.fail_next:
            return self.fail_next.pop(0)

        path = request.url.path.split("/client/v4", 1)[-1]
        if not self.token_valid:
            return self.error(401, 10000, "Authentication error")

        if path == "/user":
            return self.ok({"id": "cf-user"})
        if path == f"/zones/{self.zone_id}":
            return self.ok({"id": self.zone_id, "name": self.base_domain})

        records_path = f"/zones/{self.zone_id}/dns_records"
        if path == records_path and request.method == "GET":
            name = request.url.params.get("name")
            matches = [r for r in self.records.values() if not name or r["name"] == name]
            return self.ok(matches)

        if path == records_path and request.method == "POST":
            body = json.loads(request.content)
            name = self.fqdn(body["name"])
            if any(r["name"] == name for r in self.records.values()):
                return self.error(400, 81057, "Record already exists.")
            record = self.add_record(body["name"], body["content"])
            record.update(ttl=body.get("ttl", 1), proxied=body.get("proxied", False))
            return self.ok(record)

        if path.startswith(records_path + "/"):
            record_id = path.rsplit("/", 1)[-1]
            record = self.records.get(record_id)
            if record is None:
                return self.error(404, 81044, "Record does not exist.")
            if request.method == "GET":
                return self.ok(record)
            if request.method == "PATCH":
                record.update(json.loads(request.content))
                return self.ok(record)
            if request.method == "DELETE":
                del self.records[record_id]
                return self.ok({"id": record_id})

        return self.error(404, 7003, "Could not route to the requested path")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def deployment_host_transport(payload: Optional[Dict[str, Any]] = None, exc: Optional[Exception] = None):
    """MockTransport for a deployment host's /api/deployments/{id}: answers `payload` or raises `exc`."""

    def handler(request: httpx.Request) -> httpx.Response:
        if exc is not None:
            raise exc
        return httpx.Response(200, json=payload)

    return httpx.MockTransport(handler)
