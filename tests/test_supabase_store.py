"""Test the Supabase-backed document store against a stand-in client."""

import asyncio
import threading
import time
from types import SimpleNamespace

import pytest

from app.core.errors import PersistenceError
from app.services import supabase as supabase_module
from app.services.supabase import Collections, SupabaseDocumentStore


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls = []

    def __getattr__(self, name):
        if name not in ("select", "insert", "update", "eq", "in_", "order", "range", "limit"):
            raise AttributeError(name)

        def chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return chain

    def execute(self):
        self.client.threads.append(threading.get_ident())
        if self.client.delay:
            time.sleep(self.client.delay)
        self.client.events.append("query")
        if self.client.error:
            raise self.client.error
        return SimpleNamespace(data=list(self.client.rows), count=len(self.client.rows))


class FakeSupabaseClient:

    def __init__(self, rows=None, delay=0.0, error=None):
        self.rows = rows or []
        self.delay = delay
        self.error = error
        self.threads = []
        self.events = []
        self.queries = []

    def table(self, name):
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query


async def test_queries_run_off_the_event_loop_thread():
    client = FakeSupabaseClient(rows=[{"id": "u1"}])
    store = SupabaseDocumentStore(client)

    user = await store.find_one(Collections.USERS, {"id": "u1"})

    assert user == {"id": "u1"}
    assert client.threads and threading.get_ident() not in client.threads


async def test_slow_query_does_not_stall_other_requests():
    client = FakeSupabaseClient(rows=[{"id": "u1"}], delay=0.3)
    store = SupabaseDocumentStore(client)

    async def ticker():
        for _ in range(5):
            await asyncio.sleep(0.01)
            client.events.append("tick")

    await asyncio.gather(store.find(Collections.USERS), ticker())

    assert client.events == ["tick"] * 5 + ["query"]


async def test_filters_and_pagination_are_applied():
    client = FakeSupabaseClient()
    store = SupabaseDocumentStore(client)

    await store.find(
        Collections.DEPLOYMENTS,
        {"user_id": "u1", "status": ["pending", "deployed"]},
        order_by="created_at",
        descending=True,
        skip=10,
        limit=5,
    )

    calls = [(name, args) for name, args, _ in client.queries[0].calls]
    assert ("eq", ("user_id", "u1")) in calls
    assert ("in_", ("status", ["pending", "deployed"])) in calls
    assert ("range", (10, 14)) in calls


async def test_unacknowledged_writes_return_false():
    store = SupabaseDocumentStore(FakeSupabaseClient(error=RuntimeError("timeout")))

    assert await store.insert(Collections.USERS, {"id": "u1"}) is False
    assert await store.update(Collections.USERS, {"id": "u1"}, {"is_active": False}) is False
    assert await store.ping() is False


async def test_failed_reads_raise():
    store = SupabaseDocumentStore(FakeSupabaseClient(error=RuntimeError("timeout")))

    with pytest.raises(PersistenceError):
        await store.find_one(Collections.USERS, {"id": "u1"})
    with pytest.raises(PersistenceError):
        await store.count(Collections.USERS)


def test_from_settings_bounds_postgrest_requests(monkeypatch):
    captured = {}

    def create_client(url, key, options=None):
        captured.update(url=url, key=key, options=options)
        return FakeSupabaseClient()

    monkeypatch.setattr(supabase_module, "create_client", create_client)
    settings = SimpleNamespace(
        SUPABASE_URL="https://supabase.invalid",
        SUPABASE_SERVICE_ROLE_KEY="service-key",
        SUPABASE_TIMEOUT=12.0,
    )

    store = SupabaseDocumentStore.from_settings(settings)

    assert isinstance(store.client, FakeSupabaseClient)
    assert captured["url"] == "https://supabase.invalid"
    assert captured["options"].postgrest_client_timeout == 12.0
