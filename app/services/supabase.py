# app/services/supabase.py

import logging
from typing import Any, Dict, List, Optional, Protocol

from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool
from supabase import Client, ClientOptions, create_client

from app.core.errors import PersistenceError

logger = logging.getLogger(__name__)


class Collections:
    USERS = "users"
    DEPLOYMENTS = "deployments"
    SUBDOMAINS = "subdomains"


class DocumentStore(Protocol):
    """
    Key-indexed document store used by the service layer. Every call is awaited.

    insert/update return an acknowledgement (True when at least one row was
    written) instead of raising. Reads raise PersistenceError on failure.
    Timestamps are stored as ISO-8601 strings.
    """

    async def insert(self, collection: str, document: Dict[str, Any]) -> bool: ...

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int: ...

    async def update(self, collection: str, filters: Dict[str, Any], values: Dict[str, Any]) -> bool: ...

    async def ping(self) -> bool: ...


# -----------------------------------------
# Supabase (PostgREST) implementation
# -----------------------------------------

class SupabaseDocumentStore:
    """
    supabase-py's client is blocking, so each query runs in the threadpool
    and the event loop only awaits it. Each PostgREST round trip is bounded
    by SUPABASE_TIMEOUT.
    """

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> "SupabaseDocumentStore":
        options = ClientOptions(postgrest_client_timeout=settings.SUPABASE_TIMEOUT)
        return cls(create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, options))

    @staticmethod
    def _apply_filters(query, filters: Optional[Dict[str, Any]]):
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(column, list(value))
            else:
                query = query.eq(column, value)
        return query

    async def insert(self, collection: str, document: Dict[str, Any]) -> bool:
        query = self.client.table(collection).insert(jsonable_encoder(document))
        try:
            res = await run_in_threadpool(query.execute)
            return bool(res.data)
        except Exception as e:
            logger.error(f"Error inserting into {collection}: {e}", exc_info=True)
            return False

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._apply_filters(self.client.table(collection).select("*"), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.range(skip, skip + limit - 1)
        try:
            res = await run_in_threadpool(query.execute)
            return res.data or []
        except Exception as e:
            logger.error(f"Error reading {collection} with {filters}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read {collection}") from e

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        query = self._apply_filters(self.client.table(collection).select("*", count="exact"), filters)
        try:
            res = await run_in_threadpool(query.execute)
            return res.count or 0
        except Exception as e:
            logger.error(f"Error counting {collection} with {filters}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count {collection}") from e

    async def update(self, collection: str, filters: Dict[str, Any], values: Dict[str, Any]) -> bool:
        query = self._apply_filters(self.client.table(collection).update(jsonable_encoder(values)), filters)
        try:
            res = await run_in_threadpool(query.execute)
            return bool(res.data)
        except Exception as e:
            logger.error(f"Error updating {collection} with {filters}: {e}", exc_info=True)
            return False

    async def ping(self) -> bool:
        query = self.client.table(Collections.USERS).select("id").limit(1)
        try:
            await run_in_threadpool(query.execute)
            return True
        except Exception as e:
            logger.error(f"Supabase health check failed: {e}")
            return False

"""
--------------------------------------------------------------------
Purpose:
    Document store for users, deployments and subdomains, backed by Supabase tables.

What It Does:
    - Defines the async DocumentStore protocol the services depend on.
    - Implements it over supabase-py (insert / select / update / count),
      off the event loop via run_in_threadpool.
    - Reports writes as acknowledged or not, so callers can compensate.

Used By:
    - app/services/users.py, deployments.py, subdomains.py, health.py
    - app/deps/services.py builds the singleton from settings.

Tables:
    users(id, email, username, password_hash, api_key, api_key_expires_at,
          is_active, email_verified, created_at, updated_at, last_active_at)
    deployments(id, user_id, subdomain, project_name, status, url, framework, ...)
    subdomains(subdomain, user_id, deployment_id, dns_record_id, status,
               created_at, updated_at, expires_at)
    Unique indexes: users.email, users.api_key, users.id, deployments.id,
    subdomains.subdomain (see sql/schema.sql).

--------------------------------------------------------------------
"""
