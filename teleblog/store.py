"""User and post storage.

Two data sources with the same async interface: SupabaseStore talks to the
Supabase PostgREST API with aiohttp, DemoStore keeps everything in memory.
Which one runs is chosen explicitly in config; neither falls back to the
other.
"""

import asyncio
import copy
import enum
import logging

import aiohttp

from .posts import DEMO_POSTS


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=10)


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class StoreError(Exception):
    """A store operation failed. status is the HTTP status when known."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SupabaseStore:
    def __init__(self, url: str, service_key: str, session: aiohttp.ClientSession | None = None):
        self.url = url.rstrip("/")
        self._auth_headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "X-Client-Info": "teleblog-lite",
        }
        self._session = session
        self._owns_session = session is None
        self.state = StoreState.UNINITIALIZED

    async def start(self) -> StoreState:
        """Open the HTTP session and probe the posts table once."""
        if self.state is not StoreState.UNINITIALIZED:
            return self.state

        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=REQUEST_TIMEOUT)

        try:
            await self._request("GET", "posts", params={"select": "id", "limit": "1"}, check_ready=False)
        except StoreError as e:
            logger.error("Supabase connection test failed: %s", e)
            self.state = StoreState.FAILED
        else:
            logger.info("Supabase connection ready at %s", self.url)
            self.state = StoreState.READY
        return self.state

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def find_user_by_telegram_id(self, telegram_id) -> dict | None:
        rows = await self._request("GET", "users", params={
            "select": "*", "telegram_id": f"eq.{telegram_id}", "limit": "1",
        })
        return rows[0] if rows else None

    async def insert_user(self, record: dict) -> dict:
        rows = await self._request(
            "POST", "users", json=record, headers={"Prefer": "return=representation"},
        )
        return _single(rows, "insert into users")

    async def update_user(self, user_id, updates: dict) -> dict:
        rows = await self._request(
            "PATCH", "users", params={"id": f"eq.{user_id}"}, json=updates,
            headers={"Prefer": "return=representation"},
        )
        return _single(rows, f"update of user {user_id}")

    async def list_published_posts(self, limit: int = 10, offset: int = 0) -> list[dict]:
        return await self._request("GET", "posts", params={
            "select": "*,user:users(first_name,last_name,username)",
            "is_published": "eq.true",
            "order": "published_at.desc",
            "limit": str(limit),
            "offset": str(offset),
        })

    async def _request(self, method: str, table: str, params=None, json=None, headers=None,
                       check_ready: bool = True):
        if check_ready and self.state is not StoreState.READY:
            raise StoreError(f"store is {self.state.value}")
        if self._session is None:
            raise StoreError("store session is closed")

        url = f"{self.url}/rest/v1/{table}"
        try:
            async with self._session.request(
                method, url, params=params, json=json,
                headers={**self._auth_headers, **(headers or {})},
            ) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise StoreError(
                        f"{method} {table} returned {resp.status}: {body[:200]}", status=resp.status,
                    )
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreError(f"{method} {table} failed: {e!r}") from e


def _single(rows, what: str) -> dict:
    if not rows:
        raise StoreError(f"{what} returned no rows")
    return rows[0]


class DemoStore:
    """In-memory data source with fixed demo posts."""

    def __init__(self, posts: list[dict] | None = None):
        self.posts = copy.deepcopy(DEMO_POSTS if posts is None else posts)
        self.users: dict[str, dict] = {}
        self.state = StoreState.UNINITIALIZED

    async def start(self) -> StoreState:
        if self.state is StoreState.UNINITIALIZED:
            logger.info("Using in-memory demo data source")
            self.state = StoreState.READY
        return self.state

    async def close(self) -> None:
        pass

    async def find_user_by_telegram_id(self, telegram_id) -> dict | None:
        for user in self.users.values():
            if str(user["telegram_id"]) == str(telegram_id):
                return dict(user)
        return None

    async def insert_user(self, record: dict) -> dict:
        user = dict(record)
        user.setdefault("id", f"dev-{record['telegram_id']}")
        if user["id"] in self.users:
            raise StoreError(f"user {user['id']} already exists", status=409)
        self.users[user["id"]] = user
        return dict(user)

    async def update_user(self, user_id, updates: dict) -> dict:
        if user_id not in self.users:
            raise StoreError(f"update of user {user_id} returned no rows")
        self.users[user_id].update(updates)
        return dict(self.users[user_id])

    async def list_published_posts(self, limit: int = 10, offset: int = 0) -> list[dict]:
        published = [p for p in self.posts if p.get("is_published")]
        published.sort(key=lambda p: p.get("published_at") or "", reverse=True)
        return copy.deepcopy(published[offset:offset + limit])


def create_store(config):
    """Build the store selected by config.data_source."""
    if config.data_source == "demo":
        return DemoStore()
    return SupabaseStore(config.supabase_url, config.supabase_service_key)
