"""Tests for the Supabase and demo data sources."""

from types import SimpleNamespace

import pytest
from aiohttp import web

from teleblog.store import DemoStore, StoreError, StoreState, SupabaseStore, create_store


SERVICE_KEY = "service-key"


def _fake_postgrest(users: list[dict], posts: list[dict], fail_posts: bool = False):
    """Minimal PostgREST stand-in recording every request it receives."""
    seen = []

    async def record(request):
        body = await request.json() if request.can_read_body else None
        seen.append(SimpleNamespace(
            method=request.method, path=request.path, query=dict(request.query),
            headers=request.headers.copy(), body=body,
        ))
        return body

    async def get_users(request):
        await record(request)
        wanted = request.query.get("telegram_id", "")
        rows = [u for u in users if f"eq.{u['telegram_id']}" == wanted]
        return web.json_response(rows)

    async def post_users(request):
        body = await record(request)
        row = dict(body, id=f"uuid-{len(users) + 1}")
        users.append(row)
        return web.json_response([row], status=201)

    async def patch_users(request):
        body = await record(request)
        rows = [u for u in users if f"eq.{u['id']}" == request.query.get("id")]
        for row in rows:
            row.update(body)
        return web.json_response(rows)

    async def get_posts(request):
        await record(request)
        if fail_posts:
            return web.json_response({"message": "JWT expired"}, status=401)
        return web.json_response(posts[:int(request.query.get("limit", len(posts)))])

    app = web.Application()
    app.router.add_get("/rest/v1/users", get_users)
    app.router.add_post("/rest/v1/users", post_users)
    app.router.add_patch("/rest/v1/users", patch_users)
    app.router.add_get("/rest/v1/posts", get_posts)
    return app, seen


@pytest.fixture
def users():
    return [{"id": "uuid-1", "telegram_id": "42", "username": "bob", "role": "reader"}]


@pytest.fixture
def posts():
    return [{"id": "p1", "title": "First", "is_published": True}]


async def _started_store(aiohttp_server, app) -> SupabaseStore:
    server = await aiohttp_server(app)
    store = SupabaseStore(str(server.make_url("/")), SERVICE_KEY)
    await store.start()
    return store


class TestSupabaseStore:
    @pytest.mark.asyncio
    async def test_start_ready(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            assert store.state is StoreState.READY
            assert seen[0].query == {"select": "id", "limit": "1"}
            assert seen[0].headers["apikey"] == SERVICE_KEY
            assert seen[0].headers["Authorization"] == f"Bearer {SERVICE_KEY}"
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_start_failed(self, aiohttp_server, users, posts):
        app, _ = _fake_postgrest(users, posts, fail_posts=True)
        store = await _started_store(aiohttp_server, app)
        try:
            assert store.state is StoreState.FAILED
            with pytest.raises(StoreError, match="failed"):
                await store.find_user_by_telegram_id(42)
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_start_is_one_shot(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            assert await store.start() is StoreState.READY
            assert len(seen) == 1
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_calls_before_start_fail(self):
        store = SupabaseStore("http://127.0.0.1:9", SERVICE_KEY)
        with pytest.raises(StoreError, match="uninitialized"):
            await store.list_published_posts()

    @pytest.mark.asyncio
    async def test_find_user(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            assert (await store.find_user_by_telegram_id(42))["id"] == "uuid-1"
            assert await store.find_user_by_telegram_id(7) is None
            assert seen[1].query["telegram_id"] == "eq.42"
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_insert_user(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            row = await store.insert_user({"telegram_id": "7", "role": "reader"})
            assert row["id"] == "uuid-2"
            assert seen[-1].headers["Prefer"] == "return=representation"
            assert seen[-1].body == {"telegram_id": "7", "role": "reader"}
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_update_user(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            row = await store.update_user("uuid-1", {"role": "writer"})
            assert row["role"] == "writer"
            assert seen[-1].method == "PATCH"
            assert seen[-1].query == {"id": "eq.uuid-1"}
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_update_missing_user(self, aiohttp_server, users, posts):
        app, _ = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            with pytest.raises(StoreError, match="no rows"):
                await store.update_user("uuid-404", {"role": "writer"})
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_list_published_posts_query(self, aiohttp_server, users, posts):
        app, seen = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        try:
            rows = await store.list_published_posts(limit=5, offset=10)
            assert rows == posts
            assert seen[-1].query == {
                "select": "*,user:users(first_name,last_name,username)",
                "is_published": "eq.true",
                "order": "published_at.desc",
                "limit": "5",
                "offset": "10",
            }
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_error_status_carried(self, aiohttp_server, users, posts):
        app, _ = _fake_postgrest(users, posts)
        server = await aiohttp_server(app)
        store = SupabaseStore(str(server.make_url("/")), SERVICE_KEY)
        await store.start()
        store.url = str(server.make_url("/missing")).rstrip("/")
        try:
            with pytest.raises(StoreError) as exc:
                await store.list_published_posts()
            assert exc.value.status == 404
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_closed_store(self, aiohttp_server, users, posts):
        app, _ = _fake_postgrest(users, posts)
        store = await _started_store(aiohttp_server, app)
        await store.close()
        with pytest.raises(StoreError, match="closed"):
            await store.list_published_posts()


class TestDemoStore:
    @pytest.mark.asyncio
    async def test_start_ready(self):
        store = DemoStore()
        assert store.state is StoreState.UNINITIALIZED
        assert await store.start() is StoreState.READY

    @pytest.mark.asyncio
    async def test_posts_newest_first(self):
        store = DemoStore()
        await store.start()
        posts = await store.list_published_posts()
        assert [p["id"] for p in posts] == ["demo-1", "demo-2", "demo-3"]

    @pytest.mark.asyncio
    async def test_posts_paging(self):
        store = DemoStore()
        await store.start()
        posts = await store.list_published_posts(limit=1, offset=1)
        assert [p["id"] for p in posts] == ["demo-2"]

    @pytest.mark.asyncio
    async def test_unpublished_hidden(self):
        store = DemoStore(posts=[
            {"id": "a", "is_published": False, "published_at": "2025-01-01"},
            {"id": "b", "is_published": True, "published_at": "2025-01-02"},
        ])
        await store.start()
        assert [p["id"] for p in await store.list_published_posts()] == ["b"]

    @pytest.mark.asyncio
    async def test_duplicate_insert(self):
        store = DemoStore()
        await store.start()
        await store.insert_user({"telegram_id": "5"})
        with pytest.raises(StoreError):
            await store.insert_user({"telegram_id": "5"})

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self):
        store = DemoStore()
        await store.start()
        row = await store.insert_user({"telegram_id": "5", "role": "reader"})
        row["role"] = "writer"
        assert (await store.find_user_by_telegram_id(5))["role"] == "reader"


class TestCreateStore:
    def test_demo(self):
        assert isinstance(create_store(SimpleNamespace(data_source="demo")), DemoStore)

    def test_supabase(self):
        config = SimpleNamespace(
            data_source="supabase", supabase_url="https://x.supabase.co/",
            supabase_service_key="k",
        )
        store = create_store(config)
        assert isinstance(store, SupabaseStore)
        assert store.url == "https://x.supabase.co"
