"""HTTP API for the TeleBlog Lite Mini App. Uses aiohttp.

POST /auth exchanges Telegram initData for a session token; the profile
endpoints expect that token as "Authorization: Bearer <token>".
"""

import json
import logging
import time
from datetime import datetime, timezone

from aiohttp import web

from .auth import AuthError, authenticate
from .config import Config
from .posts import summarize_post
from .session_token import TokenError, decode_token, issue_token
from .store import StoreError
from .users import change_role, public_profile, validate_role


logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


def _error(code: str, status: int) -> web.Response:
    return web.json_response({"error": code}, status=status)


def _extract_claims(request: web.Request) -> dict | None:
    """Return the verified token payload from the Authorization header."""
    config: Config = request.app["config"]
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    try:
        claims = decode_token(auth[7:].strip(), config.jwt_secret)
    except TokenError as e:
        logger.info("Rejected bearer token: %s", e)
        return None
    if "sub" not in claims or "telegram_id" not in claims:
        return None
    return claims


def _parse_page(request: web.Request) -> tuple[int, int]:
    """Read limit/offset query params. Raises ValueError on bad input."""
    config: Config = request.app["config"]
    limit = int(request.query.get("limit", config.posts_per_page))
    offset = int(request.query.get("offset", 0))
    if not 1 <= limit <= MAX_PAGE_SIZE or offset < 0:
        raise ValueError("limit must be 1..50 and offset >= 0")
    return limit, offset


async def handle_health(request: web.Request) -> web.Response:
    """GET /health: simple health check, no auth required."""
    return web.json_response({
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
    })


async def handle_auth(request: web.Request) -> web.Response:
    """POST /auth: body {"initData": "..."}."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError):
        return _error("no_init_data", 400)
    init_data = body.get("initData") if isinstance(body, dict) else None

    try:
        result = await authenticate(init_data, request.app["config"], request.app["store"])
    except AuthError as e:
        return _error(e.code, e.status)
    return web.json_response(result)


async def handle_posts(request: web.Request) -> web.Response:
    """GET /api/posts: published posts, newest first."""
    try:
        limit, offset = _parse_page(request)
    except ValueError:
        return _error("invalid_page", 400)

    try:
        posts = await request.app["store"].list_published_posts(limit=limit, offset=offset)
    except StoreError as e:
        logger.error("Loading posts failed: %s", e)
        return _error("store_unavailable", 502)
    return web.json_response({"posts": [summarize_post(p) for p in posts]})


async def handle_me(request: web.Request) -> web.Response:
    """GET /api/me: profile of the token holder."""
    claims = _extract_claims(request)
    if claims is None:
        return _error("invalid_token", 401)

    try:
        user = await request.app["store"].find_user_by_telegram_id(claims["telegram_id"])
    except StoreError as e:
        logger.error("Loading user %s failed: %s", claims.get("sub"), e)
        return _error("store_unavailable", 502)
    if user is None:
        return _error("invalid_token", 401)
    return web.json_response({"user": public_profile(user)})


async def handle_role(request: web.Request) -> web.Response:
    """POST /api/role: body {"role": "reader" | "writer"}.

    Returns the updated profile and a fresh token carrying the new role.
    """
    claims = _extract_claims(request)
    if claims is None:
        return _error("invalid_token", 401)
    config: Config = request.app["config"]

    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError):
        return _error("invalid_role", 400)
    role = body.get("role") if isinstance(body, dict) else None
    try:
        validate_role(role)
    except ValueError:
        return _error("invalid_role", 400)

    try:
        user = await change_role(request.app["store"], claims["sub"], role)
    except StoreError as e:
        logger.error("Updating role of %s failed: %s", claims["sub"], e)
        return _error("store_unavailable", 502)

    try:
        token = issue_token(user["id"], user["telegram_id"], user["role"], config.jwt_secret)
    except TokenError:
        logger.exception("Token issuance failed for user %s", user["id"])
        return _error("internal_error", 500)
    return web.json_response({"user": public_profile(user), "token": token})


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.Response:
    """Add CORS headers for the Mini App frontend."""
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        response = await handler(request)

    allowed_origin = request.app.get("cors_origin", "*")
    response.headers["Access-Control-Allow-Origin"] = allowed_origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
    return response


@web.middleware
async def logging_middleware(request: web.Request, handler) -> web.Response:
    """Log all incoming requests."""
    start = time.time()
    try:
        response = await handler(request)
        elapsed = (time.time() - start) * 1000
        logger.info("%s %s -> %s (%.0fms)", request.method, request.path, response.status, elapsed)
        return response
    except Exception as e:
        elapsed = (time.time() - start) * 1000
        logger.error("%s %s -> ERROR: %s (%.0fms)", request.method, request.path, e, elapsed)
        raise


def create_web_app(config: Config, store, cors_origin: str = "*") -> web.Application:
    """Create and configure the aiohttp web application."""
    app = web.Application(middlewares=[logging_middleware, cors_middleware])
    app["config"] = config
    app["store"] = store
    app["cors_origin"] = cors_origin

    app.router.add_get("/health", handle_health)
    app.router.add_post("/auth", handle_auth)
    app.router.add_get("/api/posts", handle_posts)
    app.router.add_get("/api/me", handle_me)
    app.router.add_post("/api/role", handle_role)

    return app
