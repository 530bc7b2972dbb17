"""Enrollment of Telegram users into the users table, and role selection."""

from datetime import datetime, timezone

from .web_auth import TelegramIdentity


ROLES = ("reader", "writer")
DEFAULT_ROLE = "reader"


def _now_iso(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def display_name_for(identity: TelegramIdentity) -> str:
    """First and last name, else username, else a generic placeholder."""
    full = " ".join(p for p in (identity.first_name, identity.last_name) if p)
    return full or identity.username or "Telegram User"


def new_user_record(identity: TelegramIdentity, now: datetime | None = None) -> dict:
    """Row inserted the first time a Telegram user opens the app."""
    stamp = _now_iso(now)
    return {
        "telegram_id": str(identity.id),
        "username": identity.username,
        "first_name": identity.first_name,
        "last_name": identity.last_name,
        "display_name": display_name_for(identity),
        "role": DEFAULT_ROLE,
        "profile_completed": True,
        "created_at": stamp,
        "updated_at": stamp,
    }


def user_updates(identity: TelegramIdentity, now: datetime | None = None) -> dict:
    """Fields refreshed from Telegram on every login."""
    return {
        "username": identity.username,
        "first_name": identity.first_name,
        "last_name": identity.last_name,
        "display_name": display_name_for(identity),
        "updated_at": _now_iso(now),
    }


async def enroll_user(store, identity: TelegramIdentity) -> dict:
    """Find the user by telegram_id and refresh it, or insert a new one."""
    existing = await store.find_user_by_telegram_id(identity.id)
    if existing:
        return await store.update_user(existing["id"], user_updates(identity))
    return await store.insert_user(new_user_record(identity))


def validate_role(role) -> str:
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}, expected one of {', '.join(ROLES)}")
    return role


async def change_role(store, user_id, role) -> dict:
    validate_role(role)
    return await store.update_user(user_id, {"role": role, "updated_at": _now_iso()})


def public_profile(record: dict, identity: TelegramIdentity | None = None) -> dict:
    """User fields returned to the Mini App. Never includes store internals."""
    return {
        "id": record.get("id"),
        "telegram_id": record.get("telegram_id"),
        "username": record.get("username"),
        "display_name": record.get("display_name"),
        "role": record.get("role"),
        "avatar_url": identity.photo_url if identity else None,
    }
