"""Telegram Mini App initData HMAC-SHA256 validation.

Validates the initData string sent by the Telegram WebApp SDK to ensure
the request was signed by Telegram for our bot. Pure functions, no I/O.

Reference: https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""

import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from urllib.parse import parse_qsl


# A "%" that does not start a two-digit hex escape.
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class InitDataError(ValueError):
    """Raised when initData cannot be parsed as a query string."""


@dataclass(frozen=True)
class TelegramIdentity:
    id: int
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    photo_url: str | None = None


def verify_init_data(init_data: str, bot_token: str) -> bool:
    """Return True if init_data carries a valid signature for bot_token.

    Never raises: malformed or empty input simply fails verification.
    """
    try:
        pairs = parse_init_data(init_data)
    except InitDataError:
        return False

    # The first hash wins; repeated hash keys are left out of the check string.
    received_hash = None
    fields = []
    for key, value in pairs:
        if key == "hash":
            if received_hash is None:
                received_hash = value
        else:
            fields.append((key, value))
    if not received_hash:
        return False

    expected_hash = _compute_hmac(bot_token, _build_data_check_string(fields))
    return hmac.compare_digest(received_hash.encode(), expected_hash.encode())


def parse_init_data(init_data: str) -> list[tuple[str, str]]:
    """Parse the initData query string into ordered (key, value) pairs."""
    if _BAD_ESCAPE.search(init_data):
        raise InitDataError("malformed percent-encoding")
    try:
        return parse_qsl(init_data, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as e:
        raise InitDataError(f"invalid UTF-8 in escape: {e}") from e


def parse_identity(init_data: str) -> TelegramIdentity | None:
    """Extract the Telegram user embedded in init_data, or None."""
    try:
        pairs = parse_init_data(init_data)
    except InitDataError:
        return None

    user_json = next((v for k, v in pairs if k == "user"), "")
    if not user_json:
        return None

    try:
        user = json.loads(user_json)
    except json.JSONDecodeError:
        return None
    if not isinstance(user, dict):
        return None

    user_id = user.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None

    return TelegramIdentity(
        id=user_id,
        username=_optional_str(user.get("username")),
        first_name=_optional_str(user.get("first_name")),
        last_name=_optional_str(user.get("last_name")),
        photo_url=_optional_str(user.get("photo_url")),
    )


def is_fresh(init_data: str, max_age_seconds: int, now: float | None = None) -> bool:
    """Check that auth_date is present and no older than max_age_seconds."""
    try:
        pairs = parse_init_data(init_data)
    except InitDataError:
        return False

    auth_date_str = next((v for k, v in pairs if k == "auth_date"), "")
    try:
        auth_date = int(auth_date_str)
    except ValueError:
        return False

    if now is None:
        now = time.time()
    return now - auth_date <= max_age_seconds


def _optional_str(value) -> str | None:
    return value if isinstance(value, str) and value else None


def _build_data_check_string(fields) -> str:
    """Build the sorted newline-separated data-check-string for HMAC.

    Accepts a dict or a sequence of (key, value) pairs. Sorting is stable,
    so repeated keys keep their original order.
    """
    if isinstance(fields, dict):
        fields = fields.items()
    return "\n".join(f"{k}={v}" for k, v in sorted(fields, key=lambda kv: kv[0]))


def _compute_hmac(bot_token: str, data_check_string: str) -> str:
    """Compute the hex signature Telegram puts in the hash field.

    The secret key is HMAC-SHA256 keyed by "WebAppData" over the bot token.
    """
    secret_key = hmac.new(
        b"WebAppData", bot_token.encode(), hashlib.sha256,
    ).digest()
    return hmac.new(
        secret_key, data_check_string.encode(), hashlib.sha256,
    ).hexdigest()
