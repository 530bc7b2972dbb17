"""initData login: verify, enroll, issue a session token."""

import logging

from .config import Config
from .session_token import TokenError, issue_token
from .store import StoreError
from .users import enroll_user, public_profile
from .web_auth import is_fresh, parse_identity, verify_init_data


logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "no_init_data": 400,
    "invalid_signature": 401,
    "no_user_data": 400,
    "internal_error": 500,
}


class AuthError(Exception):
    """Login failed with one of the codes in ERROR_STATUS."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code

    @property
    def status(self) -> int:
        return ERROR_STATUS[self.code]


async def authenticate(init_data, config: Config, store) -> dict:
    """Turn a raw initData string into {"user": profile, "token": token}."""
    if not init_data or not isinstance(init_data, str):
        raise AuthError("no_init_data")

    if not verify_init_data(init_data, config.bot_token):
        logger.info("Rejected initData: signature mismatch")
        raise AuthError("invalid_signature")

    if config.max_age_seconds > 0 and not is_fresh(init_data, config.max_age_seconds):
        logger.info("Rejected initData: auth_date older than %ds", config.max_age_seconds)
        raise AuthError("invalid_signature")

    identity = parse_identity(init_data)
    if identity is None:
        raise AuthError("no_user_data")

    try:
        user = await enroll_user(store, identity)
    except StoreError:
        logger.exception("Enrollment failed for telegram user %s", identity.id)
        raise AuthError("internal_error")

    try:
        token = issue_token(user["id"], user["telegram_id"], user["role"], config.jwt_secret)
    except (TokenError, KeyError):
        logger.exception("Token issuance failed for user %s", user.get("id"))
        raise AuthError("internal_error")

    logger.info("Authenticated telegram user %s as %s", identity.id, user["id"])
    return {"user": public_profile(user, identity), "token": token}
