"""Stateless HS256 session tokens issued after a successful initData check.

Tokens are plain JWTs signed with PyJWT, so any JWT library can verify
them with the same secret.
"""

import time

import jwt


TOKEN_TTL = 24 * 60 * 60

ALGORITHM = "HS256"


class TokenError(ValueError):
    """Raised when a token cannot be issued or fails verification."""


def issue_token(user_id, telegram_id, role: str, secret: str, now: int | None = None) -> str:
    """Mint a signed token for the given user that expires in TOKEN_TTL seconds."""
    if not secret:
        raise TokenError("signing secret is not configured")
    if now is None:
        now = int(time.time())

    payload = {
        "sub": user_id,
        "telegram_id": telegram_id,
        "role": role,
        "iat": now,
        "exp": now + TOKEN_TTL,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str, now: int | None = None) -> dict:
    """Verify a token and return its payload.

    Raises TokenError("malformed token" | "invalid signature" | "expired").
    """
    if not secret:
        raise TokenError("signing secret is not configured")

    # PyJWT checks exp against the wall clock; shift it so that `now` is used.
    leeway = 0 if now is None else time.time() - now
    try:
        return jwt.decode(
            token, secret, algorithms=[ALGORITHM],
            options={"require": ["exp"], "verify_iat": False}, leeway=leeway,
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("expired")
    except jwt.InvalidSignatureError:
        raise TokenError("invalid signature")
    except jwt.InvalidTokenError:
        raise TokenError("malformed token")
