"""Helpers for issuing and verifying the bearer tokens of notification clients.

Tokens are minted by the authentication service; this subsystem only needs to
read the ``sub`` claim, which carries the user identifier. ``create_access_token``
exists for tooling and tests that need a valid token.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

ALGORITHM = "HS256"


def create_access_token(
    subject: str,
    *,
    secret_key: str,
    expires_delta: timedelta,
    extra_claims: dict | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    claims = {**(extra_claims or {}), "sub": subject, "exp": expire}
    return jwt.encode(claims, secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str, *, secret_key: str) -> dict:
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


__all__ = ["ALGORITHM", "create_access_token", "decode_access_token"]
