"""Bearer tokens carried by API callers."""

from datetime import datetime, timedelta, timezone

import jwt

from telehealth.core import config

REQUIRED_CLAIMS = ["exp", "iat", "iss", "sub"]


def create_access_token(
    subject: str,
    role: str | None = None,
    expires_minutes: int | None = None,
    issued_at: datetime | None = None,
) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {
        "sub": subject,
        "iss": config.JWT_ISSUER,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        issuer=config.JWT_ISSUER,
        options={"require": REQUIRED_CLAIMS},
    )
