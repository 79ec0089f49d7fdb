from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings

ALGORITHM = "HS256"
AUDIENCE = "devicebook-clients"
ISSUER = "devicebook"


class TokenPayload(BaseModel):
    """Claims carried by an access token; ``sub`` is the owning account id."""

    sub: str
    exp: datetime
    iat: datetime
    typ: str
    aud: str
    iss: str


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def issue_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    now = _now()
    delta = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TTL_MIN)
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + delta).timestamp()),
        "typ": "access",
        "aud": AUDIENCE,
        "iss": ISSUER,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str, *, verify_type: str | None = "access") -> TokenPayload:
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUDIENCE,
            issuer=ISSUER,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    try:
        payload = TokenPayload.model_validate(decoded)
    except ValidationError as exc:
        raise ValueError("Invalid token payload") from exc
    if verify_type and payload.typ != verify_type:
        raise ValueError("Invalid token type")
    return payload
