from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.config import settings
from ..core.security import decode_token
from ..middlewares import principal_ctx_var


class AuthContext:
    """The verified caller; ``owner_id`` scopes every query."""

    def __init__(self, *, owner_id: str, scheme: str) -> None:
        self.owner_id = owner_id
        self.scheme = scheme


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_owner(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    """Resolve the owning account from an API key or a bearer token.

    Without a configured API key and without credentials the service runs as
    a single-user installation owned by ``DEFAULT_OWNER_ID``.
    """

    api_key = settings.API_KEY
    provided_key = (x_api_key or "").strip()
    if api_key and provided_key:
        if not hmac.compare_digest(api_key, provided_key):
            _unauthorized("Invalid API key")
        owner_id = settings.DEFAULT_OWNER_ID
        _set_principal(request, f"api-key:{owner_id}")
        return AuthContext(owner_id=owner_id, scheme="api_key")

    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() != "bearer" or not credentials:
            _unauthorized("Unsupported authorization scheme")
        try:
            payload = decode_token(credentials, verify_type="access")
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        _set_principal(request, f"jwt:{payload.sub}")
        request.state.token_payload = payload
        return AuthContext(owner_id=payload.sub, scheme="jwt")

    if not api_key:
        owner_id = settings.DEFAULT_OWNER_ID
        _set_principal(request, f"open:{owner_id}")
        return AuthContext(owner_id=owner_id, scheme="open")

    _unauthorized("Authorization required")
