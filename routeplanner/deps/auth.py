from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from ..middlewares import principal_ctx_var
from .planner import get_planner


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str:
    """Return the caller's principal, or reject the request with 401.

    An empty ``API_KEY`` leaves the API open and the caller is ``anonymous``.
    """

    api_key = get_planner(request).settings.API_KEY
    if not api_key:
        _set_principal(request, "anonymous")
        return "anonymous"

    provided_key = (x_api_key or "").strip()
    if provided_key and hmac.compare_digest(api_key, provided_key):
        _set_principal(request, "api-key")
        return "api-key"

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
