from __future__ import annotations

from .request_id import RequestIdMiddleware, principal_ctx_var, request_id_ctx_var

__all__ = [
    "RequestIdMiddleware",
    "principal_ctx_var",
    "request_id_ctx_var",
]
