"""Shared-secret auth middleware."""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app import config

logger = logging.getLogger("svgsync.auth")

_OPEN_PATHS = {"/health"}


def _get_secret(request: Request) -> Optional[str]:
    header = request.headers.get("X-Api-Secret")
    if header:
        return header.strip() or None
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def _auth_error(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        {
            "ok": False,
            "errors": [{"code": code, "message": message, "path": "X-Api-Secret", "detail": None}],
            "warnings": [],
        },
        status_code=401,
    )


class ApiSecretMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, secret: str) -> None:
        super().__init__(app)
        self._secret = secret

    async def dispatch(self, request: Request, call_next):
        if config.auth_disabled():
            return await call_next(request)
        if request.method == "OPTIONS" or request.url.path in _OPEN_PATHS:
            return await call_next(request)

        provided = _get_secret(request)
        if not provided:
            logger.warning("auth_missing_secret path=%s", request.url.path)
            return _auth_error("AUTH_MISSING_SECRET", "Missing API secret")
        if not hmac.compare_digest(provided.encode("utf-8"), self._secret.encode("utf-8")):
            logger.warning("auth_invalid_secret path=%s", request.url.path)
            return _auth_error("AUTH_INVALID_SECRET", "Invalid API secret")
        return await call_next(request)
