"""
Shared-secret authentication middleware for the CleanView API.

/session/* and /credential/* require an X-CleanView-Secret header matching
CLEANVIEW_SHARED_SECRET. The front end attaches it when proxying requests.
"""

import secrets
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import ENVIRONMENT, SHARED_SECRET

PROTECTED_PREFIXES = ("/session", "/credential")


class SharedSecretMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests to session and credential endpoints."""

    def __init__(self, app, secret: str = SHARED_SECRET, environment: str = ENVIRONMENT):
        super().__init__(app)
        self.secret = secret
        self.environment = environment

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(PROTECTED_PREFIXES):
            return await call_next(request)

        if not self.secret:
            # Without a secret, only development traffic is allowed through
            if self.environment == "development":
                return await call_next(request)
            return JSONResponse(status_code=500, content={"detail": "CLEANVIEW_SHARED_SECRET not configured"})

        provided = request.headers.get("X-CleanView-Secret", "")
        if not secrets.compare_digest(provided, self.secret):
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing secret"})

        return await call_next(request)
