"""API key gate for the leaderboard HTTP API.

Endpoints fall into three tiers:

- **Public**: never gated (health, game catalog, leaderboard, API docs)
- **Admin**: always need the key when one is configured (score submission)
- **Read**: everything else; gated only when `API_READ_AUTH=true`

Environment:

- `API_KEY`: the shared secret. Unset means every endpoint is open.
- `API_PUBLIC_PREFIXES` / `API_ADMIN_PREFIXES`: comma-separated path prefixes
  overriding the defaults below.
- `API_READ_AUTH`: `true` to gate read endpoints as well.

The key is accepted from `X-API-Key`, `Authorization: Bearer <key>` or `?api_key=`.
"""
from __future__ import annotations

import hmac
import logging
import os
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_PREFIXES = (
    "/healthz",
    "/games",
    "/leaderboard",
    "/docs",
    "/redoc",
    "/openapi.json",
)

DEFAULT_ADMIN_PREFIXES = (
    "/scores",
)


def parse_prefixes(env_var: str, defaults: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return defaults
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def extract_api_key(request: Request) -> str | None:
    key = request.headers.get("x-api-key")
    if key:
        return key
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.query_params.get("api_key") or None


class APIKeyMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        api_key: str | None = None,
        public_prefixes: tuple[str, ...] | None = None,
        admin_prefixes: tuple[str, ...] | None = None,
        read_auth: bool = False,
    ):
        super().__init__(app)
        self.api_key = api_key
        self.public_prefixes = public_prefixes or parse_prefixes("API_PUBLIC_PREFIXES", DEFAULT_PUBLIC_PREFIXES)
        self.admin_prefixes = admin_prefixes or parse_prefixes("API_ADMIN_PREFIXES", DEFAULT_ADMIN_PREFIXES)
        self.read_auth = read_auth

    async def dispatch(self, request: Request, call_next: Callable):
        if not self.api_key or self.is_public(request.url.path):
            return await call_next(request)

        needs_key = self.is_admin(request.url.path) or self.read_auth
        if needs_key and not self.key_matches(request):
            return JSONResponse(status_code=401, content={"detail": "API key required"})
        return await call_next(request)

    def is_public(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.public_prefixes)

    def is_admin(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.admin_prefixes)

    def key_matches(self, request: Request) -> bool:
        key = extract_api_key(request)
        return key is not None and hmac.compare_digest(key, self.api_key)


def configure_auth(app) -> None:
    """Attach APIKeyMiddleware when API_KEY is set; otherwise leave the app open."""
    api_key = os.getenv("API_KEY", "").strip() or None
    read_auth = os.getenv("API_READ_AUTH", "false").lower() in ("true", "1", "yes")

    if not api_key:
        logger.info("API key auth disabled (API_KEY not set)")
        return

    app.add_middleware(APIKeyMiddleware, api_key=api_key, read_auth=read_auth)
    logger.info("API key auth enabled (read_auth=%s)", read_auth)
