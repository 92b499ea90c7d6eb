"""FastAPI app creation, CORS, global service, and helper functions."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.security import APIKeyHeader

from ..config import load_settings
from ..constants import SUPPORTED_PROVIDERS
from ..service import TaskSyncService

logger = logging.getLogger(__name__)

_service: Optional[TaskSyncService] = None


def get_service() -> TaskSyncService:
    """Return the process-wide TaskSyncService. Lazy-loads on first call."""
    global _service
    if _service is None:
        _service = TaskSyncService(load_settings())
    return _service


def set_service(service: Optional[TaskSyncService]):
    """Replace the global service (tests, embedding apps)."""
    global _service
    _service = service


def require_provider(provider: str) -> str:
    provider = provider.lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(404, f"Unknown provider: {provider}")
    return provider


# ── Optional API key authentication ──

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key_header_value: Optional[str] = Security(_api_key_header),
):
    """Verify API key from Authorization: Bearer <key> or X-API-Key header.

    When TASKSYNC_API_KEY is not set, all requests are allowed (dev mode).
    """
    api_key = os.getenv("TASKSYNC_API_KEY")
    if api_key is None:
        return None

    if api_key_header_value and api_key_header_value == api_key:
        return api_key_header_value

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        if token == api_key:
            return token

    raise HTTPException(401, "Invalid or missing API key")


def get_base_url(request: Request) -> str:
    """Determine base URL from request, respecting reverse proxy headers."""
    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get(
        "x-forwarded-host", request.headers.get("host", "localhost:8000")
    )
    return f"{proto}://{host}"


def oauth_error_html(message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        f"<html><body style='font-family:sans-serif;text-align:center;padding:60px'>"
        f"<h2>Connection failed</h2><p>{message}</p></body></html>",
        status_code=status_code,
    )


def oauth_success_response(provider: str) -> HTMLResponse:
    """Redirect to the configured success URL, or a small HTML page without one."""
    redirect_url = get_service().settings.success_redirect_url
    if redirect_url:
        sep = "&" if "?" in redirect_url else "?"
        return RedirectResponse(f"{redirect_url}{sep}success=true&provider={provider}")
    return HTMLResponse(
        f"<html><body style='font-family:sans-serif;text-align:center;padding:60px'>"
        f"<h2>Connected!</h2><p>{provider} tasks will now sync.</p>"
        f"<script>"
        f"window.opener&&window.opener.postMessage('oauth_complete','*');"
        f"setTimeout(()=>window.close(),1500);"
        f"</script></body></html>"
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    service = get_service()
    await service.start_scheduler()
    yield
    await service.shutdown()


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="tasksync", version="0.1.0", lifespan=_lifespan)

    allowed_origins_str = os.getenv(
        "TASKSYNC_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    )
    allowed_origins = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if os.getenv("TASKSYNC_API_KEY") is None:
        logger.warning(
            "TASKSYNC_API_KEY is not set. API endpoints are unauthenticated. "
            "Set TASKSYNC_API_KEY environment variable to enable authentication."
        )

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
