"""Provider integration routes: connect, callback, sync, disconnect, status."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ...errors import (
    AuthExchangeError,
    InvalidStateError,
    NotConnectedError,
    ProviderError,
    ReauthRequiredError,
    SyncInProgressError,
)
from ..app import (
    get_base_url,
    get_service,
    oauth_error_html,
    oauth_success_response,
    require_provider,
    verify_api_key,
)
from ..models import ConnectResponse, DisconnectResponse, SyncRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations")


def _not_connected(provider: str) -> HTTPException:
    return HTTPException(400, f"{provider} is not connected. Connect it first.")


def _reconnect(provider: str) -> HTTPException:
    return HTTPException(401, f"{provider} authorization expired. Please reconnect.")


@router.get("/{provider}/connect", response_model=ConnectResponse, dependencies=[Depends(verify_api_key)])
async def connect(provider: str, request: Request, user_id: str):
    """Start the OAuth flow. Returns the provider authorization URL."""
    provider = require_provider(provider)
    try:
        url, state = await get_service().authorization_url(user_id, provider, get_base_url(request))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"authorization_url": url, "state": state}


@router.get("/{provider}/callback")
async def callback(
    provider: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """OAuth redirect target -- exchange the code and store the credential."""
    provider = require_provider(provider)
    if error:
        logger.warning(f"{provider} OAuth returned error: {error}")
        return oauth_error_html(f"{provider} returned an error: {error}", 400)
    if not code or not state:
        return oauth_error_html("Missing authorization code or state.", 400)

    try:
        await get_service().handle_callback(provider, code, state, get_base_url(request))
    except InvalidStateError:
        return oauth_error_html("Invalid or expired state. Please try again.", 400)
    except AuthExchangeError as e:
        return oauth_error_html(e.message, 502)
    except ValueError as e:
        return oauth_error_html(str(e), 400)

    return oauth_success_response(provider)


@router.post("/{provider}/sync", dependencies=[Depends(verify_api_key)])
async def sync(provider: str, user_id: str, req: Optional[SyncRequest] = None):
    """Run a pull sync now."""
    provider = require_provider(provider)
    req = req or SyncRequest()
    try:
        result = await get_service().sync(
            user_id, provider, wait=req.wait, include_completed=req.include_completed
        )
    except NotConnectedError:
        raise _not_connected(provider)
    except ReauthRequiredError:
        raise _reconnect(provider)
    except SyncInProgressError as e:
        raise HTTPException(409, e.message)
    return result.to_dict()


@router.delete(
    "/{provider}/disconnect", response_model=DisconnectResponse, dependencies=[Depends(verify_api_key)]
)
async def disconnect(provider: str, user_id: str):
    """Remove the credential. Tasks stay, unlinked from the provider."""
    provider = require_provider(provider)
    try:
        cleared = await get_service().disconnect(user_id, provider)
    except NotConnectedError:
        raise HTTPException(404, f"{provider} is not connected")
    return {"success": True, "unlinked_tasks": cleared}


@router.get("/{provider}/status", dependencies=[Depends(verify_api_key)])
async def status(provider: str, user_id: str):
    provider = require_provider(provider)
    return await get_service().status(user_id, provider)


@router.get("/{provider}/lists", dependencies=[Depends(verify_api_key)])
async def lists(provider: str, user_id: str):
    """Task lists of the connected account."""
    provider = require_provider(provider)
    try:
        return {"lists": await get_service().lists(user_id, provider)}
    except NotConnectedError:
        raise _not_connected(provider)
    except ReauthRequiredError:
        raise _reconnect(provider)
    except ProviderError as e:
        raise HTTPException(502, str(e))


@router.get("/{provider}/test", dependencies=[Depends(verify_api_key)])
async def test_connection(provider: str, user_id: str):
    provider = require_provider(provider)
    try:
        return await get_service().test_connection(user_id, provider)
    except NotConnectedError:
        raise _not_connected(provider)
    except ReauthRequiredError:
        raise _reconnect(provider)
    except ProviderError as e:
        raise HTTPException(502, str(e))
