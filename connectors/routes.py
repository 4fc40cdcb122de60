"""
Calendar link routes — consent redirect, OAuth callback, link status,
integration toggle, unlink.

Route prefix: /api/v1
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse

from auth.dependencies import get_current_user_id, get_optional_id_token, get_verified_id_token
from connectors.base import BaseConnector
from connectors.dependencies import get_connector, get_identity_verifier, get_token_store
from connectors.errors import ConfigurationError
from connectors.token_store import TokenStore, mark_unlinked
from core.link_flow import IdentityVerifier, build_authorization_url, complete_authorization
from utils.schemas import AuthUrlResponse, CalendarSettingsUpdate, LinkStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar-link"])


def _config_error_response() -> JSONResponse:
    return JSONResponse(
        {"error": "Server configuration error."},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ── OAuth ──────────────────────────────────────────────────────────────


@router.get("/auth/google/redirect")
async def google_redirect(
    id_token: Optional[str] = Depends(get_optional_id_token),
    connector: BaseConnector = Depends(get_connector),
):
    """Send the browser to Google's consent screen."""
    try:
        auth_url = build_authorization_url(connector, id_token)
    except ConfigurationError as exc:
        logger.error("Cannot start calendar linking: %s", exc)
        return _config_error_response()
    if not id_token:
        logger.warning("Calendar consent started without an identity token; callback will fail with no_state")
    return RedirectResponse(auth_url)


@router.get("/auth/google/auth-url", response_model=AuthUrlResponse)
async def google_auth_url(
    id_token: str = Depends(get_verified_id_token),
    connector: BaseConnector = Depends(get_connector),
):
    """
    Consent URL as JSON.

    Frontend should open this URL in a popup window.
    """
    try:
        auth_url = build_authorization_url(connector, id_token)
    except ConfigurationError as exc:
        logger.error("Cannot start calendar linking: %s", exc)
        return _config_error_response()
    return AuthUrlResponse(auth_url=auth_url, provider=connector.provider_name)


@router.get("/auth/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    connector: BaseConnector = Depends(get_connector),
    store: TokenStore = Depends(get_token_store),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> RedirectResponse:
    """
    OAuth callback — Google redirects here after consent.

    Always answers with a redirect back to the planner UI.
    """
    target = await complete_authorization(
        code=code,
        state=state,
        error=error,
        connector=connector,
        store=store,
        verifier=verifier,
    )
    return RedirectResponse(target)


# ── Link management ────────────────────────────────────────────────────


@router.get("/calendar/status", response_model=LinkStatus)
async def calendar_status(
    user_id: str = Depends(get_current_user_id),
    store: TokenStore = Depends(get_token_store),
) -> LinkStatus:
    """Link state for the authenticated user (tokens are never exposed)."""
    record = await store.load(user_id)
    if record is None:
        return LinkStatus(linked=False, integration_enabled=False)
    return LinkStatus(
        linked=record.linked,
        integration_enabled=record.integration_enabled,
        expires_at=record.expires_at,
        last_fetched_at=record.last_fetched_at,
    )


@router.put("/calendar/settings")
async def update_calendar_settings(
    update: CalendarSettingsUpdate,
    user_id: str = Depends(get_current_user_id),
    store: TokenStore = Depends(get_token_store),
) -> Dict[str, Any]:
    """Turn the calendar overlay on or off without touching the link."""
    await store.save(user_id, integration_enabled=update.integration_enabled)
    logger.info("Calendar integration %s for user %s",
                "enabled" if update.integration_enabled else "disabled", user_id)
    return {"integrationEnabled": update.integration_enabled}


@router.delete("/calendar/link")
async def unlink_calendar(
    user_id: str = Depends(get_current_user_id),
    store: TokenStore = Depends(get_token_store),
    connector: BaseConnector = Depends(get_connector),
) -> Dict[str, Any]:
    """Revoke (best-effort) and clear the user's Google Calendar link."""
    record = await store.load(user_id)
    if record is not None:
        token = record.refresh_token or record.access_token
        if token and not await connector.revoke_token(token):
            logger.warning("Google did not confirm token revocation for user %s", user_id)
    await mark_unlinked(store, user_id)
    return {"status": "unlinked"}
