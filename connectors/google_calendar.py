"""
GoogleCalendarConnector — OAuth2 web flow and events.list for Google Calendar.

All HTTP goes through ``httpx.AsyncClient`` with a bounded timeout.  Every
provider response is validated against the schemas in ``utils.schemas``
before anything downstream sees it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from config.settings import Settings, config
from connectors.base import BaseConnector
from connectors.errors import (
    ConfigurationError,
    ProviderAuthError,
    ReauthRequiredError,
    TokenExchangeError,
    TransientProviderError,
    TransientRefreshError,
)
from utils.schemas import (
    OAuthErrorBody,
    ProviderErrorBody,
    ProviderEvent,
    TokenResponse,
)

logger = logging.getLogger(__name__)

# Google OAuth2 / Calendar endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
_GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

# Refresh failures that mean the grant is gone for good.
PERMANENT_REFRESH_ERRORS = frozenset({"invalid_grant", "unauthorized_client"})


def _oauth_error(resp: httpx.Response) -> OAuthErrorBody:
    try:
        return OAuthErrorBody.model_validate(resp.json())
    except (ValueError, ValidationError):
        return OAuthErrorBody()


def _provider_error_message(resp: httpx.Response) -> str:
    try:
        body = ProviderErrorBody.model_validate(resp.json())
    except (ValueError, ValidationError):
        return "Unknown error"
    if body.error and body.error.message:
        return body.error.message
    return "Unknown error"


class GoogleCalendarConnector(BaseConnector):
    """OAuth2 connector for Google Calendar (read-only events)."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or config
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Google Calendar"

    @property
    def scopes(self) -> List[str]:
        return list(self._settings.google_calendar_scopes)

    def is_configured(self) -> bool:
        s = self._settings
        return bool(s.google_client_id and s.google_client_secret and s.oauth_redirect_base)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.provider_timeout_seconds,
            transport=self._transport,
        )

    def _require_client_secret(self) -> None:
        if not self.is_configured():
            raise ConfigurationError("Google OAuth client id/secret or redirect base not configured")

    # ── OAuth ───────────────────────────────────────────────────────────

    def get_auth_url(self, state: Optional[str] = None) -> str:
        s = self._settings
        if not s.google_client_id or not s.oauth_redirect_base:
            raise ConfigurationError("Google client id or base URL is not configured")

        params = {
            "client_id": s.google_client_id,
            "redirect_uri": s.callback_redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
        }
        if state:
            params["state"] = state
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        self._require_client_secret()
        s = self._settings
        try:
            async with self._client() as client:
                resp = await client.post(
                    _GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": s.google_client_id,
                        "client_secret": s.google_client_secret,
                        "redirect_uri": s.callback_redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Token endpoint unreachable: {exc}", reason="token_exchange_failed")

        if not resp.is_success:
            err = _oauth_error(resp)
            logger.error(
                "Google token exchange failed: status=%s error=%s", resp.status_code, err.error
            )
            description = err.error_description or "Failed to exchange code for tokens."
            raise TokenExchangeError(description, reason=description)

        try:
            return TokenResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise TokenExchangeError(f"Malformed token response: {exc}", reason="invalid_token_response")

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        self._require_client_secret()
        s = self._settings
        try:
            async with self._client() as client:
                resp = await client.post(
                    _GOOGLE_TOKEN_URL,
                    data={
                        "client_id": s.google_client_id,
                        "client_secret": s.google_client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as exc:
            raise TransientRefreshError(f"Token endpoint unreachable: {exc}")

        if not resp.is_success:
            err = _oauth_error(resp)
            if err.error in PERMANENT_REFRESH_ERRORS:
                raise ReauthRequiredError(
                    f"Refresh rejected: {err.error} ({err.error_description or 'no description'})"
                )
            raise TransientRefreshError(
                f"Refresh failed with status {resp.status_code}: {err.error or 'unknown'}"
            )

        try:
            return TokenResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise TransientRefreshError(f"Malformed refresh response: {exc}")

    async def revoke_token(self, token: str) -> bool:
        """Revoke the token at Google."""
        try:
            async with self._client() as client:
                resp = await client.post(_GOOGLE_REVOKE_URL, params={"token": token})
        except httpx.HTTPError as exc:
            logger.warning("Google token revocation failed: %s", exc)
            return False
        return resp.status_code == 200

    # ── Events ──────────────────────────────────────────────────────────

    async def list_events(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
    ) -> List[ProviderEvent]:
        params = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": str(self._settings.calendar_max_results),
        }
        try:
            async with self._client() as client:
                resp = await client.get(
                    _GOOGLE_EVENTS_URL,
                    params=params,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise TransientProviderError(500, f"Google Calendar unreachable: {exc}")

        if resp.status_code in (401, 403):
            raise ProviderAuthError(resp.status_code, _provider_error_message(resp))
        if not resp.is_success:
            # Only 4xx/5xx are passed through; anything else becomes a bad gateway.
            status_code = resp.status_code if resp.status_code >= 400 else 502
            raise TransientProviderError(status_code, _provider_error_message(resp))

        try:
            payload = resp.json()
        except ValueError as exc:
            raise TransientProviderError(500, f"Malformed events response: {exc}")
        if not isinstance(payload, dict):
            raise TransientProviderError(500, "Malformed events response: expected an object")

        events: List[ProviderEvent] = []
        for item in payload.get("items") or []:
            try:
                events.append(ProviderEvent.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed calendar event: %s", exc.errors()[:1])
        return events
