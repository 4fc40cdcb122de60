"""
Tests for the OAuth callback flow — every exit must be a redirect.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from auth.jwt import create_token
from config.settings import Settings
from connectors.google_calendar import GoogleCalendarConnector
from core.link_flow import complete_authorization


def _redirect_params(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


async def _callback(connector, store, settings, **kwargs):
    params = {"code": "auth-code", "state": create_token("user-1"), "error": None}
    params.update(kwargs)
    return await complete_authorization(
        connector=connector, store=store, settings=settings, **params
    )


class TestCallbackSuccess:
    @pytest.mark.asyncio
    async def test_persists_linked_record_and_redirects(self, connector, store, settings, google):
        before = datetime.now(timezone.utc)
        target = await _callback(connector, store, settings)

        assert target == "https://app.example.com/planner?calendar_linked=true"
        row = store.rows["user-1"]
        assert row["linked"] is True
        assert row["access_token"] == "new-access"
        assert row["refresh_token"] == "new-refresh"
        assert before + timedelta(seconds=3590) < row["expires_at"] <= datetime.now(timezone.utc) + timedelta(seconds=3600)

    @pytest.mark.asyncio
    async def test_exchange_posts_expected_form(self, connector, store, settings, google):
        await _callback(connector, store, settings)

        (request,) = google.token_calls("authorization_code")
        form = google.form(request)
        assert form == {
            "code": "auth-code",
            "client_id": "client-123",
            "client_secret": "secret-456",
            "redirect_uri": "https://app.example.com/api/v1/auth/google/callback",
            "grant_type": "authorization_code",
        }

    @pytest.mark.asyncio
    async def test_reconsent_without_refresh_token_keeps_stored_one(self, connector, store, settings, google):
        store.seed("user-1", refresh_token="old-refresh", linked=False)
        google.exchange = (200, {"access_token": "second-access", "expires_in": 1800})

        await _callback(connector, store, settings)

        row = store.rows["user-1"]
        assert row["linked"] is True
        assert row["access_token"] == "second-access"
        assert row["refresh_token"] == "old-refresh"

    @pytest.mark.asyncio
    async def test_async_verifier_is_awaited(self, connector, store, settings):
        async def verifier(token):
            return "async-user"

        target = await _callback(connector, store, settings, verifier=verifier)

        assert target.endswith("calendar_linked=true")
        assert store.rows["async-user"]["linked"] is True


class TestCallbackFailures:
    @pytest.mark.asyncio
    async def test_provider_error_param(self, connector, store, settings, google):
        target = await _callback(connector, store, settings, error="access_denied")

        params = _redirect_params(target)
        assert params == {"calendar_error": "true", "reason": "access_denied"}
        assert google.requests == []
        assert store.saves == []

    @pytest.mark.asyncio
    async def test_missing_server_config(self, store, settings, google):
        unconfigured = Settings(_env_file=None, google_client_id="cid", google_client_secret="")
        connector = GoogleCalendarConnector(settings=unconfigured, transport=google.transport)

        target = await _callback(connector, store, settings)

        assert _redirect_params(target)["reason"] == "config_error"
        assert store.saves == []

    @pytest.mark.asyncio
    async def test_missing_code(self, connector, store, settings):
        target = await _callback(connector, store, settings, code=None)
        assert _redirect_params(target)["reason"] == "no_code"

    @pytest.mark.asyncio
    async def test_missing_state(self, connector, store, settings, google):
        target = await _callback(connector, store, settings, state=None)

        assert _redirect_params(target)["reason"] == "no_state"
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_rejected_state_token(self, connector, store, settings, google):
        expired = create_token("user-1", expires_in=-5)

        target = await _callback(connector, store, settings, state=expired)

        assert _redirect_params(target)["reason"] == "invalid_state_token"
        assert store.rows == {}
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_malformed_state_token(self, connector, store, settings):
        target = await _callback(connector, store, settings, state="definitely-not-a-token")

        assert _redirect_params(target)["reason"] == "state_verification_failed"
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_verifier_crash(self, connector, store, settings):
        def verifier(token):
            raise RuntimeError("identity backend down")

        target = await _callback(connector, store, settings, verifier=verifier)

        assert _redirect_params(target)["reason"] == "state_verification_failed"
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_exchange_rejected_uses_provider_description(self, connector, store, settings, google):
        google.exchange = (400, {"error": "invalid_grant", "error_description": "Bad Request"})

        target = await _callback(connector, store, settings)

        assert _redirect_params(target)["reason"] == "Bad Request"
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_exchange_without_description(self, connector, store, settings, google):
        google.exchange = (500, {})

        target = await _callback(connector, store, settings)

        assert _redirect_params(target)["reason"] == "Failed to exchange code for tokens."

    @pytest.mark.asyncio
    async def test_exchange_network_failure(self, connector, store, settings, google):
        google.raise_on = "token"

        target = await _callback(connector, store, settings)

        assert _redirect_params(target)["reason"] == "token_exchange_failed"
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_store_failure_still_redirects(self, connector, store, settings):
        store.fail_save_when = lambda fields: True

        target = await _callback(connector, store, settings)

        params = _redirect_params(target)
        assert params["calendar_error"] == "true"
        assert params["reason"] == "unknown_callback_error"
        assert "write rejected" not in target
