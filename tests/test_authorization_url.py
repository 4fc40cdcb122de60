"""
Tests for the Google consent URL.
"""

from urllib.parse import parse_qs, urlparse

import pytest

from config.settings import Settings
from connectors.errors import ConfigurationError
from connectors.google_calendar import GoogleCalendarConnector
from core.link_flow import build_authorization_url


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestBuildAuthorizationUrl:
    def test_carries_all_oauth_parameters(self, connector):
        url = build_authorization_url(connector, "id-token-abc")

        parsed = urlparse(url)
        assert parsed.netloc == "accounts.google.com"
        params = _query(url)
        assert params["client_id"] == "client-123"
        assert params["redirect_uri"] == "https://app.example.com/api/v1/auth/google/callback"
        assert params["response_type"] == "code"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["state"] == "id-token-abc"
        assert params["scope"].split(" ") == connector.scopes

    def test_state_omitted_without_identity_token(self, connector):
        assert "state" not in _query(build_authorization_url(connector, None))

    @pytest.mark.parametrize(
        "overrides",
        [{"google_client_id": ""}, {"oauth_redirect_base": ""}],
    )
    def test_missing_config_raises(self, overrides):
        settings = Settings(
            _env_file=None,
            **{"google_client_id": "cid", "oauth_redirect_base": "https://x", **overrides},
        )
        with pytest.raises(ConfigurationError):
            build_authorization_url(GoogleCalendarConnector(settings=settings), "tok")
