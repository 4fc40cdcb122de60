"""
BaseConnector — abstract interface for the calendar provider.

Only Google is wired up today; the seam keeps the OAuth and REST details
of a provider out of the link flow and the event fetcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from utils.schemas import ProviderEvent, TokenResponse


class BaseConnector(ABC):
    """Abstract base for OAuth2 calendar connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug, e.g. 'google'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes requested at consent time."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: Optional[str] = None) -> str:
        """
        Build the provider's consent URL.

        Parameters
        ----------
        state : str, optional
            The initiating user's identity token, round-tripped to the
            callback.  Omitted from the URL when ``None``.

        Raises
        ------
        ConfigurationError
            Client id or redirect base is not configured.
        """
        ...

    @abstractmethod
    async def exchange_code(self, code: str) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Raises
        ------
        TokenExchangeError
            Non-2xx from the token endpoint, transport failure, or an
            unusable body.  ``reason`` carries the provider's description.
        """
        ...

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Mint a new access token from a refresh token.

        Raises
        ------
        ReauthRequiredError
            The grant is revoked / client no longer authorised.
        TransientRefreshError
            Anything else (network, 5xx, malformed body).
        """
        ...

    @abstractmethod
    async def list_events(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
    ) -> List[ProviderEvent]:
        """
        List single (expanded) events between ``time_min`` and ``time_max``.

        Raises
        ------
        ProviderAuthError
            401 / 403 from the provider.
        TransientProviderError
            Any other failure; carries the HTTP status.
        """
        ...

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke the token at the provider (optional).
        Returns True on success, False if provider doesn't support revocation.
        """
        return False

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        """Return True if client id, secret and redirect base are all set."""
        return True
