"""
Calendar linking — consent URL and OAuth callback handling.

The callback is a browser navigation, so ``complete_authorization`` never
raises: every exit is a redirect URL, either the success page or the
error page with a ``reason`` code.  There is no retry; a failed callback
is terminal for that request.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import quote

from auth.jwt import verify_identity_token
from config.settings import Settings, config
from connectors.base import BaseConnector
from connectors.errors import (
    CalendarLinkError,
    ConfigurationError,
    MissingCodeError,
    NoStateError,
    ProviderDeniedError,
    StateValidationError,
)
from connectors.token_store import TokenStore

logger = logging.getLogger(__name__)

# verify(token) -> subject id, or None when the token is rejected.
IdentityVerifier = Callable[[str], Union[Optional[str], Awaitable[Optional[str]]]]


def build_authorization_url(connector: BaseConnector, id_token: Optional[str] = None) -> str:
    """Consent URL for ``connector``; the identity token rides along as ``state``.

    Raises ``ConfigurationError`` when the client id or base URL is missing.
    """
    return connector.get_auth_url(state=id_token or None)


def success_redirect(settings: Settings = config) -> str:
    return f"{settings.ui_base}?calendar_linked=true"


def error_redirect(reason: str, settings: Settings = config) -> str:
    return f"{settings.ui_base}?calendar_error=true&reason={quote(reason, safe='')}"


async def resolve_identity(token: str, verifier: IdentityVerifier) -> Optional[str]:
    """Run ``verifier`` whether it is sync or async; exceptions propagate."""
    subject = verifier(token)
    if inspect.isawaitable(subject):
        subject = await subject
    return subject


async def verify_state(state: Optional[str], verifier: IdentityVerifier) -> str:
    """Resolve the callback ``state`` to the subject id of the initiating user."""
    if not state:
        raise NoStateError("No state parameter received from Google callback")
    try:
        subject = await resolve_identity(state, verifier)
    except Exception as exc:
        raise StateValidationError(
            f"Error verifying identity token from state: {exc}",
            reason="state_verification_failed",
        )
    if not subject:
        raise StateValidationError("Invalid identity token in state parameter")
    return subject


async def complete_authorization(
    *,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    connector: BaseConnector,
    store: TokenStore,
    verifier: IdentityVerifier = verify_identity_token,
    settings: Settings = config,
) -> str:
    """
    Run the OAuth callback and return where the browser should go next.

    1. provider ``error`` param   → error redirect with that reason
    2. server config missing      → ``config_error``
    3. no ``code``                → ``no_code``
    4. ``state`` missing / bad    → ``no_state`` / ``invalid_state_token`` /
                                    ``state_verification_failed``
    5. code exchange fails        → provider's error description
    6. persist tokens, ``linked=True`` under the verified subject id
    7. success redirect
    """
    try:
        if error:
            raise ProviderDeniedError(f"Error received from Google OAuth: {error}", reason=error)
        if not connector.is_configured():
            raise ConfigurationError("Google OAuth environment variables are not configured")
        if not code:
            raise MissingCodeError("No authorization code received from Google")

        user_id = await verify_state(state, verifier)

        tokens = await connector.exchange_code(code)
        fields: dict[str, Any] = {
            "access_token": tokens.access_token,
            "expires_at": datetime.now(timezone.utc) + timedelta(seconds=tokens.expires_in),
            "linked": True,
        }
        # Google omits refresh_token on some re-consents; keep the stored one then.
        if tokens.refresh_token:
            fields["refresh_token"] = tokens.refresh_token
        await store.save(user_id, **fields)
    except CalendarLinkError as exc:
        logger.error("Calendar OAuth callback failed (%s): %s", exc.reason, exc)
        return error_redirect(exc.reason, settings)
    except Exception:
        # Exception text can carry SQL and token values; keep it out of the URL.
        logger.exception("Unexpected error in calendar OAuth callback")
        return error_redirect("unknown_callback_error", settings)

    logger.info("Google Calendar linked for user %s", user_id)
    return success_redirect(settings)
