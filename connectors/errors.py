"""
Error taxonomy for the calendar link flow.

Callback-path errors carry the ``reason`` code that ends up on the
error redirect.  Event-fetch errors are classified as permanent
(``ReauthRequiredError``, ``ProviderAuthError``: the link is cleared)
or transient (``TransientRefreshError``, ``TransientProviderError``:
the link is left alone).
"""

from __future__ import annotations

from typing import Optional


class CalendarLinkError(Exception):
    """Base class for every error raised by the calendar link flow."""

    reason: str = "unknown_callback_error"

    def __init__(self, message: str = "", *, reason: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if reason is not None:
            self.reason = reason


class ConfigurationError(CalendarLinkError):
    """Client id / secret / base URL missing from server config."""

    reason = "config_error"


class ProviderDeniedError(CalendarLinkError):
    """Provider redirected back with an ``error`` parameter (e.g. access_denied)."""


class MissingCodeError(CalendarLinkError):
    reason = "no_code"


class NoStateError(CalendarLinkError):
    reason = "no_state"


class StateValidationError(CalendarLinkError):
    """State did not verify as an identity token.

    ``reason`` is ``invalid_state_token`` when the verifier rejected the
    token and ``state_verification_failed`` when verification itself
    blew up.
    """

    reason = "invalid_state_token"


class TokenExchangeError(CalendarLinkError):
    """Code → token exchange rejected or returned an unusable body.

    The reason is the provider's ``error_description`` when it gave one.
    """


class ReauthRequiredError(CalendarLinkError):
    """Permanent: the stored grant is dead and the user must re-link."""


class TransientRefreshError(CalendarLinkError):
    """Refresh failed for a reason worth retrying (network, 5xx, bad body)."""


class ProviderAuthError(CalendarLinkError):
    """Event list returned 401 or 403: access revoked or scope removed."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"Provider returned {status_code}")
        self.status_code = status_code


class TransientProviderError(CalendarLinkError):
    """Event list failed with a non-auth status or a transport error."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"Provider returned {status_code}")
        self.status_code = status_code


class IdentityVerificationError(Exception):
    """Identity token could not be checked at all (malformed, undecodable)."""
