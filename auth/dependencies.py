"""
FastAPI dependencies for authentication.

Provides ``get_current_user_id`` for protected routes and
``get_optional_id_token`` for the consent redirect, which forwards the
raw token as OAuth state without checking it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

_bearer_scheme = HTTPBearer()
_optional_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """
    Extract and verify the Bearer token, returning the authenticated
    subject id.
    """
    from auth.jwt import verify_token

    return verify_token(credentials.credentials)


async def get_optional_id_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_optional_bearer_scheme),
    id_token: Optional[str] = Query(None, alias="idToken"),
) -> Optional[str]:
    """Identity token from ``Authorization: Bearer`` or ``?idToken=``, if any."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return id_token or None


async def get_verified_id_token(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Raw Bearer token, after checking that it verifies."""
    from auth.jwt import verify_token

    verify_token(credentials.credentials)
    return credentials.credentials
