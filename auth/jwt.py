"""
Identity token creation and verification.

Tokens are base64-encoded JSON payloads (``sub`` + ``exp``) signed with
HMAC-SHA256.  Secret key is loaded from ``config.jwt_secret``
(env var: ``JWT_SECRET``).

The same token doubles as the OAuth ``state`` parameter, so verification
distinguishes two failure modes: a token that is well-formed but not
acceptable (bad signature, expired) yields ``None``; a token that cannot
be parsed at all raises ``IdentityVerificationError``.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Optional

from fastapi import HTTPException, status

from config.settings import config
from connectors.errors import IdentityVerificationError


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(subject: str, expires_in: Optional[int] = None) -> str:
    """Create a signed token for ``subject``."""
    ttl = config.jwt_expiry_seconds if expires_in is None else expires_in
    payload = {"sub": subject, "exp": int(time.time()) + ttl}
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(raw)


def verify_identity_token(token: str) -> Optional[str]:
    """
    Return the subject id of a valid token, ``None`` if it is rejected.

    Raises ``IdentityVerificationError`` when the token is malformed.
    """
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise IdentityVerificationError("bad format")
    try:
        raw = b64decode(parts[0], validate=True)
        payload = json.loads(raw)
    except (binascii.Error, ValueError) as exc:
        raise IdentityVerificationError(f"undecodable payload: {exc}")
    if not isinstance(payload, dict):
        raise IdentityVerificationError("payload is not an object")

    if not hmac.compare_digest(parts[1], _sign(raw)):
        return None
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or exp < time.time():
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject


def verify_token(token: str) -> str:
    """
    Verify token and return the subject id.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        subject = verify_identity_token(token)
    except IdentityVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return subject
