"""
Token manager — hand out a usable Google access token for a user.

Refresh is lazy: it only happens inside the request that found the token
expired.  There is no background refresher and no retry loop; a
transient failure is retried by whichever request comes next.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Optional

from connectors.base import BaseConnector
from connectors.errors import ReauthRequiredError, TransientRefreshError
from connectors.token_store import TokenStore, mark_unlinked
from utils.schemas import CalendarLinkRecord

logger = logging.getLogger(__name__)

# user_id -> lock; entries disappear once no request holds them.
_refresh_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(user_id: str) -> asyncio.Lock:
    lock = _refresh_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _refresh_locks[user_id] = lock
    return lock


class RefreshManager:
    """Guarantees a valid access token on demand, refreshing when needed."""

    def __init__(
        self,
        store: TokenStore,
        connector: BaseConnector,
        *,
        single_flight: bool = True,
    ) -> None:
        self._store = store
        self._connector = connector
        self._single_flight = single_flight

    async def ensure_valid_access_token(
        self,
        user_id: str,
        record: CalendarLinkRecord,
    ) -> str:
        """
        Return an access token that is valid right now.

        1. Stored token still before ``expires_at`` → returned as-is.
        2. Expired / missing with a refresh token → refresh, persist the new
           access token and expiry (refresh token kept), return it.
        3. Expired / missing without a refresh token → unlink and raise
           ``ReauthRequiredError``.

        Raises ``ReauthRequiredError`` (record unlinked) or
        ``TransientRefreshError`` (record untouched).
        """
        if record.has_valid_access_token():
            return record.access_token  # type: ignore[return-value]

        if not record.refresh_token:
            logger.warning("Access token expired and no refresh token for user %s", user_id)
            await self._unlink(user_id)
            raise ReauthRequiredError("Access token expired and no refresh token. Please re-link your calendar.")

        if not self._single_flight:
            return await self._refresh(user_id, record.refresh_token)

        async with _lock_for(user_id):
            # Another request may have refreshed (or unlinked) while we waited.
            try:
                current = await self._store.load(user_id)
            except Exception as exc:
                logger.exception("Could not reload calendar link for user %s", user_id)
                raise TransientRefreshError("Could not reload calendar link.") from exc
            if current is None or not current.linked:
                raise ReauthRequiredError("Calendar was unlinked. Please re-link your calendar.")
            if current.has_valid_access_token() and current.access_token != record.access_token:
                logger.debug("Using token refreshed by a concurrent request for user %s", user_id)
                return current.access_token  # type: ignore[return-value]
            refresh_token: Optional[str] = current.refresh_token or record.refresh_token
            if not refresh_token:
                await self._unlink(user_id)
                raise ReauthRequiredError("Access token expired and no refresh token. Please re-link your calendar.")
            return await self._refresh(user_id, refresh_token)

    async def _unlink(self, user_id: str) -> None:
        # The caller raises ReauthRequiredError either way.
        try:
            await mark_unlinked(self._store, user_id)
        except Exception:
            logger.exception("Failed to mark calendar unlinked for user %s", user_id)

    async def _refresh(self, user_id: str, refresh_token: str) -> str:
        try:
            tokens = await self._connector.refresh_access_token(refresh_token)
        except ReauthRequiredError as exc:
            logger.warning("Refresh grant rejected for user %s: %s", user_id, exc)
            await self._unlink(user_id)
            raise
        except TransientRefreshError as exc:
            logger.warning("Transient refresh failure for user %s: %s", user_id, exc)
            raise

        now = datetime.now(timezone.utc)
        try:
            await self._store.save(
                user_id,
                access_token=tokens.access_token,
                expires_at=now + timedelta(seconds=tokens.expires_in),
                last_refreshed_at=now,
            )
        except Exception as exc:
            logger.exception("Could not persist refreshed token for user %s", user_id)
            raise TransientRefreshError("Could not persist refreshed token.") from exc
        logger.info("Refreshed Google Calendar token for user %s", user_id)
        return tokens.access_token
