"""
Token store — per-user persistence of the calendar link record.

``save`` is a merge: only the fields passed are written, everything else
on the row is left as it was.  Passing ``None`` for a field clears it.
No isolation between concurrent writers is promised; last write wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import decrypt_token, encrypt_token
from connectors.models import CalendarLink
from utils.schemas import CalendarLinkRecord

logger = logging.getLogger(__name__)

RECORD_FIELDS = frozenset(
    {
        "access_token",
        "refresh_token",
        "expires_at",
        "linked",
        "integration_enabled",
        "last_fetched_at",
        "last_refreshed_at",
    }
)
_ENCRYPTED_FIELDS = ("access_token", "refresh_token")


class TokenStore(ABC):
    """Contract for wherever link records live."""

    @abstractmethod
    async def load(self, user_id: str) -> Optional[CalendarLinkRecord]:
        """Return the user's record, or ``None`` if they never linked."""
        ...

    @abstractmethod
    async def save(self, user_id: str, **fields: Any) -> None:
        """Merge ``fields`` into the user's record, creating it if missing."""
        ...

    @staticmethod
    def check_fields(fields: dict) -> None:
        unknown = set(fields) - RECORD_FIELDS
        if unknown:
            raise ValueError(f"Unknown calendar link fields: {sorted(unknown)}")


class SqlTokenStore(TokenStore):
    """``TokenStore`` backed by the ``calendar_links`` table."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None) -> None:
        if session_factory is None:
            from database.session import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def load(self, user_id: str) -> Optional[CalendarLinkRecord]:
        async with self._session_factory() as session:
            row = await self._get(session, user_id)
            if row is None:
                return None
            return CalendarLinkRecord(
                user_id=row.user_id,
                access_token=decrypt_token(row.access_token),
                refresh_token=decrypt_token(row.refresh_token),
                expires_at=_as_utc(row.expires_at),
                linked=bool(row.linked),
                integration_enabled=bool(row.integration_enabled),
                last_fetched_at=_as_utc(row.last_fetched_at),
                last_refreshed_at=_as_utc(row.last_refreshed_at),
            )

    async def save(self, user_id: str, **fields: Any) -> None:
        self.check_fields(fields)
        values = dict(fields)
        for name in _ENCRYPTED_FIELDS:
            if name in values:
                values[name] = encrypt_token(values[name])

        async with self._session_factory() as session:
            try:
                row = await self._get(session, user_id)
                if row is None:
                    row = CalendarLink(user_id=user_id, linked=False, integration_enabled=True)
                    session.add(row)
                    logger.info("Created calendar link record for user %s", user_id)
                for name, value in values.items():
                    setattr(row, name, value)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @staticmethod
    async def _get(session: AsyncSession, user_id: str) -> Optional[CalendarLink]:
        result = await session.execute(
            select(CalendarLink).where(CalendarLink.user_id == user_id)
        )
        return result.scalar_one_or_none()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def mark_unlinked(store: TokenStore, user_id: str) -> None:
    """Flip ``linked`` off and clear every token field (row is kept)."""
    await store.save(
        user_id,
        linked=False,
        access_token=None,
        refresh_token=None,
        expires_at=None,
    )
    logger.info("Calendar unlinked for user %s", user_id)


async def bg_stamp_last_fetched(store: TokenStore, user_id: str) -> None:
    """Fire-and-forget: record when events were last fetched for the user."""
    try:
        await store.save(user_id, last_fetched_at=datetime.now(timezone.utc))
    except Exception:
        logger.exception("Background last_fetched_at update failed for user %s", user_id)
