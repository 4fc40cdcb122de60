"""
SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CalendarLink(Base):
    """One row per user: Google Calendar credentials and link flags.

    Rows are never deleted by the link flow; unlinking clears the token
    columns and flips ``linked``.
    """

    __tablename__ = "calendar_links"

    user_id = Column(String(128), primary_key=True)
    access_token = Column(Text)          # Fernet ciphertext when encryption is on
    refresh_token = Column(Text)
    expires_at = Column(DateTime(timezone=True))
    linked = Column(Boolean, nullable=False, default=False)
    integration_enabled = Column(Boolean, nullable=False, default=True)
    last_fetched_at = Column(DateTime(timezone=True))
    last_refreshed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
