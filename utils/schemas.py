"""
Pydantic schemas for the calendar link service.

Provider payloads are validated here at the boundary so the rest of the
code never reaches into raw JSON.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


# ═══════════════════════════════════════════════════════════════════════════════
# Google OAuth2 token endpoint
# ═══════════════════════════════════════════════════════════════════════════════


class TokenResponse(BaseModel):
    """Successful body from the token endpoint (code exchange or refresh)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    expires_in: int = Field(3600, gt=0)
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None


class OAuthErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: Optional[str] = None
    error_description: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Google Calendar events.list
# ═══════════════════════════════════════════════════════════════════════════════


_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)


class EventDateTime(BaseModel):
    """Event start/end as sent by Google.

    Values must parse as a date-time / ISO date but are kept as the
    provider's original strings so they pass through unchanged.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    date_time: Optional[str] = Field(None, alias="dateTime")
    date: Optional[str] = None
    time_zone: Optional[str] = Field(None, alias="timeZone")

    @field_validator("date_time")
    @classmethod
    def _check_date_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                _DATETIME.validate_python(value)
            except ValueError:
                raise ValueError(f"invalid dateTime: {value!r}") from None
        return value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                _DATE.validate_python(value)
            except ValueError:
                raise ValueError(f"invalid date: {value!r}") from None
        return value


class ProviderEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    summary: Optional[str] = None
    description: Optional[str] = None
    start: Optional[EventDateTime] = None
    end: Optional[EventDateTime] = None
    color_id: Optional[str] = Field(None, alias="colorId")
    html_link: Optional[str] = Field(None, alias="htmlLink")


class ProviderErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[int] = None
    message: Optional[str] = None


class ProviderErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: Optional[ProviderErrorDetail] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Stored link record
# ═══════════════════════════════════════════════════════════════════════════════


class CalendarLinkRecord(BaseModel):
    """Decrypted view of one user's ``calendar_links`` row."""

    user_id: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    linked: bool = False
    integration_enabled: bool = False
    last_fetched_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None

    def has_valid_access_token(self, now: Optional[datetime] = None) -> bool:
        """True only while an access token exists and ``now < expires_at``."""
        if not self.access_token or self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now < expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# API responses
# ═══════════════════════════════════════════════════════════════════════════════


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NormalizedEvent(_CamelModel):
    id: str
    title: str
    start_time: str
    end_time: str
    all_day: bool = False
    description: Optional[str] = None
    color: str


class CalendarEventsResponse(_CamelModel):
    events: List[NormalizedEvent] = Field(default_factory=list)
    error: Optional[str] = None


class EventFetchResult(BaseModel):
    """Outcome of one event-fetch request: HTTP status plus body."""

    status_code: int = 200
    events: List[NormalizedEvent] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and self.error is None

    def to_response(self) -> CalendarEventsResponse:
        return CalendarEventsResponse(events=self.events, error=self.error)


class LinkStatus(_CamelModel):
    linked: bool
    integration_enabled: bool
    expires_at: Optional[datetime] = None
    last_fetched_at: Optional[datetime] = None


class CalendarSettingsUpdate(_CamelModel):
    integration_enabled: bool


class AuthUrlResponse(BaseModel):
    auth_url: str
    provider: str
