"""
EventFetcher — one day of a user's Google Calendar, normalized.

Failures never escape as exceptions: each outcome is an
``EventFetchResult`` carrying the HTTP status to answer with.  The link is
cleared only for permanent failures (dead refresh grant, 401/403 from the
events API); transient ones leave the record as it was.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, tzinfo
from typing import Optional, Set
from zoneinfo import ZoneInfo

from config.settings import Settings, config
from connectors.base import BaseConnector
from connectors.errors import (
    ConfigurationError,
    ProviderAuthError,
    ReauthRequiredError,
    TransientProviderError,
    TransientRefreshError,
)
from connectors.token_manager import RefreshManager
from connectors.token_store import TokenStore, bg_stamp_last_fetched, mark_unlinked
from core.event_normalizer import day_window, normalize_event
from utils.schemas import EventFetchResult

logger = logging.getLogger(__name__)

RELINK_MESSAGE = "Calendar access unauthorized or forbidden. Please try re-linking your Google Calendar."

# Strong refs so fire-and-forget tasks are not garbage collected mid-flight.
_background_tasks: Set[asyncio.Task] = set()


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class EventFetcher:
    def __init__(
        self,
        store: TokenStore,
        connector: BaseConnector,
        refresh_manager: RefreshManager,
        settings: Settings = config,
    ) -> None:
        self._store = store
        self._connector = connector
        self._refresh = refresh_manager
        self._settings = settings

    async def fetch_day(
        self,
        user_id: str,
        day: date,
        tz: Optional[tzinfo] = None,
    ) -> EventFetchResult:
        try:
            return await self._fetch_day(user_id, day, tz)
        except Exception:
            logger.exception("Unexpected error fetching calendar events for user %s", user_id)
            return EventFetchResult(status_code=500, error="Failed to fetch calendar events.")

    async def _fetch_day(
        self,
        user_id: str,
        day: date,
        tz: Optional[tzinfo],
    ) -> EventFetchResult:
        try:
            record = await self._store.load(user_id)
        except Exception:
            logger.exception("Could not load calendar settings for user %s", user_id)
            return EventFetchResult(status_code=500, error="Failed to load user settings.")

        # Integration off or never linked: nothing to show, not an error.
        if record is None or not record.integration_enabled or not record.linked:
            return EventFetchResult()

        try:
            access_token = await self._refresh.ensure_valid_access_token(user_id, record)
        except ReauthRequiredError as exc:
            return EventFetchResult(status_code=401, error=str(exc))
        except TransientRefreshError:
            return EventFetchResult(
                status_code=500,
                error="Could not refresh calendar access right now. Please try again shortly.",
            )
        except ConfigurationError as exc:
            logger.error("Calendar refresh misconfigured: %s", exc)
            return EventFetchResult(status_code=500, error="Server configuration error.")

        time_min, time_max = day_window(day, tz or ZoneInfo(self._settings.calendar_timezone))
        try:
            items = await self._connector.list_events(access_token, time_min, time_max)
        except ProviderAuthError as exc:
            logger.warning(
                "Google Calendar returned %s for user %s; unlinking", exc.status_code, user_id
            )
            try:
                await mark_unlinked(self._store, user_id)
            except Exception:
                logger.exception("Failed to mark calendar unlinked for user %s", user_id)
            return EventFetchResult(status_code=exc.status_code, error=RELINK_MESSAGE)
        except TransientProviderError as exc:
            logger.error("Google Calendar API error for user %s: %s", user_id, exc)
            return EventFetchResult(
                status_code=exc.status_code,
                error=f"Google Calendar API error: {exc}",
            )

        events = [normalize_event(item) for item in items]
        _spawn(bg_stamp_last_fetched(self._store, user_id))
        return EventFetchResult(events=events)
