"""
Calendar events endpoint.

Every answer carries an ``events`` list, even on failure, so the planner
UI can render without special-casing errors.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from connectors.dependencies import get_event_fetcher, get_identity_verifier
from core.event_fetcher import EventFetcher
from core.link_flow import IdentityVerifier, resolve_identity
from utils.schemas import CalendarEventsResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar"])

_bearer_scheme = HTTPBearer(auto_error=False)


def _error(message: str, status_code: int) -> JSONResponse:
    body = CalendarEventsResponse(error=message).model_dump(by_alias=True)
    return JSONResponse(body, status_code=status_code)


@router.get(
    "/calendar-events",
    response_model=CalendarEventsResponse,
    response_model_exclude_none=True,
)
async def calendar_events(
    date_param: Optional[str] = Query(None, alias="date"),
    tz: Optional[str] = Query(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    fetcher: EventFetcher = Depends(get_event_fetcher),
):
    """Events for one calendar day (``date=YYYY-MM-DD``, optional IANA ``tz``)."""
    if not date_param:
        return _error("Date parameter is required.", status.HTTP_400_BAD_REQUEST)
    try:
        day = date.fromisoformat(date_param)
    except ValueError:
        return _error("Invalid date format. Use YYYY-MM-DD.", status.HTTP_400_BAD_REQUEST)

    zone = None
    if tz:
        try:
            zone = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            return _error(f"Unknown time zone: {tz}", status.HTTP_400_BAD_REQUEST)

    if credentials is None or not credentials.credentials:
        return _error("Unauthorized. No token provided.", status.HTTP_401_UNAUTHORIZED)
    try:
        user_id = await resolve_identity(credentials.credentials, verifier)
    except Exception as exc:
        logger.warning("Identity token verification failed: %s", exc)
        user_id = None
    if not user_id:
        return _error("Unauthorized. Invalid token.", status.HTTP_401_UNAUTHORIZED)

    result = await fetcher.fetch_day(user_id, day, zone)
    if not result.ok:
        body = result.to_response().model_dump(by_alias=True)
        body["error"] = body["error"] or "Failed to fetch calendar events."
        return JSONResponse(body, status_code=result.status_code)
    return result.to_response()
