"""
Shared fixtures: an in-memory token store and a stubbed Google API.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

import httpx
import pytest

from config.settings import Settings
from connectors.google_calendar import GoogleCalendarConnector
from connectors.token_store import TokenStore
from utils.schemas import CalendarLinkRecord


class InMemoryTokenStore(TokenStore):
    """Dict-backed ``TokenStore`` with the same merge semantics as the SQL one."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.saves: List[Tuple[str, Dict[str, Any]]] = []
        self.loads = 0
        self.fail_load = False
        self.fail_save_when: Optional[Callable[[Dict[str, Any]], bool]] = None

    def seed(self, user_id: str, **fields: Any) -> None:
        self.rows[user_id] = {"linked": False, "integration_enabled": True, **fields}

    async def load(self, user_id: str) -> Optional[CalendarLinkRecord]:
        self.loads += 1
        if self.fail_load:
            raise RuntimeError("settings backend unavailable")
        row = self.rows.get(user_id)
        if row is None:
            return None
        return CalendarLinkRecord(user_id=user_id, **row)

    async def save(self, user_id: str, **fields: Any) -> None:
        self.check_fields(fields)
        if self.fail_save_when is not None and self.fail_save_when(fields):
            raise RuntimeError("write rejected")
        self.saves.append((user_id, dict(fields)))
        row = self.rows.setdefault(user_id, {"linked": False, "integration_enabled": True})
        row.update(fields)


class GoogleStub:
    """Routes httpx requests to canned Google token / events responses."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.exchange: Tuple[int, Any] = (
            200,
            {"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 3600},
        )
        self.refresh: Tuple[int, Any] = (200, {"access_token": "refreshed-access", "expires_in": 3600})
        self.events: Tuple[int, Any] = (200, {"items": []})
        self.revoke_status = 200
        self.raise_on: Optional[str] = None  # "token" | "events"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/token":
            if self.raise_on == "token":
                raise httpx.ConnectError("connection refused", request=request)
            grant = self.form(request).get("grant_type")
            status, body = self.exchange if grant == "authorization_code" else self.refresh
            return httpx.Response(status, json=body)
        if path == "/revoke":
            return httpx.Response(self.revoke_status)
        if path.endswith("/events"):
            if self.raise_on == "events":
                raise httpx.ReadTimeout("timed out", request=request)
            status, body = self.events
            return httpx.Response(status, json=body)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @staticmethod
    def form(request: httpx.Request) -> Dict[str, str]:
        return dict(parse_qsl(request.content.decode()))

    def token_calls(self, grant_type: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.path == "/token" and self.form(r).get("grant_type") == grant_type
        ]

    def event_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/events")]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        google_client_id="client-123",
        google_client_secret="secret-456",
        oauth_redirect_base="https://app.example.com",
    )


@pytest.fixture
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def google() -> GoogleStub:
    return GoogleStub()


@pytest.fixture
def connector(settings: Settings, google: GoogleStub) -> GoogleCalendarConnector:
    return GoogleCalendarConnector(settings=settings, transport=google.transport)


def hours_from_now(hours: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=hours)
