"""
FastAPI dependencies wiring the connector, token store and services.

Tests swap any of these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from auth.jwt import verify_identity_token
from config.settings import config
from connectors.base import BaseConnector
from connectors.google_calendar import GoogleCalendarConnector
from connectors.token_manager import RefreshManager
from connectors.token_store import SqlTokenStore, TokenStore
from core.event_fetcher import EventFetcher
from core.link_flow import IdentityVerifier


@lru_cache(maxsize=1)
def get_connector() -> BaseConnector:
    return GoogleCalendarConnector()


@lru_cache(maxsize=1)
def get_token_store() -> TokenStore:
    return SqlTokenStore()


def get_identity_verifier() -> IdentityVerifier:
    return verify_identity_token


def get_refresh_manager(
    store: TokenStore = Depends(get_token_store),
    connector: BaseConnector = Depends(get_connector),
) -> RefreshManager:
    return RefreshManager(store, connector, single_flight=config.refresh_single_flight)


def get_event_fetcher(
    store: TokenStore = Depends(get_token_store),
    connector: BaseConnector = Depends(get_connector),
    refresh_manager: RefreshManager = Depends(get_refresh_manager),
) -> EventFetcher:
    return EventFetcher(store, connector, refresh_manager)
