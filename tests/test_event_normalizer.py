"""
Tests for mapping Google events to normalized events.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from core.event_normalizer import (
    DEFAULT_EVENT_COLOR,
    GOOGLE_CALENDAR_COLORS,
    UNTITLED_EVENT,
    day_window,
    normalize_event,
)
from utils.schemas import ProviderEvent


def _event(**overrides) -> ProviderEvent:
    payload = {
        "id": "evt-1",
        "summary": "Standup",
        "description": "Daily sync",
        "start": {"dateTime": "2024-06-01T09:00:00+02:00", "timeZone": "Europe/Berlin"},
        "end": {"dateTime": "2024-06-01T10:00:00+02:00"},
        "colorId": "3",
    }
    payload.update(overrides)
    return ProviderEvent.model_validate(payload)


class TestNormalizeEvent:
    def test_timed_event(self):
        event = normalize_event(_event())

        assert event.id == "evt-1"
        assert event.title == "Standup"
        assert event.start_time == "2024-06-01T09:00:00+02:00"
        assert event.end_time == "2024-06-01T10:00:00+02:00"
        assert event.all_day is False
        assert event.description == "Daily sync"
        assert event.color == GOOGLE_CALENDAR_COLORS["3"]

    def test_all_day_event(self):
        event = normalize_event(
            _event(start={"date": "2024-06-01"}, end={"date": "2024-06-02"})
        )

        assert event.all_day is True
        assert event.start_time == "2024-06-01"
        assert event.end_time == "2024-06-02"

    def test_timed_value_wins_over_date(self):
        event = normalize_event(
            _event(start={"date": "2024-06-01", "dateTime": "2024-06-01T08:00:00Z"})
        )
        assert event.all_day is False
        assert event.start_time == "2024-06-01T08:00:00Z"

    @pytest.mark.parametrize("summary", [None, ""])
    def test_missing_title_placeholder(self, summary):
        assert normalize_event(_event(summary=summary)).title == UNTITLED_EVENT

    @pytest.mark.parametrize("color_id", [None, "", "99"])
    def test_unmapped_color_falls_back(self, color_id):
        assert normalize_event(_event(colorId=color_id)).color == DEFAULT_EVENT_COLOR

    def test_missing_start_and_end(self):
        event = normalize_event(ProviderEvent(id="bare"))
        assert event.start_time == ""
        assert event.end_time == ""
        assert event.all_day is False

    def test_mapping_is_idempotent(self):
        raw = _event()
        assert normalize_event(raw) == normalize_event(raw)

    def test_serializes_with_camel_case_keys(self):
        dumped = normalize_event(_event()).model_dump(by_alias=True)
        assert {"startTime", "endTime", "allDay"} <= dumped.keys()


class TestEventTimes:
    @pytest.mark.parametrize(
        "start",
        [{"dateTime": "not a time"}, {"date": "2024-13-40"}, {"date": "tomorrow"}],
    )
    def test_unparseable_values_rejected(self, start):
        with pytest.raises(ValidationError):
            _event(start=start)

    def test_original_strings_kept(self):
        event = _event(start={"dateTime": "2024-06-01T09:00:00.000-07:00"})
        assert event.start.date_time == "2024-06-01T09:00:00.000-07:00"
        assert normalize_event(event).start_time == "2024-06-01T09:00:00.000-07:00"


class TestDayWindow:
    def test_utc_day(self):
        start, end = day_window(date(2024, 6, 1))

        assert start == datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
        assert end == datetime(2024, 6, 1, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_local_day_converted_to_utc(self):
        start, end = day_window(date(2024, 6, 1), ZoneInfo("America/New_York"))

        assert start == datetime(2024, 6, 1, 4, 0, tzinfo=timezone.utc)
        assert end.date() == date(2024, 6, 2)
        assert start.tzinfo == timezone.utc
