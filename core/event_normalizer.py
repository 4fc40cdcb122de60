"""
Map Google Calendar events onto the app's provider-agnostic event shape.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone, tzinfo
from typing import Dict, Tuple

from utils.schemas import NormalizedEvent, ProviderEvent

UNTITLED_EVENT = "(No Title)"
DEFAULT_EVENT_COLOR = "hsl(var(--muted))"

# Google event colorId -> theme color used by the planner UI.
GOOGLE_CALENDAR_COLORS: Dict[str, str] = {
    "1": "hsl(var(--chart-1))",
    "2": "hsl(var(--chart-2))",
    "3": "hsl(var(--chart-3))",
    "4": "hsl(var(--chart-4))",
    "5": "hsl(var(--chart-5))",
    "6": "hsl(var(--primary))",
    "7": "hsl(var(--accent))",
    "8": "hsl(var(--muted-foreground))",
    "9": "hsl(var(--destructive))",
    "10": "hsl(var(--secondary-foreground))",
    "11": "hsl(var(--foreground))",
}


def resolve_color(color_id: str | None) -> str:
    if not color_id:
        return DEFAULT_EVENT_COLOR
    return GOOGLE_CALENDAR_COLORS.get(color_id, DEFAULT_EVENT_COLOR)


def normalize_event(event: ProviderEvent) -> NormalizedEvent:
    """Pure mapping; the same input always yields the same output."""
    start, end = event.start, event.end
    start_time = (start.date_time or start.date) if start else None
    end_time = (end.date_time or end.date) if end else None
    return NormalizedEvent(
        id=event.id,
        title=event.summary or UNTITLED_EVENT,
        start_time=start_time or "",
        end_time=end_time or "",
        all_day=bool(start and start.date and not start.date_time),
        description=event.description,
        color=resolve_color(event.color_id),
    )


def day_window(day: date, tz: tzinfo = timezone.utc) -> Tuple[datetime, datetime]:
    """First and last instant of ``day`` in ``tz``, expressed in UTC."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
