"""Call-slot availability.

Candidate slots come from fixed daily windows. A slot is offerable when it
is at least ``lead_time`` away and nobody has booked it. Booked calls are
fetched page by page from the backend; a failed fetch is treated as "no
bookings known" so scheduling never blocks on it.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx

from solarquote.api import FunnelAPI

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Dublin"
MAX_PAGES = 100

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}

_DATE_RE = re.compile(r"^([A-Za-z]+)\s+(\d{1,2}),\s*(\d{4})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")


class SlotUnavailableError(ValueError):
    """The chosen slot is booked or no longer meets the lead time."""


@dataclass(frozen=True)
class SlotRules:
    windows: tuple[tuple[int, int], ...] = ((9, 11), (16, 18))
    tomorrow_windows: tuple[tuple[int, int], ...] = ((16, 18),)
    step_minutes: int = 15
    lead_time: timedelta = timedelta(hours=4)
    closed_weekdays: frozenset[int] = field(default_factory=lambda: frozenset({6}))  # Sunday
    scan_days: int = 180


@dataclass(frozen=True)
class CandidateSlot:
    label: str
    instant: datetime


def _now(tz: ZoneInfo) -> datetime:
    """Current time in the calendar timezone. Extracted for test mocking."""
    return datetime.now(tz)


def format_label(hour: int, minute: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def format_call_date(day: date) -> str:
    """``August 15, 2025`` form used on the wire."""
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def parse_call_time(value: str) -> time | None:
    match = _TIME_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        return None
    if meridiem == "PM" and hour != 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0
    return time(hour, minute)


def parse_call_datetime(call_date: str, call_time: str, tz: ZoneInfo) -> datetime | None:
    """Parse ``"August 15, 2025"`` + ``"10:00 AM"`` into an aware datetime."""
    match = _DATE_RE.match((call_date or "").strip())
    if not match:
        return None
    month = MONTHS.get(match.group(1).lower())
    parsed_time = parse_call_time(call_time)
    if month is None or parsed_time is None:
        return None
    try:
        day = date(int(match.group(3)), month, int(match.group(2)))
    except ValueError:
        return None
    return datetime.combine(day, parsed_time, tzinfo=tz)


def generate_candidate_slots(day: date, now: datetime, rules: SlotRules, tz: ZoneInfo) -> list[CandidateSlot]:
    """Every slot in the day's windows, in chronological order.

    Each window includes its end time only when it falls on the hour. The
    day after ``now`` only gets ``rules.tomorrow_windows``.
    """
    tomorrow = now.astimezone(tz).date() + timedelta(days=1)
    windows = rules.tomorrow_windows if day == tomorrow else rules.windows
    slots = []
    for start_hour, end_hour in windows:
        minutes = start_hour * 60
        while minutes <= end_hour * 60:
            hour, minute = divmod(minutes, 60)
            slots.append(CandidateSlot(
                label=format_label(hour, minute),
                instant=datetime.combine(day, time(hour, minute), tzinfo=tz),
            ))
            minutes += rules.step_minutes
    return slots


class AvailabilityResolver:
    def __init__(
        self,
        api: FunnelAPI,
        rules: SlotRules | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        per_page: int = 50,
    ):
        self.api = api
        self.rules = rules or SlotRules()
        self.tz = ZoneInfo(timezone)
        self.per_page = per_page
        self.booked: set[datetime] = set()

    def now(self) -> datetime:
        return _now(self.tz)

    async def refresh(self) -> set[datetime]:
        """Reload booked instants from the backend, one page at a time."""
        booked: set[datetime] = set()
        page = 1
        try:
            while page <= MAX_PAGES:
                data = await self.api.get_booked_calls(page=page, per_page=self.per_page)
                calls = data.get("calls") if isinstance(data, dict) else None
                for call in calls or []:
                    if not isinstance(call, dict):
                        continue
                    instant = parse_call_datetime(call.get("call_date", ""), call.get("call_time", ""), self.tz)
                    if instant is not None:
                        booked.add(instant)
                if not (isinstance(data, dict) and data.get("has_next")):
                    break
                page += 1
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Booked calls fetch failed, treating as no bookings: %s", e)
            booked = set()
        self.booked = booked
        logger.info("Loaded %d booked call slots", len(booked))
        return booked

    def candidate_slots(self, day: date, now: datetime | None = None) -> list[CandidateSlot]:
        return generate_candidate_slots(day, now or self.now(), self.rules, self.tz)

    def _offerable(self, slot: CandidateSlot, now: datetime) -> bool:
        if slot.instant in self.booked:
            return False
        # Elapsed time, so compare in UTC
        return slot.instant.astimezone(timezone.utc) >= now.astimezone(timezone.utc) + self.rules.lead_time

    def offerable_slots(self, day: date, now: datetime | None = None) -> list[str]:
        now = now or self.now()
        return [slot.label for slot in self.candidate_slots(day, now) if self._offerable(slot, now)]

    def is_offerable(self, day: date, label: str, now: datetime | None = None) -> bool:
        return label in self.offerable_slots(day, now)

    def check_slot(self, day: date, label: str, now: datetime | None = None) -> None:
        now = now or self.now()
        if not self.is_date_selectable(day, now) or not self.is_offerable(day, label, now):
            raise SlotUnavailableError(f"{format_call_date(day)} {label} is no longer available")

    def is_date_selectable(self, day: date, now: datetime | None = None) -> bool:
        now = now or self.now()
        if day < now.astimezone(self.tz).date():
            return False
        if day.weekday() in self.rules.closed_weekdays:
            return False
        return bool(self.offerable_slots(day, now))

    def first_available_date(self, now: datetime | None = None) -> date | None:
        """First selectable date within ``rules.scan_days``. Informational only."""
        now = now or self.now()
        today = now.astimezone(self.tz).date()
        for offset in range(self.rules.scan_days):
            day = today + timedelta(days=offset)
            if self.is_date_selectable(day, now):
                return day
        return None
