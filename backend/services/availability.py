"""Appointment slot grid and availability resolution.

Slots are 15 minutes long, Monday to Friday, 09:00-17:00 wall-clock time in
the business timezone. Each local start time is converted to an absolute
instant through the tz database for its own date, so a window that crosses a
DST transition keeps every slot on the local grid.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

BUSINESS_TIMEZONE = ZoneInfo("Europe/Zurich")
SLOT_DURATION_MINUTES = 15
OPENING_HOUR = 9
CLOSING_HOUR = 17
WORKING_WEEKDAYS = frozenset(range(5))  # Monday..Friday


def isoformat_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp without UTC offset: {value}")
    return parsed


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Half-open: touching boundaries do not overlap.
        return start < self.end and end > self.start


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start_time: time
    start: datetime
    available: bool
    duration_minutes: int = SLOT_DURATION_MINUTES

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "time": self.start_time.strftime("%H:%M"),
            "datetime": isoformat_utc(self.start),
            "available": self.available,
        }


@dataclass(frozen=True)
class AvailabilitySummary:
    total_slots: int
    available_slots: int
    slots_by_date: dict[str, list[TimeSlot]] = field(default_factory=dict)


def local_date(instant: datetime) -> date:
    return instant.astimezone(BUSINESS_TIMEZONE).date()


def local_instant(day: date, start_time: time) -> datetime:
    """Absolute (UTC) instant of a wall-clock time on ``day`` in the business timezone."""
    return datetime.combine(day, start_time, tzinfo=BUSINESS_TIMEZONE).astimezone(timezone.utc)


def _daily_start_times() -> list[time]:
    start_times: list[time] = []
    minutes = OPENING_HOUR * 60
    while minutes + SLOT_DURATION_MINUTES <= CLOSING_HOUR * 60:
        start_times.append(time(minutes // 60, minutes % 60))
        minutes += SLOT_DURATION_MINUTES
    return start_times


def generate_slots(
    window_start: datetime,
    window_end: datetime,
    busy_intervals: list[BusyInterval],
    now: datetime | None = None,
) -> list[TimeSlot]:
    now = now or datetime.now(tz=timezone.utc)
    duration = timedelta(minutes=SLOT_DURATION_MINUTES)
    start_times = _daily_start_times()

    slots: list[TimeSlot] = []
    day = local_date(window_start)
    last_day = local_date(window_end)
    while day <= last_day:
        if day.weekday() in WORKING_WEEKDAYS:
            for start_time in start_times:
                slot_start = local_instant(day, start_time)
                if slot_start <= now:
                    continue
                slot_end = slot_start + duration
                available = not any(busy.overlaps(slot_start, slot_end) for busy in busy_intervals)
                slots.append(TimeSlot(date=day, start_time=start_time, start=slot_start, available=available))
        day += timedelta(days=1)
    return slots


def resolve(slots: list[TimeSlot]) -> AvailabilitySummary:
    available = [slot for slot in slots if slot.available]
    grouped: dict[str, list[TimeSlot]] = defaultdict(list)
    for slot in available:
        grouped[slot.date.isoformat()].append(slot)
    return AvailabilitySummary(
        total_slots=len(slots),
        available_slots=len(available),
        slots_by_date=dict(grouped),
    )


def availability_window(days_ahead: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Local midnight today through the last microsecond of today + ``days_ahead``."""
    now = now or datetime.now(tz=timezone.utc)
    today = local_date(now)
    start = datetime.combine(today, time.min, tzinfo=BUSINESS_TIMEZONE)
    end = datetime.combine(today + timedelta(days=days_ahead), time.max, tzinfo=BUSINESS_TIMEZONE)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
