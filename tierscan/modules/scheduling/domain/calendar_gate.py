"""
Calendar Gate - run-day rules for enrichment scans

Decides whether calendar-gated triggers may do work on a given day: weekly
rest days and holidays are skipped. All checks run in the operative civil
timezone; aware datetimes are converted first, naive ones are taken as
already local.

Also hosts the small pure predicates the tier triggers use for their
monthly / bi-weekly cadence.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Iterable, Mapping, NamedTuple, Optional

from tierscan.modules.scheduling.domain.holidays import HOLIDAYS_BY_DATE, Holiday
from tierscan.shared.core.config import Settings

_WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class SkipDecision(NamedTuple):
    skip: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class CalendarGate:
    timezone: tzinfo
    rest_weekdays: frozenset[int] = frozenset({4, 5})
    extra_skip_dates: frozenset[date] = frozenset()
    holidays: Mapping[date, Holiday] = field(default_factory=lambda: HOLIDAYS_BY_DATE)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CalendarGate":
        return cls(
            timezone=settings.timezone,
            rest_weekdays=frozenset(settings.REST_WEEKDAYS),
            extra_skip_dates=settings.extra_skip_dates,
        )

    def localize(self, now: datetime) -> datetime:
        """Convert ``now`` into the operative timezone."""
        if now.tzinfo is None:
            return now.replace(tzinfo=self.timezone)
        return now.astimezone(self.timezone)

    def should_skip_today(self, now: datetime) -> SkipDecision:
        local = self.localize(now)
        today = local.date()

        if local.weekday() in self.rest_weekdays:
            return SkipDecision(True, f"Rest day: {_WEEKDAY_NAMES[local.weekday()]}")

        holiday = self.holidays.get(today)
        if holiday is not None:
            return SkipDecision(
                True, f"Holiday: {holiday.name_en} ({holiday.name_he})"
            )

        if today in self.extra_skip_dates:
            return SkipDecision(True, "Custom skip day")

        return SkipDecision(False)

    def is_run_allowed_today(self, now: datetime) -> bool:
        return not self.should_skip_today(now).skip

    def upcoming_holidays(self, now: datetime, count: int = 5) -> list[Holiday]:
        """Next ``count`` holidays on or after the local date of ``now``."""
        today = self.localize(now).date()
        upcoming = sorted(
            (h for h in self.holidays.values() if h.day >= today), key=lambda h: h.day
        )
        return upcoming[:count]


def is_first_week_of_month(local_now: datetime) -> bool:
    """True on days 1-7: a weekly trigger fires here once per month."""
    return local_now.day <= 7


def is_first_or_third_week(local_now: datetime) -> bool:
    """True on days 1-7 and 15-21, giving a weekly trigger a twice-monthly cadence."""
    d = local_now.day
    return 1 <= d <= 7 or 15 <= d <= 21


def next_biweekly_toggle(toggle: bool) -> bool:
    """Advance the alternating flag. Runs happen when the returned value is True."""
    return not toggle


def holidays_as_dicts(holidays: Iterable[Holiday]) -> list[dict[str, str]]:
    return [
        {"date": h.day.isoformat(), "name": h.name_en, "name_he": h.name_he}
        for h in holidays
    ]
