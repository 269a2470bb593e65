from datetime import date, datetime, timezone

import pytest

from tierscan.modules.scheduling.domain.calendar_gate import (
    CalendarGate,
    holidays_as_dicts,
    is_first_or_third_week,
    is_first_week_of_month,
    next_biweekly_toggle,
)
from tierscan.modules.scheduling.domain.holidays import ALL_HOLIDAYS, HOLIDAYS_BY_DATE
from tierscan.shared.core.config import Settings
from tests.fakes import JERUSALEM


@pytest.fixture
def gate():
    return CalendarGate(timezone=JERUSALEM)


def test_plain_weekday_is_allowed(gate):
    decision = gate.should_skip_today(datetime(2026, 10, 11, 8, 0, tzinfo=JERUSALEM))
    assert decision.skip is False
    assert decision.reason is None
    assert gate.is_run_allowed_today(datetime(2026, 10, 11, 8, 0, tzinfo=JERUSALEM))


@pytest.mark.parametrize(
    "day,expected",
    [(16, "Rest day: Friday"), (17, "Rest day: Saturday")],
)
def test_rest_days_are_skipped(gate, day, expected):
    decision = gate.should_skip_today(datetime(2026, 10, day, 8, 0, tzinfo=JERUSALEM))
    assert decision.skip is True
    assert decision.reason == expected


def test_holiday_reason_names_both_languages(gate):
    decision = gate.should_skip_today(datetime(2026, 9, 21, 8, 0, tzinfo=JERUSALEM))
    assert decision.skip is True
    assert decision.reason == "Holiday: Yom Kippur (יום כיפור)"


def test_rest_day_wins_over_holiday_on_same_date(gate):
    # Shemini Atzeret 2026 falls on a Friday.
    decision = gate.should_skip_today(datetime(2026, 10, 2, 8, 0, tzinfo=JERUSALEM))
    assert decision.reason == "Rest day: Friday"


def test_custom_skip_date():
    gate = CalendarGate(timezone=JERUSALEM, extra_skip_dates=frozenset({date(2026, 10, 12)}))
    decision = gate.should_skip_today(datetime(2026, 10, 12, 8, 0, tzinfo=JERUSALEM))
    assert decision == (True, "Custom skip day")


def test_aware_utc_instant_is_judged_in_local_timezone(gate):
    # Thursday 22:30 UTC is already Friday 01:30 in Jerusalem.
    decision = gate.should_skip_today(datetime(2026, 10, 15, 22, 30, tzinfo=timezone.utc))
    assert decision.reason == "Rest day: Friday"


def test_naive_datetime_is_taken_as_local(gate):
    assert gate.localize(datetime(2026, 10, 15, 23, 30)).day == 15
    assert gate.should_skip_today(datetime(2026, 10, 15, 23, 30)).skip is False


def test_configurable_rest_days():
    gate = CalendarGate(timezone=JERUSALEM, rest_weekdays=frozenset({5, 6}))
    assert gate.should_skip_today(datetime(2026, 10, 16, 8, 0, tzinfo=JERUSALEM)).skip is False
    assert gate.should_skip_today(datetime(2026, 10, 18, 8, 0, tzinfo=JERUSALEM)).reason == (
        "Rest day: Sunday"
    )


def test_upcoming_holidays_are_sorted_and_bounded(gate):
    upcoming = gate.upcoming_holidays(datetime(2026, 9, 20, 12, 0, tzinfo=JERUSALEM), count=3)
    assert [h.day for h in upcoming] == [
        date(2026, 9, 20),
        date(2026, 9, 21),
        date(2026, 9, 25),
    ]


def test_upcoming_holidays_empty_after_table_ends(gate):
    assert gate.upcoming_holidays(datetime(2028, 1, 1, tzinfo=JERUSALEM)) == []


def test_holiday_table_has_unique_dates():
    assert len(HOLIDAYS_BY_DATE) == len(ALL_HOLIDAYS)


def test_holidays_as_dicts():
    rows = holidays_as_dicts([HOLIDAYS_BY_DATE[date(2026, 9, 21)]])
    assert rows == [{"date": "2026-09-21", "name": "Yom Kippur", "name_he": "יום כיפור"}]


def test_from_settings():
    settings = Settings(
        TESTING=True, REST_WEEKDAYS=[5], EXTRA_SKIP_DATES="2026-10-12, 2026-10-13"
    )
    gate = CalendarGate.from_settings(settings)
    assert gate.rest_weekdays == frozenset({5})
    assert gate.extra_skip_dates == frozenset({date(2026, 10, 12), date(2026, 10, 13)})
    assert str(gate.timezone) == "Asia/Jerusalem"


@pytest.mark.parametrize(
    "day,first_week,first_or_third",
    [
        (1, True, True),
        (7, True, True),
        (8, False, False),
        (14, False, False),
        (15, False, True),
        (21, False, True),
        (22, False, False),
        (31, False, False),
    ],
)
def test_cadence_predicates(day, first_week, first_or_third):
    now = datetime(2026, 12, day, 8, 0, tzinfo=JERUSALEM)
    assert is_first_week_of_month(now) is first_week
    assert is_first_or_third_week(now) is first_or_third


def test_biweekly_toggle_alternates():
    toggle = False
    seen = []
    for _ in range(4):
        toggle = next_biweekly_toggle(toggle)
        seen.append(toggle)
    assert seen == [True, False, True, False]
