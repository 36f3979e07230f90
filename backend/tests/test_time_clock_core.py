# tests/test_time_clock_core.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from witar.core.time_clock import (
    BREAK_END,
    BREAK_START,
    CLOCK_IN,
    CLOCK_OUT,
    STATE_OFF,
    STATE_ON_BREAK,
    STATE_WORKING,
    TimeClockError,
    format_duration,
    local_day_bounds,
    reconstruct_session,
    summarize_sessions,
    total_worked_seconds,
    validate_transition,
    worked_seconds_by_day,
    zone_or_utc,
)

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@dataclass
class P:
    entry_type: str
    entry_time: datetime


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def test_no_entries_is_off():
    s = reconstruct_session([], now=T0)
    assert s.state == STATE_OFF
    assert s.allowed_entry_types == (CLOCK_IN,)
    assert s.elapsed_seconds == 0


def test_working_session_elapsed():
    s = reconstruct_session([P(CLOCK_IN, at(0))], now=at(90))
    assert s.state == STATE_WORKING
    assert s.started_at == at(0)
    assert s.elapsed_seconds == 90 * 60
    assert set(s.allowed_entry_types) == {BREAK_START, CLOCK_OUT}


def test_running_break_is_not_worked_time():
    entries = [P(CLOCK_IN, at(0)), P(BREAK_START, at(60))]
    s = reconstruct_session(entries, now=at(75))
    assert s.state == STATE_ON_BREAK
    assert s.break_started_at == at(60)
    assert s.paused_seconds == 15 * 60
    assert s.elapsed_seconds == 60 * 60


def test_closed_breaks_accumulate():
    entries = [
        P(CLOCK_IN, at(0)),
        P(BREAK_START, at(30)),
        P(BREAK_END, at(40)),
        P(BREAK_START, at(100)),
        P(BREAK_END, at(105)),
    ]
    s = reconstruct_session(entries, now=at(120))
    assert s.state == STATE_WORKING
    assert s.paused_seconds == 15 * 60
    assert s.elapsed_seconds == 105 * 60


def test_clock_out_ends_session():
    entries = [P(CLOCK_IN, at(0)), P(CLOCK_OUT, at(480))]
    s = reconstruct_session(entries, now=at(500))
    assert s.state == STATE_OFF
    assert s.last_entry_type == CLOCK_OUT


def test_entries_are_replayed_in_time_order():
    entries = [P(CLOCK_OUT, at(60)), P(CLOCK_IN, at(0))]
    s = reconstruct_session(entries, now=at(70))
    assert s.state == STATE_OFF


def test_equal_timestamps_replay_in_lifecycle_order():
    entries = [P(CLOCK_OUT, at(0)), P(CLOCK_IN, at(0))]
    s = reconstruct_session(entries, now=at(10))
    assert s.state == STATE_OFF


def test_session_older_than_limit_is_stale_and_off():
    s = reconstruct_session([P(CLOCK_IN, at(0))], now=at(25 * 60), max_session_hours=24)
    assert s.state == STATE_OFF
    assert s.is_stale is True
    assert s.started_at == at(0)
    validate_transition(s, CLOCK_IN)


def test_stale_check_can_be_disabled():
    s = reconstruct_session([P(CLOCK_IN, at(0))], now=at(25 * 60), max_session_hours=None)
    assert s.state == STATE_WORKING
    assert s.is_stale is False


def test_out_of_sequence_entries_are_ignored():
    entries = [P(BREAK_END, at(0)), P(CLOCK_IN, at(5)), P(BREAK_END, at(10))]
    s = reconstruct_session(entries, now=at(20))
    assert s.state == STATE_WORKING
    assert s.paused_seconds == 0


@pytest.mark.parametrize(
    "entries,entry_type",
    [
        ([], CLOCK_OUT),
        ([], BREAK_START),
        ([P(CLOCK_IN, T0)], CLOCK_IN),
        ([P(CLOCK_IN, T0)], BREAK_END),
        ([P(CLOCK_IN, T0), P(BREAK_START, at(1))], BREAK_START),
    ],
)
def test_invalid_transitions(entries, entry_type):
    s = reconstruct_session(entries, now=at(30))
    with pytest.raises(TimeClockError) as exc:
        validate_transition(s, entry_type)
    assert exc.value.state == s.state
    assert exc.value.allowed == s.allowed_entry_types


def test_clock_out_allowed_from_break():
    s = reconstruct_session([P(CLOCK_IN, T0), P(BREAK_START, at(10))], now=at(20))
    validate_transition(s, CLOCK_OUT)


def test_unknown_entry_type_rejected():
    with pytest.raises(TimeClockError):
        validate_transition(reconstruct_session([], now=T0), "lunch")


def test_summarize_sessions_subtracts_breaks():
    entries = [
        P(CLOCK_IN, at(0)),
        P(BREAK_START, at(120)),
        P(BREAK_END, at(150)),
        P(CLOCK_OUT, at(480)),
        P(CLOCK_IN, at(600)),
    ]
    intervals = summarize_sessions(entries, now=at(660))
    assert len(intervals) == 2
    assert intervals[0].worked_seconds == 450 * 60
    assert intervals[1].is_open is True
    assert intervals[1].worked_seconds == 60 * 60
    assert total_worked_seconds(intervals) == 510 * 60


def test_clock_out_during_break_closes_the_break():
    entries = [P(CLOCK_IN, at(0)), P(BREAK_START, at(60)), P(CLOCK_OUT, at(90))]
    (interval,) = summarize_sessions(entries, now=at(100))
    assert interval.worked_seconds == 60 * 60


def test_worked_seconds_by_local_start_day():
    madrid = ZoneInfo("Europe/Madrid")
    late = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)  # 00:30 on the 3rd in Madrid
    entries = [P(CLOCK_IN, late), P(CLOCK_OUT, late + timedelta(hours=1))]
    by_day = worked_seconds_by_day(summarize_sessions(entries, now=late + timedelta(hours=2)), madrid)
    assert by_day == {date(2026, 3, 3): 3600}


def test_format_duration():
    assert format_duration(0) == "00:00:00"
    assert format_duration(3661) == "01:01:01"
    assert format_duration(26 * 3600) == "26:00:00"
    assert format_duration(-5) == "00:00:00"


def test_zone_or_utc_falls_back():
    assert zone_or_utc("Europe/Madrid") == ZoneInfo("Europe/Madrid")
    assert zone_or_utc("Mars/Olympus") == ZoneInfo("UTC")
    assert zone_or_utc(None) == ZoneInfo("UTC")


def test_local_day_bounds():
    madrid = ZoneInfo("Europe/Madrid")
    start, end = local_day_bounds(date(2026, 3, 2), date(2026, 3, 2), madrid)
    assert start == datetime(2026, 3, 1, 23, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 2, 23, 0, tzinfo=timezone.utc)
    assert local_day_bounds(None, None, madrid) == (None, None)
