from datetime import datetime, time, timezone
from types import SimpleNamespace
from uuid import uuid4

from arbiter.services.operating_hours import (
    DEFAULT_OUT_OF_HOURS_MESSAGE,
    is_within_operating_hours,
    out_of_hours_message,
    parse_clock,
)


def _agent(**overrides):
    values = {
        "id": uuid4(),
        "operating_hours_enabled": True,
        "operating_hours_start": time(9, 0),
        "operating_hours_end": time(18, 0),
        "operating_hours_timezone": "America/Sao_Paulo",
        "out_of_hours_message": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _utc(hour, minute=0):
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


class TestIsWithinOperatingHours:
    def test_disabled_is_always_open(self):
        agent = _agent(operating_hours_enabled=False)
        assert is_within_operating_hours(agent, _utc(3)) is True

    def test_start_is_inclusive_in_local_time(self):
        agent = _agent()
        # Sao Paulo is UTC-3
        assert is_within_operating_hours(agent, _utc(11, 59)) is False
        assert is_within_operating_hours(agent, _utc(12, 0)) is True

    def test_end_is_exclusive_in_local_time(self):
        agent = _agent()
        assert is_within_operating_hours(agent, _utc(20, 59)) is True
        assert is_within_operating_hours(agent, _utc(21, 0)) is False

    def test_missing_bounds_use_defaults(self):
        agent = _agent(operating_hours_start=None, operating_hours_end=None)
        assert is_within_operating_hours(agent, _utc(12, 0)) is True
        assert is_within_operating_hours(agent, _utc(21, 0)) is False

    def test_window_across_midnight(self):
        agent = _agent(
            operating_hours_start=time(22, 0),
            operating_hours_end=time(6, 0),
            operating_hours_timezone="UTC",
        )
        assert is_within_operating_hours(agent, _utc(23, 0)) is True
        assert is_within_operating_hours(agent, _utc(5, 59)) is True
        assert is_within_operating_hours(agent, _utc(6, 0)) is False
        assert is_within_operating_hours(agent, _utc(12, 0)) is False

    def test_unknown_timezone_falls_back_to_default(self):
        agent = _agent(operating_hours_timezone="Mars/Olympus_Mons")
        assert is_within_operating_hours(agent, _utc(11, 59)) is False
        assert is_within_operating_hours(agent, _utc(12, 0)) is True

    def test_string_bounds(self):
        agent = _agent(operating_hours_start="08:30", operating_hours_end="12:00")
        assert is_within_operating_hours(agent, _utc(11, 30)) is True
        assert is_within_operating_hours(agent, _utc(15, 0)) is False


class TestParseClock:
    def test_string(self):
        assert parse_clock("08:30", time(9, 0)) == time(8, 30)

    def test_seconds_are_ignored(self):
        assert parse_clock("18:00:00", time(9, 0)) == time(18, 0)

    def test_empty_uses_default(self):
        assert parse_clock(None, time(9, 0)) == time(9, 0)
        assert parse_clock("", time(9, 0)) == time(9, 0)


class TestOutOfHoursMessage:
    def test_default(self):
        assert out_of_hours_message(_agent()) == DEFAULT_OUT_OF_HOURS_MESSAGE

    def test_custom(self):
        assert out_of_hours_message(_agent(out_of_hours_message="Fechado agora.")) == "Fechado agora."
