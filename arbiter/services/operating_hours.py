from datetime import datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from arbiter.logging_config import get_logger

logger = get_logger("operating_hours")

DEFAULT_START = time(9, 0)
DEFAULT_END = time(18, 0)
DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_OUT_OF_HOURS_MESSAGE = (
    "Olá! Nosso horário de atendimento é das 09:00 às 18:00. "
    "Deixe sua mensagem que responderemos assim que possível! 🕐"
)


def parse_clock(value: Union[time, str, None], default: time) -> time:
    """Accept a ``time`` or an ``HH:MM`` string."""
    if value is None or value == "":
        return default
    if isinstance(value, time):
        return value
    hour, minute = value.split(":")[:2]
    return time(int(hour), int(minute))


def agent_timezone(agent) -> ZoneInfo:
    name = agent.operating_hours_timezone or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            f"Unknown timezone {name!r}, using {DEFAULT_TIMEZONE}",
            extra={"context": {"agent_id": str(agent.id)}},
        )
        return ZoneInfo(DEFAULT_TIMEZONE)


def is_within_operating_hours(agent, now: Optional[datetime] = None) -> bool:
    """Start inclusive, end exclusive, in the agent's local time.

    A window whose end is before its start spans midnight.
    """
    if not agent.operating_hours_enabled:
        return True

    now = now or datetime.now(timezone.utc)
    local = now.astimezone(agent_timezone(agent))
    current = local.hour * 60 + local.minute

    start = parse_clock(agent.operating_hours_start, DEFAULT_START)
    end = parse_clock(agent.operating_hours_end, DEFAULT_END)
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute

    if start_minutes <= end_minutes:
        return start_minutes <= current < end_minutes
    return current >= start_minutes or current < end_minutes


def out_of_hours_message(agent) -> str:
    return agent.out_of_hours_message or DEFAULT_OUT_OF_HOURS_MESSAGE
