"""
Parsing of user supplied time strings.

Two forms are accepted:
- Absolute wall-clock time, 24h format: "23:40", "7:05"
- Relative duration: "30m", "1h", "1h30m"

Absolute times resolve to their next occurrence; a time that has already
passed today (or is exactly now) is scheduled for tomorrow.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.triggers.cron import CronTrigger
from tzlocal import get_localzone

ABSOLUTE_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
RELATIVE_PATTERN = re.compile(r'^(?:(\d+)h)?(?:(\d+)m)?$')


class TimeParseError(ValueError):
    """Raised when a time string matches neither accepted format."""

    def __init__(self, value: str, reason: str = "Invalid time format"):
        self.value = value
        super().__init__(f"{reason}: {value}")


@dataclass(frozen=True)
class ParsedTime:
    """A parsed time string"""
    delay_seconds: int
    trigger_token: str  # systemd-run --on-active value, e.g. "2700s"
    fire_at: datetime


def _next_occurrence(hour: int, minute: int, now: datetime) -> datetime:
    """Next time the wall clock shows hour:minute, strictly after now."""
    trigger = CronTrigger(hour=hour, minute=minute, second=0, timezone=now.tzinfo)
    fire_at = trigger.get_next_fire_time(None, now)
    if fire_at <= now:
        fire_at = trigger.get_next_fire_time(None, now + timedelta(seconds=1))
    return fire_at


def parse_time(value: str, now: Optional[datetime] = None) -> ParsedTime:
    """
    Convert a time string into a delay.

    Args:
        value: Time string, e.g. "23:40" or "1h30m"
        now: Reference time (defaults to the current local time). Naive
             values are taken to be local time.

    Returns:
        ParsedTime with a positive delay in whole seconds

    Raises:
        TimeParseError: If the string is not a valid time
    """
    if now is None:
        now = datetime.now(get_localzone())
    elif now.tzinfo is None:
        now = now.astimezone()
    now = now.replace(microsecond=0)

    text = value.strip()

    match = ABSOLUTE_PATTERN.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        fire_at = _next_occurrence(hour, minute, now)
        # Elapsed seconds, not wall-clock difference, across DST changes
        delay = int(fire_at.timestamp() - now.timestamp())
        return ParsedTime(delay, f"{delay}s", fire_at)

    match = RELATIVE_PATTERN.match(text)
    if match:
        hours = int(match.group(1) or 0)
        minutes = int(match.group(2) or 0)
        delay = hours * 3600 + minutes * 60
        if delay == 0:
            raise TimeParseError(value, "Invalid time")
        return ParsedTime(delay, f"{delay}s", now + timedelta(seconds=delay))

    raise TimeParseError(value)
