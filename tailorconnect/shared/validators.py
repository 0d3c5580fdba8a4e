"""Shared validation utilities"""

import html
import re
from datetime import date
from typing import Optional

from ..errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time(value: str, allow_end_of_day: bool = False) -> int:
    """
    Parse an HH:MM string into minutes since midnight.

    Args:
        value: Time string such as "09:30"
        allow_end_of_day: Accept "24:00" as 1440 (window end at midnight)

    Returns:
        Minute of day

    Raises:
        ValidationError: If the string is not a valid time
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes > 59:
        raise ValidationError(f"Invalid time '{value}', minutes must be 00-59")
    if total > MINUTES_PER_DAY or (total == MINUTES_PER_DAY and not allow_end_of_day):
        raise ValidationError(f"Invalid time '{value}', outside of the day")
    return total


def format_time(minutes: int) -> str:
    """Format minutes since midnight as HH:MM"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: str) -> date:
    """Parse an ISO calendar date (YYYY-MM-DD)"""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def validate_username(username: Optional[str]) -> Optional[str]:
    """Lowercase and check a tailor username (3-30 chars, letters, digits, _ and -)"""
    if username is None:
        return None
    username = username.strip().lower()
    if not re.match(r"^[a-z0-9_-]{3,30}$", username):
        raise ValueError("Username must be 3-30 characters: letters, digits, '_' or '-'")
    return username


def clean_text(value: Optional[str], max_length: int, field_name: str) -> Optional[str]:
    """Trim, length-check and HTML-escape free text supplied by users"""
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field_name} cannot exceed {max_length} characters")
    return html.escape(value, quote=True)
