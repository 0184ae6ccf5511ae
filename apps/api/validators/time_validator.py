"""Time validation utilities"""
import calendar
import re
from datetime import date, datetime, time
from exceptions import ValidationError

TIME_PATTERN = re.compile(r'^([0-1][0-9]|2[0-3]):[0-5][0-9]$')


def validate_time_format(time_str: str) -> bool:
    """Validate time string is in HH:MM format"""
    if not isinstance(time_str, str) or not TIME_PATTERN.match(time_str):
        raise ValidationError(
            f"Invalid time format: {time_str}. Use HH:MM format (e.g., 09:30, 14:00)"
        )
    return True


def parse_time_string(time_str: str) -> time:
    """Parse time string to time object"""
    validate_time_format(time_str)
    return datetime.strptime(time_str, "%H:%M").time()


def to_minutes(time_str: str) -> int:
    """Minutes since midnight for an HH:MM string"""
    parsed = parse_time_string(time_str)
    return parsed.hour * 60 + parsed.minute


def format_minutes(minutes: int) -> str:
    """HH:MM string for minutes since midnight"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_time_range(start_time_str: str, end_time_str: str) -> bool:
    """Validate that end time is after start time"""
    if to_minutes(end_time_str) <= to_minutes(start_time_str):
        raise ValidationError(
            f"End time ({end_time_str}) must be after start time ({start_time_str})"
        )
    return True


def intervals_overlap(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """Half-open interval intersection: [a, a+da) against [b, b+db)"""
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def combine_date_time(day: date, time_str: str) -> datetime:
    """Wall-clock datetime for a calendar day and an HH:MM string"""
    return datetime.combine(day, parse_time_string(time_str))


def add_months(day: date, months: int) -> date:
    """Shift a date by whole calendar months, clamping to the month's last day"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))

