"""
Date utility functions for the HR Onboarding Bot.
"""
from datetime import date, datetime
from typing import Optional, Union
import pytz
from hrbot.config import settings
from hrbot.logger import get_logger

logger = get_logger(__name__)

# Timezone
TZ = pytz.timezone(settings.TIMEZONE)


def get_now() -> datetime:
    """Get current datetime in configured timezone."""
    return datetime.now(TZ)


def today() -> date:
    """Current calendar date in configured timezone."""
    return get_now().date()


def parse_date(date_str: str) -> Optional[date]:
    """Parse an ISO date (YYYY-MM-DD) or ISO datetime string."""
    if not date_str:
        return None
    try:
        return datetime.strptime(date_str[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def age_on(born: date, on: date) -> int:
    """Full years elapsed between born and on."""
    years = on.year - born.year
    if (on.month, on.day) < (born.month, born.day):
        years -= 1
    return years


def _ordinal_suffix(day: int) -> str:
    if day % 10 == 1 and day != 11:
        return "st"
    if day % 10 == 2 and day != 12:
        return "nd"
    if day % 10 == 3 and day != 13:
        return "rd"
    return "th"


def format_date(value: Union[str, date, None]) -> str:
    """Format like 'Jan 1st 2024'; 'N/A' when missing or unparseable."""
    if isinstance(value, str):
        value = parse_date(value)
    if not value:
        return "N/A"
    return f"{value.strftime('%b')} {value.day}{_ordinal_suffix(value.day)} {value.year}"


def days_until(value: date) -> int:
    """Calculate days until a given date."""
    return (value - today()).days
