from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from errors import ValidationError

FREQUENCY_DAYS = (7, 30, 365)
CUSTOM = "custom"


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_now() -> datetime:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).replace(tzinfo=None)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return first, next_month - date.resolution


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _parse_date(field: str, value: Union[str, date, None]) -> date:
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(field, "Custom range requires start and end dates")
    try:
        # The web client sends full ISO timestamps from its date picker.
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValidationError(field, f"Invalid date '{value}'") from exc


def resolve_window(
    frequency: Union[str, int, None],
    start: Union[str, date, None] = None,
    end: Union[str, date, None] = None,
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_now().date()
    slug = str(frequency).strip().lower() if frequency is not None else "7"
    if slug == CUSTOM:
        start_date = _parse_date("startDate", start)
        end_date = _parse_date("endDate", end)
        if start_date > end_date:
            raise ValidationError("startDate", "Start date must be before end date")
        return Period(CUSTOM, start_date, end_date)
    try:
        days = int(slug)
    except ValueError as exc:
        raise ValidationError("frequency", f"Unsupported frequency '{frequency}'") from exc
    if days not in FREQUENCY_DAYS:
        raise ValidationError("frequency", f"Unsupported frequency '{frequency}'")
    return Period(f"last_{days}_days", today - timedelta(days=days), today)
