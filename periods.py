from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())


def resolve_date_range(
    start: Optional[str], end: Optional[str]
) -> tuple[Optional[date], Optional[date]]:
    start_date = _parse_optional_date(start)
    end_date = _parse_optional_date(end)
    if start_date and end_date and start_date > end_date:
        raise ValueError("Start date must be before end date")
    return start_date, end_date


def month_period(month: Optional[str], *, today: Optional[date] = None) -> Period:
    today = today or date.today()
    if not month:
        first = today.replace(day=1)
    else:
        try:
            year_str, month_str = month.split("-")
            first = date(int(year_str), int(month_str), 1)
        except ValueError as exc:
            raise ValueError("Month must look like YYYY-MM") from exc
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return Period(first.strftime("%Y-%m"), first, next_month - date.resolution)


def describe_range(start: Optional[date], end: Optional[date]) -> str:
    if start and end:
        return f"{start} ~ {end}"
    if start:
        return f"{start} 이후"
    if end:
        return f"{end} 이전"
    return ""
