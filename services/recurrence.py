"""
Date stepping for recurring meetings and todos
"""
import calendar
from datetime import datetime, timedelta

from models.enums import RecurrenceType

_DAY_STEPS = {
    RecurrenceType.DAILY.value: 1,
    RecurrenceType.WEEKLY.value: 7,
    RecurrenceType.BIWEEKLY.value: 14,
}

_MONTH_STEPS = {
    RecurrenceType.MONTHLY.value: 1,
    RecurrenceType.QUARTERLY.value: 3,
    RecurrenceType.YEARLY.value: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance(value: datetime, recurrence_type: str, steps: int = 1) -> datetime:
    """Return the occurrence `steps` periods after value"""
    recurrence_type = RecurrenceType.validate(recurrence_type, "recurrence type")
    if recurrence_type in _DAY_STEPS:
        return value + timedelta(days=_DAY_STEPS[recurrence_type] * steps)
    if recurrence_type in _MONTH_STEPS:
        return add_months(value, _MONTH_STEPS[recurrence_type] * steps)
    raise ValueError(f"Recurrence type {recurrence_type} has no next occurrence")


def is_recurring(recurrence_type: str) -> bool:
    return bool(recurrence_type) and recurrence_type != RecurrenceType.NONE.value
