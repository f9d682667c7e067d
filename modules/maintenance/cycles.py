"""Cycle calculator: when is a maintenance job next due.

A cycle is either a ``FixedInterval`` over one of the named kinds or a
``CustomInterval`` carrying its own day count, so a custom cycle without days
cannot be built.

Month and year offsets use ``relativedelta``, which clamps to the last day of
the target month: Jan 31 + 1 month is Feb 29 in 2024 and Feb 28 in 2023, and
Feb 29 + 1 year is Feb 28.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from errors import ValidationError
from .choices import CycleKind

CUSTOM_DAYS_MIN = 1
CUSTOM_DAYS_MAX = 3650  # 10 years

_OFFSETS = {
    CycleKind.DAILY: relativedelta(days=1),
    CycleKind.WEEKLY: relativedelta(days=7),
    CycleKind.MONTHLY: relativedelta(months=1),
    CycleKind.QUARTERLY: relativedelta(months=3),
    CycleKind.SEMI_ANNUAL: relativedelta(months=6),
    CycleKind.ANNUAL: relativedelta(years=1),
    CycleKind.BI_ANNUAL: relativedelta(years=2),
}


def validate_custom_days(days) -> int:
    """Return ``days`` as an int or raise ValidationError on custom_cycle_days."""
    if isinstance(days, str) and days.strip().isdigit():
        days = int(days.strip())
    if days is None:
        raise ValidationError({"custom_cycle_days": "required when cycle is Custom"})
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValidationError({"custom_cycle_days": f"must be an integer (got {days!r})"})
    if not CUSTOM_DAYS_MIN <= days <= CUSTOM_DAYS_MAX:
        raise ValidationError({
            "custom_cycle_days": f"must be between {CUSTOM_DAYS_MIN} and {CUSTOM_DAYS_MAX} (got {days})"
        })
    return days


@dataclass(frozen=True)
class FixedInterval:
    kind: CycleKind

    def __post_init__(self):
        if self.kind not in _OFFSETS:
            raise ValidationError({"custom_cycle_days": "required when cycle is Custom"})

    @property
    def custom_days(self) -> Optional[int]:
        return None

    def offset(self) -> relativedelta:
        return _OFFSETS[self.kind]


@dataclass(frozen=True)
class CustomInterval:
    days: int

    def __post_init__(self):
        validate_custom_days(self.days)

    @property
    def kind(self) -> CycleKind:
        return CycleKind.CUSTOM

    @property
    def custom_days(self) -> int:
        return self.days

    def offset(self) -> relativedelta:
        return relativedelta(days=self.days)


Cycle = Union[FixedInterval, CustomInterval]


def parse_cycle(cycle, custom_days=None) -> Cycle:
    """Build a cycle from raw field values. ``custom_days`` only matters for Custom."""
    if isinstance(cycle, (FixedInterval, CustomInterval)):
        return cycle
    kind = CycleKind.parse(cycle, "cycle")
    if kind is CycleKind.CUSTOM:
        return CustomInterval(validate_custom_days(custom_days))
    return FixedInterval(kind)


def next_due(last_maintenance: date, cycle, custom_days=None) -> date:
    """Date the next maintenance is due after ``last_maintenance``."""
    if not isinstance(last_maintenance, date):
        raise ValidationError({"last_maintenance": f"must be a date (got {last_maintenance!r})"})
    offset = parse_cycle(cycle, custom_days).offset()
    try:
        return last_maintenance + offset
    except (OverflowError, ValueError):
        raise ValidationError({
            "last_maintenance": f"next due date after {last_maintenance} is out of range"
        }) from None
