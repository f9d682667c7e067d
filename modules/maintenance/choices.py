"""Value sets for maintenance records.

Values are the display labels stored in the database. Lookups ignore case,
spaces, hyphens and underscores, so ``SemiAnnual``, ``semi_annual`` and
``Semi-Annual`` all resolve to the same member.
"""

from enum import Enum

from errors import ValidationError


def _key(value) -> str:
    return "".join(ch for ch in str(value).lower() if ch.isalnum())


class LabelEnum(str, Enum):

    @classmethod
    def parse(cls, value, field: str):
        if isinstance(value, cls):
            return value
        if value is not None:
            wanted = _key(value)
            for member in cls:
                if wanted in (_key(member.value), _key(member.name)):
                    return member
        allowed = ", ".join(m.value for m in cls)
        raise ValidationError({field: f"must be one of: {allowed} (got {value!r})"})


class CycleKind(LabelEnum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUAL = "Semi-Annual"
    ANNUAL = "Annual"
    BI_ANNUAL = "Bi-Annual"
    CUSTOM = "Custom"


class Status(LabelEnum):
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"
    SUSPENDED = "Suspended"


class SystemType(LabelEnum):
    HVAC = "HVAC"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    FIRE_SAFETY = "Fire Safety"
    SECURITY = "Security"
    ELEVATOR = "Elevator"
    GENERATOR = "Generator"
    OTHER = "Other"


class Priority(LabelEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# manual states: overdue detection never overwrites them
STICKY_STATUSES = frozenset({Status.COMPLETED, Status.SUSPENDED})
