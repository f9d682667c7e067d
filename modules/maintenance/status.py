"""Status evaluation for maintenance records. ``today`` is always passed in."""

from datetime import date

from .choices import STICKY_STATUSES, Status


def evaluate(next_maintenance: date, current_status, today: date) -> Status:
    current = Status.parse(current_status, "status")
    if current in STICKY_STATUSES:
        return current
    if next_maintenance < today:
        return Status.OVERDUE
    return Status.ACTIVE


def days_until_next(next_maintenance: date, today: date) -> int:
    """Whole days until the next due date; negative once overdue."""
    return (next_maintenance - today).days
