"""Gestational age and delivery date math, on calendar days in the configured zone."""

from datetime import date, timedelta
from typing import Optional

PREGNANCY_DAYS = 280


def gestational_week(lmp: Optional[date], today: date) -> Optional[int]:
    """Completed weeks since the last menstrual period, counted from week 1."""
    if lmp is None:
        return None
    days = (today - lmp).days
    if days < 0:
        return None
    return days // 7 + 1


def estimated_delivery_date(lmp: date) -> date:
    """Naegele's rule: LMP + 280 days."""
    return lmp + timedelta(days=PREGNANCY_DAYS)


def is_pregnancy_active(lmp: Optional[date], today: date, week_limit: int) -> bool:
    """Tracking stays on until ``week_limit`` weeks after the LMP (inclusive)."""
    if lmp is None:
        return True
    return today <= lmp + timedelta(weeks=week_limit)
