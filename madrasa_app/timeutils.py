# madrasa_app/timeutils.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp (the database columns are timezone-less)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar-month arithmetic; the day is clamped to the target month's length (Jan 31 + 1 -> Feb 28/29)."""
    total = dt.month - 1 + months
    year = dt.year + total // 12
    month = total % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)
