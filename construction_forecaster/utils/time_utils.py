"""
Time and date utilities for forecast generation.

Forecast steps are calendar days: step ``k`` of a forecast produced on
``forecast_date`` targets ``forecast_date + k days``. Every timestamp the
engine writes is timezone-aware UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def step_dates(base_date: date, horizon: int) -> list[date]:
    """Target dates for steps ``1..horizon`` after ``base_date``.

    Raises:
        ValueError: If ``horizon < 1``.
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}.")
    return [base_date + timedelta(days=k) for k in range(1, horizon + 1)]


def expiry_from(generated_at: datetime, expiry_days: int) -> datetime:
    """Expiry instant ``expiry_days`` after ``generated_at``."""
    return generated_at + timedelta(days=expiry_days)
