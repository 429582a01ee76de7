"""
Utility Functions and Helpers

Datetime and number helpers shared by the lending services.

All timestamps are stored as naive UTC datetimes so that values read back
from SQLite and PostgreSQL compare the same way.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Union

Clock = Callable[[], datetime]


class DateTimeUtils:
    """Date and time utility functions"""

    @staticmethod
    def now_utc() -> datetime:
        """Get current UTC datetime (naive)."""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
        """Normalise an aware datetime to naive UTC; naive values pass through."""
        if dt is None or dt.tzinfo is None:
            return dt
        return dt.astimezone(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def hours_between(start: datetime, end: datetime) -> float:
        """Elapsed hours between two datetimes, never negative."""
        return max((end - start).total_seconds() / 3600.0, 0.0)


class NumberUtils:
    """Money and hour rounding"""

    @staticmethod
    def round_money(amount: Union[int, float, Decimal]) -> Decimal:
        """Round to 2 decimal places, half up."""
        if not isinstance(amount, Decimal):
            amount = Decimal(str(amount))
        return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @staticmethod
    def round_hours(hours: float, half_hour: bool = False) -> float:
        """Round hours to one decimal, or to the nearest half hour."""
        if half_hour:
            return float((Decimal(str(hours)) * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP) / 2)
        return float(Decimal(str(hours)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def utcnow() -> datetime:
    """Default clock used by services."""
    return DateTimeUtils.now_utc()
