"""Pure domain helpers: clock, business-day boundaries, money rounding. Zero I/O."""

from vending_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from vending_kernel.domain.timezone import (
    BUSINESS_TZ,
    business_date,
    business_timezone,
    end_of_day,
    is_full_timestamp,
    lower_bound,
    start_of_day,
    upper_bound,
)
from vending_kernel.domain.values import round_money

__all__ = [
    "round_money",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "BUSINESS_TZ",
    "business_timezone",
    "business_date",
    "is_full_timestamp",
    "start_of_day",
    "end_of_day",
    "lower_bound",
    "upper_bound",
]
