"""First-day proration and instance quota arithmetic."""

from datetime import datetime
from decimal import Decimal

from src.dr_common.datetime_utils import MINUTES_PER_DAY, minutes_remaining_in_day
from src.dr_common.money import ZERO, to_money


def prorate_first_day(daily_price: Decimal, moment: datetime) -> Decimal:
    """daily_price x minutes left in the local day / 1440, half-up to 0.01.

    6.00 at 18:00 -> 1.50; anything at 00:00 -> the full daily price.
    """
    minutes = minutes_remaining_in_day(moment)
    return to_money(daily_price * Decimal(minutes) / Decimal(MINUTES_PER_DAY))


def available_instance_count(available_balance: Decimal, unit_price: Decimal) -> int:
    """floor(available / unit price); 0 for a non-positive balance or price."""
    if unit_price <= ZERO or available_balance <= ZERO:
        return 0
    return int(available_balance // unit_price)
