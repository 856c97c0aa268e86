"""
Supply forecasting for a single prescription.

Given the starting stock, every logged delivery and the daily dose, work out
how much is left on a reference day and when it will run out. The reference
day is always passed in so results never depend on the wall clock.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone, tzinfo

logger = logging.getLogger("rxsupply.forecast")

REORDER_BUFFER_DAYS = 10
NEVER_RUNS_OUT_DAYS = 9999  # dose of zero (or missing) never depletes the supply


@dataclass(frozen=True)
class SupplyInfo:
    current_supply: float
    run_out_date: date
    reorder_date: date
    days_remaining: int

    def to_dict(self):
        data = asdict(self)
        data["run_out_date"] = self.run_out_date.isoformat()
        data["reorder_date"] = self.reorder_date.isoformat()
        return data


def normalize_date(value, tz: tzinfo = timezone.utc) -> date:
    """Reduce a date, datetime or ISO string to a calendar day.

    Aware datetimes are converted to ``tz`` first; naive ones are taken as
    already being local to ``tz``.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Cannot normalize {type(value).__name__} to a date")


def zero_state(today: date) -> SupplyInfo:
    return SupplyInfo(current_supply=0, run_out_date=today, reorder_date=today, days_remaining=0)


def compute_supply_info(prescription, today: date, tz: tzinfo = timezone.utc) -> SupplyInfo:
    today = normalize_date(today, tz)
    try:
        start_date = normalize_date(prescription.start_date, tz)
        daily_dose = float(prescription.daily_dose or 0)

        total_added = float(prescription.start_supply)
        for entry in prescription.supply_log or []:
            total_added += float(entry.quantity)

        days_passed = max((today - start_date).days, 0)
        raw_supply = total_added - days_passed * daily_dose

        if daily_dose > 0:
            days_until_empty = math.floor(raw_supply / daily_dose)
        else:
            days_until_empty = NEVER_RUNS_OUT_DAYS

        # An exhausted supply projects its run-out date into the past.
        run_out_date = today + timedelta(days=days_until_empty)
        return SupplyInfo(
            current_supply=max(raw_supply, 0),
            run_out_date=run_out_date,
            reorder_date=run_out_date - timedelta(days=REORDER_BUFFER_DAYS),
            days_remaining=max(days_until_empty, 0),
        )
    except Exception as exc:
        logger.warning(
            "Supply calculation failed for prescription %s: %s",
            getattr(prescription, "id", "?"),
            exc,
        )
        return zero_state(today)
