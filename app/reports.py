from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from app.models import Activity, as_utc

PERIODS = ("day", "week")


def total_co2e(activities: Iterable[Activity]) -> float:
    total = 0.0
    for activity in activities:
        total += activity.co2e or 0.0
    return total


def breakdown_by_type(activities: Iterable[Activity]) -> Dict[str, float]:
    breakdown: Dict[str, float] = {}
    for activity in activities:
        breakdown[activity.activity_type] = breakdown.get(activity.activity_type, 0.0) + (activity.co2e or 0.0)
    return breakdown


def period_key(moment: datetime, period: str = "day") -> str:
    """
    Returns the YYYY-MM-DD group key for a timestamp. Weeks run Sunday to
    Saturday and are keyed by their Sunday.
    """
    day = as_utc(moment).date()
    if period == "week":
        # date.weekday(): Monday == 0 ... Sunday == 6
        day = day - timedelta(days=(day.weekday() + 1) % 7)
    return day.isoformat()


def group_by_period(activities: Iterable[Activity], period: str = "day") -> List[Dict[str, object]]:
    """
    Sums co2e per day or per week. Groups keep the order in which their first
    activity appears, so pass activities sorted by date.
    """
    groups: Dict[str, Dict[str, object]] = {}
    for activity in activities:
        key = period_key(activity.date, period)
        if key not in groups:
            groups[key] = {"date": key, "co2e": 0.0}
        groups[key]["co2e"] += activity.co2e or 0.0
    return list(groups.values())
