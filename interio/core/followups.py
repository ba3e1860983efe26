"""
Follow-up bucketing for the customer dashboard.

Each customer is represented by their earliest pending follow-up, and that
date is compared with today by calendar day only.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Set

TODAY = "today"
YESTERDAY = "yesterday"
MISSED = "missed"
FUTURE = "future"


def _day(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def _is_pending(follow_up) -> bool:
    return not follow_up.completed and follow_up.next_follow_up_date is not None


def earliest_pending_follow_ups(follow_ups: Iterable) -> Dict[int, object]:
    """Map customer id to that customer's earliest open follow-up."""
    earliest = {}
    for follow_up in follow_ups:
        if not _is_pending(follow_up):
            continue
        current = earliest.get(follow_up.customer_id)
        if current is None or follow_up.next_follow_up_date < current.next_follow_up_date:
            earliest[follow_up.customer_id] = follow_up
    return earliest


def classify_follow_up_date(follow_up_date, today: date = None) -> str:
    """
    The single dashboard bucket a follow-up date is counted in.

    Checked in order today, yesterday, missed, future, so the four counts
    always add up to the number of customers.
    """
    today = today or date.today()
    day = _day(follow_up_date)
    if day == today:
        return TODAY
    if day == today - timedelta(days=1):
        return YESTERDAY
    if day < today:
        return MISSED
    return FUTURE


def matches_filter(follow_up_date, bucket: str, today: date = None) -> bool:
    """
    Customer-list filter test for one date.

    Unlike the counters, the missed filter takes every day before today,
    yesterday included.
    """
    today = today or date.today()
    day = _day(follow_up_date)
    if bucket == TODAY:
        return day == today
    if bucket == YESTERDAY:
        return day == today - timedelta(days=1)
    if bucket == MISSED:
        return day < today
    if bucket == FUTURE:
        return day > today
    raise ValueError(f"Unknown follow-up bucket: {bucket}")


def count_follow_ups(follow_ups: Iterable, today: date = None) -> Dict[str, int]:
    """Dashboard counters, one per customer, from their earliest pending follow-up."""
    counts = {"all": 0, TODAY: 0, YESTERDAY: 0, MISSED: 0, FUTURE: 0}
    for follow_up in earliest_pending_follow_ups(follow_ups).values():
        counts["all"] += 1
        counts[classify_follow_up_date(follow_up.next_follow_up_date, today)] += 1
    return counts


def customers_matching(follow_ups: Iterable, bucket: str, today: date = None) -> Set[int]:
    """Customer ids with any pending follow-up that passes the bucket's filter."""
    pending = [follow_up for follow_up in follow_ups if _is_pending(follow_up)]
    if bucket == "all":
        return {follow_up.customer_id for follow_up in pending}
    return {
        follow_up.customer_id
        for follow_up in pending
        if matches_filter(follow_up.next_follow_up_date, bucket, today)
    }


def pending_follow_ups(follow_ups: Iterable, today: date = None) -> List:
    """Open follow-ups due today or earlier, oldest first."""
    today = today or date.today()
    due = [
        follow_up for follow_up in follow_ups
        if _is_pending(follow_up) and _day(follow_up.next_follow_up_date) <= today
    ]
    return sorted(due, key=lambda follow_up: follow_up.next_follow_up_date)
