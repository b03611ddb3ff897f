"""Waitlist matching rules"""

from ..scheduling.time_calculator import time_to_minutes

NOON_MINUTES = 12 * 60
TIME_PREFERENCES = ("morning", "afternoon", "any")


def matches_time_preference(preference: str, slot_time: str) -> bool:
    """morning = before 12:00, afternoon = 12:00 or later, any = always"""
    if preference == "morning":
        return time_to_minutes(slot_time) < NOON_MINUTES
    if preference == "afternoon":
        return time_to_minutes(slot_time) >= NOON_MINUTES
    return True


def select_matches(entries: list, slot_time: str, limit: int = 5) -> list:
    """
    Entries whose time preference fits the slot, oldest first, capped at limit.

    `entries` are assumed to already be active and for the right service/date.
    """
    ordered = sorted(entries, key=lambda e: (e.created_at, e.id))
    return [e for e in ordered if matches_time_preference(e.time_preference, slot_time)][:limit]
