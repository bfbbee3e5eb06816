"""
Daily statistics, streaks and retention.

Per-day aggregates are keyed by ISO date. Updates return new records;
the session runner persists them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta

from .errors import InvalidArgumentError
from .models import DailyStats, Streak
from .scheduler import calculate_retention


def empty_daily_stats(day: date) -> DailyStats:
    return DailyStats(date=day.isoformat())


def record_review(stats: DailyStats, remembered: bool, is_new: bool) -> DailyStats:
    """Count one review on ``stats``."""
    return replace(
        stats,
        cards_reviewed=stats.cards_reviewed + 1,
        cards_remembered=stats.cards_remembered + (1 if remembered else 0),
        cards_forgot=stats.cards_forgot + (0 if remembered else 1),
        new_cards_learned=stats.new_cards_learned + (1 if is_new else 0),
    )


def add_time(stats: DailyStats, ms: int) -> DailyStats:
    """Add study time in milliseconds to ``stats``."""
    if ms < 0:
        raise InvalidArgumentError(f"Time spent cannot be negative: {ms}")
    return replace(stats, time_spent_ms=stats.time_spent_ms + ms)


def calculate_streak(daily_stats: Iterable[DailyStats], today: date) -> Streak:
    """
    Consecutive-day review streaks.

    Days with zero reviews are ignored. The current streak is the run
    ending at the most recent review day, and only counts when that day
    is today or yesterday.

    Args:
        daily_stats: Stats in any order
        today: Reference day

    Returns:
        Streak with current and longest run lengths
    """
    days = sorted({s.day for s in daily_stats if s.cards_reviewed > 0}, reverse=True)
    if not days:
        return Streak()

    runs: list[int] = []
    run = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            run += 1
        else:
            runs.append(run)
            run = 1
    runs.append(run)

    current = runs[0] if (today - days[0]).days in (0, 1) else 0
    return Streak(current=current, longest=max(runs), last_review_date=days[0].isoformat())


def retention_rate(daily_stats: Iterable[DailyStats], today: date, days: int = 30) -> float:
    """Fraction remembered over ``today - days`` through ``today`` inclusive."""
    if days < 0:
        raise InvalidArgumentError(f"Window cannot be negative: {days}")
    start = today - timedelta(days=days)

    remembered = total = 0
    for stats in daily_stats:
        if start <= stats.day <= today:
            remembered += stats.cards_remembered
            total += stats.cards_reviewed
    return calculate_retention(remembered, total)
