"""
Unit tests for daily stats, streaks and retention.

Run: pytest tests/unit/test_stats.py -v
"""

from datetime import date, timedelta

import pytest

from mnemonic.errors import InvalidArgumentError
from mnemonic.models import DailyStats
from mnemonic.stats import add_time, calculate_streak, empty_daily_stats, record_review, retention_rate

TODAY = date(2025, 3, 10)


def day(offset: int, reviewed: int = 10, remembered: int = 8) -> DailyStats:
    """Stats for TODAY minus ``offset`` days."""
    return DailyStats(
        date=(TODAY - timedelta(days=offset)).isoformat(),
        cards_reviewed=reviewed,
        cards_remembered=remembered,
        cards_forgot=reviewed - remembered,
    )


class TestRecordReview:
    """Test record_review and add_time."""

    def test_remembered(self):
        stats = record_review(empty_daily_stats(TODAY), remembered=True, is_new=False)

        assert stats.date == "2025-03-10"
        assert stats.cards_reviewed == 1
        assert stats.cards_remembered == 1
        assert stats.cards_forgot == 0
        assert stats.new_cards_learned == 0

    def test_forgot_new_card(self):
        stats = record_review(empty_daily_stats(TODAY), remembered=False, is_new=True)

        assert stats.cards_forgot == 1
        assert stats.new_cards_learned == 1

    def test_accumulates(self):
        stats = empty_daily_stats(TODAY)
        for remembered in (True, True, False):
            stats = record_review(stats, remembered, is_new=False)

        assert stats.cards_reviewed == 3
        assert stats.cards_remembered == 2

    def test_add_time(self):
        stats = add_time(add_time(empty_daily_stats(TODAY), 1500), 500)

        assert stats.time_spent_ms == 2000

    def test_negative_time_rejected(self):
        with pytest.raises(InvalidArgumentError):
            add_time(empty_daily_stats(TODAY), -1)


class TestStreak:
    """Test calculate_streak."""

    def test_no_stats(self):
        streak = calculate_streak([], TODAY)

        assert (streak.current, streak.longest, streak.last_review_date) == (0, 0, None)

    def test_consecutive_through_today(self):
        streak = calculate_streak([day(0), day(1), day(2)], TODAY)

        assert streak.current == 3
        assert streak.longest == 3
        assert streak.last_review_date == "2025-03-10"

    def test_ending_yesterday_still_counts(self):
        streak = calculate_streak([day(1), day(2)], TODAY)

        assert streak.current == 2

    def test_broken_streak(self):
        streak = calculate_streak([day(3), day(4)], TODAY)

        assert streak.current == 0
        assert streak.longest == 2

    def test_longest_from_older_run(self):
        stats = [day(0), day(1), day(5), day(6), day(7), day(8)]

        streak = calculate_streak(stats, TODAY)

        assert streak.current == 2
        assert streak.longest == 4

    def test_zero_review_days_ignored(self):
        stats = [day(0), day(1, reviewed=0, remembered=0), day(2)]

        streak = calculate_streak(stats, TODAY)

        assert streak.current == 1
        assert streak.longest == 1

    def test_order_independent(self):
        assert calculate_streak([day(2), day(0), day(1)], TODAY).current == 3


class TestRetentionRate:
    """Test retention_rate."""

    def test_over_window(self):
        stats = [day(0, 10, 9), day(10, 10, 7)]

        assert retention_rate(stats, TODAY) == pytest.approx(0.8)

    def test_excludes_old_days(self):
        stats = [day(0, 10, 10), day(31, 10, 0)]

        assert retention_rate(stats, TODAY) == 1.0

    def test_window_inclusive(self):
        stats = [day(30, 10, 5)]

        assert retention_rate(stats, TODAY) == 0.5

    def test_custom_window(self):
        stats = [day(0, 4, 4), day(5, 4, 0)]

        assert retention_rate(stats, TODAY, days=3) == 1.0

    def test_no_reviews(self):
        assert retention_rate([], TODAY) == 0.0
