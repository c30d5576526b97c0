"""
Tests for recurrence.py - next occurrence calculation.
"""
import pytest
import sys
import os
from datetime import date, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import RecurrencePattern
from recurrence import format_recurrence_text, next_occurrence


class TestNextOccurrence:
    def test_fixed_day_steps(self):
        start = date(2024, 1, 10)
        assert next_occurrence(start, "daily") == date(2024, 1, 11)
        assert next_occurrence(start, "weekly") == date(2024, 1, 17)
        assert next_occurrence(start, "biweekly") == date(2024, 1, 24)

    def test_calendar_steps(self):
        start = date(2024, 1, 10)
        assert next_occurrence(start, "monthly") == date(2024, 2, 10)
        assert next_occurrence(start, "quarterly") == date(2024, 4, 10)
        assert next_occurrence(start, "annually") == date(2025, 1, 10)

    def test_accepts_enum(self):
        assert next_occurrence(date(2024, 1, 1), RecurrencePattern.WEEKLY) == date(2024, 1, 8)

    def test_month_boundary_crossing(self):
        assert next_occurrence(date(2024, 12, 31), "daily") == date(2025, 1, 1)
        assert next_occurrence(date(2024, 12, 15), "monthly") == date(2025, 1, 15)

    def test_two_steps_equal_double_step(self):
        """Two steps of a pattern equal one step of twice the size (mid-month dates)."""
        start = date(2024, 3, 14)
        assert next_occurrence(next_occurrence(start, "daily"), "daily") == start + timedelta(days=2)
        assert next_occurrence(next_occurrence(start, "weekly"), "weekly") == start + timedelta(days=14)
        assert next_occurrence(next_occurrence(start, "biweekly"), "biweekly") == start + timedelta(days=28)
        assert next_occurrence(next_occurrence(start, "monthly"), "monthly") == date(2024, 5, 14)
        assert next_occurrence(next_occurrence(start, "quarterly"), "quarterly") == date(2024, 9, 14)
        assert next_occurrence(next_occurrence(start, "annually"), "annually") == date(2026, 3, 14)

    def test_month_end_clamps(self):
        """Month arithmetic clamps to the last day of a shorter month."""
        assert next_occurrence(date(2024, 1, 31), "monthly") == date(2024, 2, 29)
        assert next_occurrence(date(2023, 1, 31), "monthly") == date(2023, 2, 28)
        assert next_occurrence(date(2024, 11, 30), "quarterly") == date(2025, 2, 28)
        assert next_occurrence(date(2024, 2, 29), "annually") == date(2025, 2, 28)

    def test_custom_interval(self):
        assert next_occurrence(date(2024, 1, 1), "custom", 10) == date(2024, 1, 11)

    def test_custom_without_interval_is_noop(self):
        start = date(2024, 1, 1)
        assert next_occurrence(start, "custom") == start
        assert next_occurrence(start, "custom", None) == start

    def test_unknown_pattern_is_noop(self):
        start = date(2024, 1, 1)
        assert next_occurrence(start, "fortnightly") == start
        assert next_occurrence(start, None) == start

    def test_pattern_is_case_insensitive(self):
        assert next_occurrence(date(2024, 1, 1), " Daily ") == date(2024, 1, 2)


class TestRecurrenceText:
    @pytest.mark.parametrize("pattern,text", [
        ("daily", "Daily"),
        ("weekly", "Weekly"),
        ("biweekly", "Every 2 weeks"),
        ("monthly", "Monthly"),
        ("quarterly", "Every 3 months"),
        ("annually", "Yearly"),
    ])
    def test_named_patterns(self, pattern, text):
        assert format_recurrence_text(pattern) == text

    def test_custom(self):
        assert format_recurrence_text("custom", 3) == "Every 3 days"
        assert format_recurrence_text("custom") == "Custom"

    def test_unknown(self):
        assert format_recurrence_text("hourly") == ""
