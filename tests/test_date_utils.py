import pytest
import sys
from pathlib import Path
from datetime import date, datetime

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from duty_roster.date_utils import days_in_month, days_in_range, month_key, to_iso_date


def test_to_iso_date():
    assert to_iso_date(date(2024, 2, 9)) == "2024-02-09"
    assert to_iso_date(datetime(2024, 2, 9, 13, 30)) == "2024-02-09"
    assert to_iso_date("2024-02-09") == "2024-02-09"
    with pytest.raises(ValueError):
        to_iso_date("09/02/2024")


def test_month_key():
    assert month_key("2024-12-31") == "2024-12"


def test_days_in_month_handles_leap_year():
    assert len(days_in_month(2024, 2)) == 29
    assert len(days_in_month(2023, 2)) == 28


def test_days_in_range_is_inclusive():
    days = days_in_range("2024-12-30", "2025-01-02")
    assert [d.isoformat() for d in days] == ["2024-12-30", "2024-12-31", "2025-01-01", "2025-01-02"]
    assert days_in_range("2024-01-05", "2024-01-01") == []


def test_oversized_range_collapses_to_start():
    assert days_in_range("2024-01-01", "2026-01-01") == [date(2024, 1, 1)]
