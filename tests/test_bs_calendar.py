"""
Tests for the AD <-> BS calendar converter.

These verify:
- known dates, including month starts in the years in current use,
- month lengths looked up per year (not fixed),
- the round-trip law across the whole supported range,
- parsing/formatting width and range errors.
"""

import pytest
from datetime import date, datetime, timedelta

from ISE.bs_calendar import BSDate, CalendarConverter, ConversionError, fiscal_year, month_segment


@pytest.mark.parametrize(
    "bs_text, ad",
    [
        ("2000-01-01", date(1943, 4, 14)),
        ("2080-01-01", date(2023, 4, 14)),
        ("2081-01-01", date(2024, 4, 13)),
        ("2082-01-01", date(2025, 4, 14)),
        ("2080-02-12", date(2023, 5, 26)),
        ("2080-12-30", date(2024, 4, 12)),
        ("2062-01-31", date(2005, 5, 14)),
        ("2062-02-01", date(2005, 5, 15)),
        ("2081-02-32", date(2024, 6, 14)),
        ("2081-03-01", date(2024, 6, 15)),
        ("2082-02-01", date(2025, 5, 15)),
        ("2082-07-01", date(2025, 10, 18)),
        ("2083-01-01", date(2026, 4, 14)),
        ("2083-07-01", date(2026, 10, 18)),
        ("2090-12-30", date(2034, 4, 13)),
    ],
)
def test_known_dates(converter, bs_text, ad):
    assert converter.to_ad(converter.parse_bs(bs_text)) == ad
    assert converter.format_bs(converter.to_bs(ad)) == bs_text


def test_month_boundary_follows_that_years_table(converter):
    """Baisakh 2080 has 31 days, so the day after 2080-01-31 is 2080-02-01."""
    last = converter.to_ad(BSDate(2080, 1, 31))
    assert converter.to_bs(last + timedelta(days=1)) == BSDate(2080, 2, 1)


def test_day_beyond_month_length_is_rejected(converter):
    """Jestha has 32 days in 2080 but only 31 in 2082."""
    assert converter.parse_bs("2080-02-32") == BSDate(2080, 2, 32)
    with pytest.raises(ConversionError):
        converter.parse_bs("2082-02-32")
    with pytest.raises(ConversionError):
        converter.parse_bs("2080-01-32")


@pytest.mark.parametrize("bad", ["2080-13-01", "80-01-01", "2080/01", "not a date", ""])
def test_unparseable_bs_strings(converter, bad):
    with pytest.raises(ConversionError):
        converter.parse_bs(bad)


def test_slash_separator_is_accepted_and_formatting_is_zero_padded(converter):
    bs = converter.parse_bs("2080/3/5")
    assert converter.format_bs(bs) == "2080-03-05"


def test_outside_supported_range(converter):
    with pytest.raises(ConversionError):
        converter.to_bs(converter.min_ad - timedelta(days=1))
    with pytest.raises(ConversionError):
        converter.to_bs(converter.max_ad + timedelta(days=1))
    with pytest.raises(ConversionError):
        converter.parse_bs("2091-01-01")
    assert converter.to_bs(converter.max_ad) == converter.max_bs
    assert converter.max_ad == date(2034, 4, 13)


def test_round_trip_over_whole_range(converter):
    """toAD(toBS(d)) == d for every supported day, and consecutive days stay consecutive in BS."""
    day = converter.min_ad
    previous = None
    while day <= converter.max_ad:
        bs = converter.to_bs(day)
        assert converter.to_ad(bs) == day
        if previous is not None and bs.day != 1:
            assert (bs.year, bs.month, bs.day - 1) == (previous.year, previous.month, previous.day)
        previous = bs
        day += timedelta(days=1)


def test_datetime_input_uses_calendar_date_only(converter):
    late_evening = datetime(2023, 4, 14, 23, 59)
    assert converter.to_bs(late_evening) == BSDate(2080, 1, 1)
    assert converter.dual(late_evening).ad == date(2023, 4, 14)


def test_add_months_rolls_overflowing_day_forward():
    assert CalendarConverter.add_months(date(2023, 1, 15), 6) == date(2023, 7, 15)
    assert CalendarConverter.add_months(date(2023, 8, 31), 6) == date(2024, 3, 2)
    assert CalendarConverter.add_months(date(2023, 11, 30), 3) == date(2024, 3, 1)


def test_month_lengths_of_current_years(converter):
    assert [converter.days_in_month(2081, m) for m in range(1, 13)] == [31, 32, 31, 32, 31, 30, 30, 30, 29, 30, 29, 31]
    assert [converter.days_in_month(2082, m) for m in range(1, 13)] == [31, 31, 32, 31, 31, 31, 30, 29, 30, 29, 30, 30]
    with pytest.raises(ConversionError):
        converter.days_in_month(2091, 1)


def test_narrower_year_window():
    narrow = CalendarConverter(2080, 2082)
    assert narrow.min_ad == date(2023, 4, 14)
    assert narrow.max_ad == date(2026, 4, 13)
    assert narrow.max_bs == BSDate(2082, 12, 30)
    with pytest.raises(ConversionError):
        narrow.to_bs(date(2023, 4, 13))
    with pytest.raises(ConversionError):
        narrow.parse_bs("2083-01-01")


@pytest.mark.parametrize("years", [(1900, 2000), (2090, 2080), (2000, 2100)])
def test_window_outside_calendar_tables(years):
    with pytest.raises(ValueError):
        CalendarConverter(*years)


def test_today_bs(converter):
    assert converter.today_bs(date(2025, 10, 18)) == "2082-07-01"


def test_fiscal_year_and_month_segment():
    assert fiscal_year(BSDate(2080, 4, 1)) == "2080/81"
    assert fiscal_year(BSDate(2080, 3, 15)) == "2079/80"
    assert month_segment("2080-03-15") == "03"


def test_invalid_bs_month_shape():
    with pytest.raises(ConversionError):
        BSDate(2080, 0, 1)
