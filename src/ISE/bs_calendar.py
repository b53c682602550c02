"""
Bikram Sambat calendar support.

Defines the BSDate and DualDate value types and the CalendarConverter that
maps Gregorian (AD) dates to Bikram Sambat (BS) dates and back.

BS months do not have fixed lengths: the length of every month is decided per
year. The month tables come from the `nepali_datetime` package; this module
only narrows them to the window of years the clinic works with (BS 2000..2090
by default) and turns the library's errors into ConversionError. All
arithmetic is done on `datetime.date` values, never on timestamps, so the host
time zone cannot shift a date across midnight.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import nepali_datetime


class ConversionError(ValueError):
    """Raised when a date cannot be converted between AD and BS."""


# Default window of supported BS years (registration forms accept DOBs up to 2090)
BS_MIN_YEAR = 2000
BS_MAX_YEAR = 2090

# Fiscal year starts on the first day of Shrawan
FISCAL_YEAR_START_MONTH = 4

_BS_STRING = re.compile(r"^\s*(?P<year>\d{4})[-/](?P<month>\d{1,2})[-/](?P<day>\d{1,2})\s*$")


# ----------------
# Value data types
# ----------------


@dataclass(frozen=True, order=True)
class BSDate:
    """
    A Bikram Sambat calendar date.

    Only the shape is checked here (month 1..12, day 1..32); whether the day
    exists in that month of that year is decided by the CalendarConverter.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ConversionError(f"Invalid BS month: {self.month!r}")
        if not 1 <= self.day <= 32:
            raise ConversionError(f"Invalid BS day: {self.day!r}")

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True)
class DualDate:
    """One calendar day expressed in both AD and BS."""

    ad: date
    bs: BSDate

    @property
    def bs_string(self) -> str:
        return str(self.bs)

    @property
    def ad_string(self) -> str:
        return self.ad.isoformat()


# ---------
# Converter
# ---------


class CalendarConverter:
    """
    Bidirectional AD <-> BS conversion for BS years `min_year`..`max_year`.

    The window must lie inside the years `nepali_datetime` has month tables
    for; the last year also needs its successor in the table so the length
    of its final month can be measured.
    """

    def __init__(self, min_year: int = BS_MIN_YEAR, max_year: int = BS_MAX_YEAR):
        if not nepali_datetime.MINYEAR <= min_year <= max_year < nepali_datetime.MAXYEAR:
            raise ValueError(
                f"BS years {min_year}..{max_year} not covered by the calendar tables "
                f"({nepali_datetime.MINYEAR}..{nepali_datetime.MAXYEAR - 1})"
            )
        self._first_year = min_year
        self._last_year = max_year
        self._min_ad = nepali_datetime.date(min_year, 1, 1).to_datetime_date()
        self._max_ad = nepali_datetime.date(max_year + 1, 1, 1).to_datetime_date() - timedelta(days=1)

    # Range ------------------------------------------------------------

    @property
    def min_ad(self) -> date:
        return self._min_ad

    @property
    def max_ad(self) -> date:
        return self._max_ad

    @property
    def min_bs(self) -> BSDate:
        return BSDate(self._first_year, 1, 1)

    @property
    def max_bs(self) -> BSDate:
        return BSDate(self._last_year, 12, self.days_in_month(self._last_year, 12))

    def days_in_month(self, year: int, month: int) -> int:
        """Length of a BS month, looked up for that specific year."""
        self._check_year(year)
        if not 1 <= month <= 12:
            raise ConversionError(f"Invalid BS month: {month!r}")
        first = nepali_datetime.date(year, month, 1)
        following = nepali_datetime.date(year + 1, 1, 1) if month == 12 else nepali_datetime.date(year, month + 1, 1)
        return (following - first).days

    # Conversion -------------------------------------------------------

    def to_bs(self, ad: date) -> BSDate:
        """Convert an AD calendar date into its BS equivalent."""
        if not isinstance(ad, date):
            raise ConversionError(f"Expected a date, got {type(ad).__name__}")
        ad = _as_date(ad)
        if not self._min_ad <= ad <= self._max_ad:
            raise ConversionError(
                f"AD date {ad.isoformat()} outside supported range "
                f"{self._min_ad.isoformat()}..{self._max_ad.isoformat()}"
            )
        converted = nepali_datetime.date.from_datetime_date(ad)
        return BSDate(converted.year, converted.month, converted.day)

    def to_ad(self, bs: BSDate) -> date:
        """Convert a BS date into its AD equivalent; the day must exist in that month."""
        length = self.days_in_month(bs.year, bs.month)
        if bs.day > length:
            raise ConversionError(
                f"BS date {bs} invalid: month {bs.month:02d} of {bs.year} has {length} days"
            )
        return nepali_datetime.date(bs.year, bs.month, bs.day).to_datetime_date()

    def _check_year(self, year: int) -> None:
        if not self._first_year <= year <= self._last_year:
            raise ConversionError(
                f"BS year {year} outside supported range {self._first_year}-{self._last_year}"
            )

    # Text form --------------------------------------------------------

    def parse_bs(self, text: str) -> BSDate:
        """
        Parse "YYYY-MM-DD" (a "/" separator is also accepted) into a BSDate,
        checking the day against the real length of that month.
        """
        if not isinstance(text, str):
            raise ConversionError(f"BS date must be a string, got {type(text).__name__}")
        m = _BS_STRING.match(text)
        if not m:
            raise ConversionError(f"Cannot parse BS date from {text!r}")
        bs = BSDate(int(m.group("year")), int(m.group("month")), int(m.group("day")))
        # validates year range and month length
        self.to_ad(bs)
        return bs

    @staticmethod
    def format_bs(bs: BSDate) -> str:
        """Zero-padded "YYYY-MM-DD"."""
        return str(bs)

    # Dual representation ----------------------------------------------

    def dual(self, ad: date) -> DualDate:
        return DualDate(ad=_as_date(ad), bs=self.to_bs(ad))

    def dual_from_bs(self, text: str) -> DualDate:
        """Canonical input path: BS text in, AD derived from it."""
        bs = self.parse_bs(text)
        return DualDate(ad=self.to_ad(bs), bs=bs)

    def today_bs(self, today: date) -> str:
        return self.format_bs(self.to_bs(today))

    # AD-domain arithmetic ---------------------------------------------

    @staticmethod
    def add_days(ad: date, days: int) -> date:
        return _as_date(ad) + timedelta(days=days)

    @staticmethod
    def add_months(ad: date, months: int) -> date:
        """
        Gregorian month increment. The day of month is kept; a day past the
        end of the target month rolls forward into the next month
        (2023-08-31 + 6 months -> 2024-03-02).
        """
        ad = _as_date(ad)
        index = ad.year * 12 + (ad.month - 1) + months
        year, month = divmod(index, 12)
        return date(year, month + 1, 1) + timedelta(days=ad.day - 1)


# -------------
# Free helpers
# -------------


def _as_date(value: date) -> date:
    # datetime is a subclass of date; drop the clock part
    if isinstance(value, datetime):
        return value.date()
    return value


def month_segment(formatted_bs: str) -> str:
    """Characters 6-7 of a formatted BS date: the month, e.g. "2080-03-15" -> "03"."""
    return formatted_bs[5:7]


def fiscal_year(bs: BSDate) -> str:
    """
    Nepali fiscal year label for a BS date, e.g. 2080-04-01 -> "2080/81",
    2080-03-31 -> "2079/80".
    """
    start = bs.year if bs.month >= FISCAL_YEAR_START_MONTH else bs.year - 1
    return f"{start}/{(start + 1) % 100:02d}"
