"""
Read-only views over computed schedules for display and aggregate reporting.

Nothing here changes a schedule; the functions only tabulate what the
scheduler produced. Aggregates can be narrowed to one Nepali fiscal year
(Shrawan 1 to Asar end), labelled like "2080/81".
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .bs_calendar import BSDate, fiscal_year as fiscal_year_of, month_segment
from .dose import Dose, Schedule
from .subject import Subject
from .template import ScheduleTemplate

SCHEDULE_COLUMNS = [
    "name",
    "status",
    "scheduled_ad",
    "scheduled_bs",
    "given_ad",
    "given_bs",
    "fiscal_year",
]


def dose_fiscal_year(dose: Dose) -> Optional[str]:
    """Fiscal year of the given date for a Given dose, else of the planned date; None if unresolved."""
    if dose.is_given:
        return fiscal_year_of(dose.given_date_bs)
    if isinstance(dose.scheduled_date_bs, BSDate):
        return fiscal_year_of(dose.scheduled_date_bs)
    return None


def schedule_to_frame(schedule: Schedule) -> pd.DataFrame:
    """One row per dose, in schedule order, dates as text."""
    rows = [
        {
            "name": record["name"],
            "status": record["status"],
            "scheduled_ad": record["scheduled_date_ad"],
            "scheduled_bs": record["scheduled_date_bs"],
            "given_ad": record["given_date_ad"] or "",
            "given_bs": record["given_date_bs"] or "",
            "fiscal_year": dose_fiscal_year(dose) or "",
        }
        for dose, record in zip(schedule, schedule.to_records())
    ]
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)


def is_fully_immunized(schedule: Schedule, template: ScheduleTemplate) -> bool:
    """True when every terminal dose of the program is Given."""
    if not template.terminal:
        return False
    return schedule.all_given(template.terminal)


def monthly_tally(
    schedules: Iterable[Schedule],
    month: str,
    fiscal_year: Optional[str] = None,
) -> pd.DataFrame:
    """
    Count doses given in BS month `month` ("01".."12") across schedules.

    With `fiscal_year` ("2080/81") only doses given in that fiscal year count,
    so Baisakh means Baisakh of its second calendar year.
    Returns columns `name`, `given` sorted by dose name; empty when nothing matches.
    """
    month = f"{int(month):02d}"
    names: List[str] = []
    for schedule in schedules:
        for dose in schedule:
            if not dose.is_given or month_segment(str(dose.given_date_bs)) != month:
                continue
            if fiscal_year is not None and fiscal_year_of(dose.given_date_bs) != fiscal_year:
                continue
            names.append(dose.name)

    if not names:
        return pd.DataFrame({"name": pd.Series(dtype=str), "given": pd.Series(dtype=int)})
    counts = pd.Series(names, dtype=str).value_counts().sort_index()
    return counts.rename_axis("name").reset_index(name="given")


def fiscal_year_tally(schedules: Iterable[Schedule]) -> pd.DataFrame:
    """
    Given doses grouped by the fiscal year they were given in.
    Returns columns `fiscal_year`, `name`, `given` sorted by year then dose name.
    """
    rows = [
        {"fiscal_year": fiscal_year_of(dose.given_date_bs), "name": dose.name}
        for schedule in schedules
        for dose in schedule
        if dose.is_given
    ]
    if not rows:
        return pd.DataFrame(
            {
                "fiscal_year": pd.Series(dtype=str),
                "name": pd.Series(dtype=str),
                "given": pd.Series(dtype=int),
            }
        )
    df = pd.DataFrame(rows)
    return df.groupby(["fiscal_year", "name"]).size().reset_index(name="given")


def defaulters(
    subjects: Iterable[Subject],
    today: date,
    fiscal_year: Optional[str] = None,
) -> List[Tuple[str, str]]:
    """
    (subject_id, dose_name) for every Pending dose whose scheduled date has passed,
    optionally only those scheduled in `fiscal_year`.
    """
    found: List[Tuple[str, str]] = []
    for subject in subjects:
        for dose in subject.schedule:
            if not dose.is_overdue(today):
                continue
            if fiscal_year is not None and dose_fiscal_year(dose) != fiscal_year:
                continue
            found.append((subject.subject_id, dose.name))
    return found
