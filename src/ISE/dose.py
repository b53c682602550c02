"""
Dose and Schedule domain model.

A Dose carries its planned date and, once administered, its given date, each
in both AD and BS form. A Schedule is the ordered, immutable sequence of doses
of one subject, in template order.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .bs_calendar import BSDate, CalendarConverter, DualDate


class DoseStatus(Enum):
    PENDING = "Pending"
    GIVEN = "Given"
    MISSED = "Missed"

    @classmethod
    def from_label(cls, label: str) -> "DoseStatus":
        """Case-insensitive parse of 'Pending' / 'Given' / 'Missed'."""
        key = str(label).strip().lower()
        mapping = {
            "pending": cls.PENDING,
            "given": cls.GIVEN,
            "missed": cls.MISSED,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown dose status label: {label!r}")


class Unresolved(Enum):
    """Stand-in for a scheduled date that could not be computed."""

    MARKER = "N/A"

    def __str__(self) -> str:
        return self.value


UNRESOLVED = Unresolved.MARKER

ADValue = Union[date, Unresolved]
BSValue = Union[BSDate, Unresolved]


@dataclass(frozen=True)
class Dose:
    """
    One scheduled or administered dose.

    Attributes:
        name: Dose name, unique within a schedule.
        scheduled_date_ad: Planned AD date, or UNRESOLVED.
        scheduled_date_bs: Planned BS date, or UNRESOLVED (same day as the AD value).
        given_date_ad: AD date of administration, None until Given.
        given_date_bs: BS date of administration, None until Given.
        status: Pending, Given or Missed.
    """

    name: str
    scheduled_date_ad: ADValue
    scheduled_date_bs: BSValue
    given_date_ad: Optional[date] = None
    given_date_bs: Optional[BSDate] = None
    status: DoseStatus = DoseStatus.PENDING

    def __post_init__(self) -> None:
        if not isinstance(self.status, DoseStatus):
            raise ValueError(f"status must be a DoseStatus, got {self.status!r}")

        given_set = self.given_date_ad is not None and self.given_date_bs is not None
        given_partial = (self.given_date_ad is None) != (self.given_date_bs is None)
        if given_partial:
            raise ValueError(f"Dose {self.name!r}: given date must be set in both AD and BS")
        if (self.status is DoseStatus.GIVEN) != given_set:
            raise ValueError(
                f"Dose {self.name!r}: status {self.status.value!r} does not match given dates"
            )

        # both scheduled fields resolved or both unresolved
        if (self.scheduled_date_ad is UNRESOLVED) != (self.scheduled_date_bs is UNRESOLVED):
            raise ValueError(f"Dose {self.name!r}: scheduled AD/BS dates disagree on resolution")

    @classmethod
    def pending(cls, name: str, scheduled: DualDate) -> "Dose":
        return cls(name, scheduled.ad, scheduled.bs)

    @classmethod
    def unresolved(cls, name: str) -> "Dose":
        return cls(name, UNRESOLVED, UNRESOLVED)

    @property
    def is_given(self) -> bool:
        return self.status is DoseStatus.GIVEN

    @property
    def is_resolved(self) -> bool:
        return self.scheduled_date_ad is not UNRESOLVED

    @property
    def effective_date_ad(self) -> ADValue:
        """The date downstream doses are measured from: given date if Given, else the plan."""
        if self.is_given:
            return self.given_date_ad
        return self.scheduled_date_ad

    def administered(self, given: DualDate) -> "Dose":
        """A copy stamped as Given on `given`."""
        return replace(
            self,
            given_date_ad=given.ad,
            given_date_bs=given.bs,
            status=DoseStatus.GIVEN,
        )

    def is_overdue(self, today: date) -> bool:
        return (
            not self.is_given
            and self.is_resolved
            and self.scheduled_date_ad < today
        )

    def to_record(self) -> Dict[str, Any]:
        """Plain dict with ISO / "YYYY-MM-DD" strings, as consumed by storage and reports."""
        return {
            "name": self.name,
            "scheduled_date_ad": _text(self.scheduled_date_ad),
            "scheduled_date_bs": _text(self.scheduled_date_bs),
            "given_date_ad": _text(self.given_date_ad),
            "given_date_bs": _text(self.given_date_bs),
            "status": self.status.value,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any], converter: CalendarConverter) -> "Dose":
        """
        Rebuild a Dose from `to_record` output. BS strings are authoritative:
        AD values are re-derived from them.
        """
        scheduled_bs = record.get("scheduled_date_bs")
        if not scheduled_bs or str(scheduled_bs) == UNRESOLVED.value:
            scheduled_ad: ADValue = UNRESOLVED
            scheduled: BSValue = UNRESOLVED
        else:
            pair = converter.dual_from_bs(str(scheduled_bs))
            scheduled_ad, scheduled = pair.ad, pair.bs

        given_bs = record.get("given_date_bs")
        given = converter.dual_from_bs(str(given_bs)) if given_bs else None
        return cls(
            name=str(record["name"]),
            scheduled_date_ad=scheduled_ad,
            scheduled_date_bs=scheduled,
            given_date_ad=given.ad if given else None,
            given_date_bs=given.bs if given else None,
            status=DoseStatus.from_label(record.get("status", "Pending")),
        )


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class Schedule:
    """Immutable ordered sequence of doses, in template order."""

    doses: Tuple[Dose, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "doses", tuple(self.doses))
        names = [dose.name for dose in self.doses]
        if len(names) != len(set(names)):
            raise ValueError(f"Dose names must be unique within a schedule: {names}")

    def __iter__(self) -> Iterator[Dose]:
        return iter(self.doses)

    def __len__(self) -> int:
        return len(self.doses)

    def __contains__(self, name: object) -> bool:
        return any(dose.name == name for dose in self.doses)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(dose.name for dose in self.doses)

    def get(self, name: str) -> Optional[Dose]:
        for dose in self.doses:
            if dose.name == name:
                return dose
        return None

    def __getitem__(self, name: str) -> Dose:
        dose = self.get(name)
        if dose is None:
            raise KeyError(f"No dose named {name!r} in schedule")
        return dose

    def given(self) -> List[Dose]:
        return [dose for dose in self.doses if dose.is_given]

    def pending(self) -> List[Dose]:
        return [dose for dose in self.doses if not dose.is_given]

    def all_given(self, names: Sequence[str]) -> bool:
        """True when every named dose exists and is Given."""
        return all(
            (self.get(name) is not None and self.get(name).is_given) for name in names
        )

    @property
    def has_given(self) -> bool:
        return any(dose.is_given for dose in self.doses)

    def replace_dose(self, updated: Dose) -> "Schedule":
        """New Schedule with the same-named dose swapped for `updated`."""
        if updated.name not in self:
            raise KeyError(f"No dose named {updated.name!r} in schedule")
        return Schedule(
            tuple(updated if dose.name == updated.name else dose for dose in self.doses)
        )

    def as_of(self, today: date) -> "Schedule":
        """
        Display view: Pending doses whose plan lies before `today` become
        Missed. The scheduler treats Missed like Pending, so this never
        changes any computed date.
        """
        doses = []
        for dose in self.doses:
            if dose.is_overdue(today):
                dose = replace(dose, status=DoseStatus.MISSED)
            elif dose.status is DoseStatus.MISSED and not dose.is_overdue(today):
                dose = replace(dose, status=DoseStatus.PENDING)
            doses.append(dose)
        return Schedule(tuple(doses))

    def to_records(self) -> List[Dict[str, Any]]:
        return [dose.to_record() for dose in self.doses]

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]], converter: CalendarConverter) -> "Schedule":
        return cls(tuple(Dose.from_record(record, converter) for record in records))
