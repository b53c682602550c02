"""
Eligibility checks for a proposed administration date.

Rules are applied in order and the first violation wins:

1) FUTURE_DATE: the date may not be after today, privileged or not.
2) BEFORE_SCHEDULE: unless privileged, the date may not be before the dose's
   scheduled date. The first dose of a program (origin anchored, offset 0) is
   exempt and may be backdated; so is a dose with no computed date (TD1).
   A dose whose plan is unresolved because its anchor is still open is
   rejected as UNRESOLVED_SCHEDULE.
3) ALREADY_GIVEN: unless privileged, a Given dose cannot be re-administered.
   Because rule 2 runs first, re-administering a Given dose on a date before
   its schedule is reported as BEFORE_SCHEDULE; only dates on or after the
   schedule (and exempt doses on any past date) raise the conflict.

A rejection is reported, never corrected: the proposed date is not clamped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from .bs_calendar import BSDate
from .dose import UNRESOLVED, ADValue, BSValue, Dose
from .template import ScheduleTemplate


class Rule(Enum):
    FUTURE_DATE = "future-date"
    BEFORE_SCHEDULE = "before-schedule"
    UNRESOLVED_SCHEDULE = "unresolved-schedule"
    ALREADY_GIVEN = "already-given"


@dataclass(frozen=True)
class EligibilityResult:
    """
    Outcome of EligibilityGuard.validate.

    Attributes:
        dose_name: Dose the check was run for.
        rule: Violated rule, None when the date is accepted.
        reason: Human readable message, empty when accepted.
        scheduled_date_ad: The dose's scheduled AD date at check time.
        scheduled_date_bs: The dose's scheduled BS date at check time.
    """

    dose_name: str
    rule: Optional[Rule] = None
    reason: str = ""
    scheduled_date_ad: ADValue = UNRESOLVED
    scheduled_date_bs: BSValue = UNRESOLVED

    @property
    def ok(self) -> bool:
        return self.rule is None

    def __bool__(self) -> bool:
        return self.ok


class EligibilityRejection(Exception):
    """An administration date broke one of the eligibility rules; nothing was changed."""

    def __init__(self, result: EligibilityResult):
        super().__init__(result.reason)
        self.result = result

    @property
    def rule(self) -> Optional[Rule]:
        return self.result.rule


class AlreadyGivenConflict(EligibilityRejection):
    """A Given dose was administered again without the privileged capability."""


class EligibilityGuard:
    def __init__(self, template: ScheduleTemplate):
        self._template = template

    def validate(
        self,
        dose: Dose,
        proposed_date_ad: date,
        today: date,
        privileged: bool = False,
    ) -> EligibilityResult:
        """
        Check `proposed_date_ad` for `dose`; the first violated rule wins, so an
        early date for a Given dose is BEFORE_SCHEDULE rather than ALREADY_GIVEN.
        """
        scheduled_ad = dose.scheduled_date_ad
        scheduled_bs = dose.scheduled_date_bs

        def reject(rule: Rule, reason: str) -> EligibilityResult:
            return EligibilityResult(dose.name, rule, reason, scheduled_ad, scheduled_bs)

        if proposed_date_ad > today:
            return reject(
                Rule.FUTURE_DATE,
                f"{dose.name}: administration date {proposed_date_ad.isoformat()} "
                f"is after today ({today.isoformat()})",
            )

        if not privileged:
            entry = self._template.entry(dose.name)
            exempt = entry.is_program_start or not entry.is_computed
            if not exempt and not dose.is_resolved:
                return reject(
                    Rule.UNRESOLVED_SCHEDULE,
                    f"{dose.name}: no scheduled date yet; {entry.anchor!r} must be given first",
                )
            if not exempt and proposed_date_ad < scheduled_ad:
                return reject(
                    Rule.BEFORE_SCHEDULE,
                    f"{dose.name}: scheduled for {_bs_text(scheduled_bs)} "
                    f"({scheduled_ad.isoformat()}); cannot record an earlier date",
                )
            if dose.is_given:
                return reject(
                    Rule.ALREADY_GIVEN,
                    f"{dose.name}: already given on {_bs_text(dose.given_date_bs)}",
                )

        return EligibilityResult(dose.name, None, "", scheduled_ad, scheduled_bs)


def _bs_text(value: Optional[BSValue]) -> str:
    if isinstance(value, BSDate):
        return str(value)
    return str(value or UNRESOLVED)
