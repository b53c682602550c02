"""
Recalculation engine.

Applies a "dose administered" event to a schedule: the proposed date is
checked by the EligibilityGuard, the named dose is stamped Given, and the
whole schedule is regenerated by the DoseScheduler with that dose frozen.
Regenerating from scratch is what carries the change down multi-hop anchor
chains (OPV-3 -> OPV-2 -> OPV-1), so no dose is ever patched individually.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Union

from .bs_calendar import DualDate
from .dose import Schedule
from .eligibility import (
    AlreadyGivenConflict,
    EligibilityGuard,
    EligibilityRejection,
    Rule,
)
from .scheduler import DoseScheduler
from .template import ScheduleTemplate

LOGGER = logging.getLogger(__name__)


class RecalculationEngine:
    def __init__(
        self,
        template: ScheduleTemplate,
        scheduler: Optional[DoseScheduler] = None,
        guard: Optional[EligibilityGuard] = None,
    ):
        self._template = template
        self._scheduler = scheduler or DoseScheduler()
        self._guard = guard or EligibilityGuard(template)

    @property
    def template(self) -> ScheduleTemplate:
        return self._template

    @property
    def scheduler(self) -> DoseScheduler:
        return self._scheduler

    def on_dose_administered(
        self,
        schedule: Schedule,
        dose_name: str,
        given_date_ad: date,
        *,
        anchor_date: Union[DualDate, date],
        today: date,
        privileged: bool = False,
    ) -> Schedule:
        """
        Return a new Schedule with `dose_name` Given on `given_date_ad` and every
        pending dose replanned. The input schedule is never modified.

        Raises:
            KeyError: `dose_name` is not in the schedule.
            AlreadyGivenConflict: the dose is already Given and the caller is not privileged.
            EligibilityRejection: any other rule violation.
        """
        dose = schedule[dose_name]
        result = self._guard.validate(dose, given_date_ad, today, privileged)
        if not result.ok:
            LOGGER.warning(f"Rejected {dose_name!r} on {given_date_ad.isoformat()}: {result.reason}")
            if result.rule is Rule.ALREADY_GIVEN:
                raise AlreadyGivenConflict(result)
            raise EligibilityRejection(result)

        converter = self._scheduler.converter
        # BS is derived from the one canonical AD value
        stamped = dose.administered(converter.dual(given_date_ad))
        if dose.is_given:
            LOGGER.info(
                f"Privileged correction of {dose_name!r}: "
                f"{dose.given_date_ad.isoformat()} -> {given_date_ad.isoformat()}"
            )
        else:
            LOGGER.info(f"Recorded {dose_name!r} given on {stamped.given_date_bs}")

        return self._scheduler.compute(anchor_date, self._template, schedule.replace_dose(stamped))

    def on_dose_administered_bs(
        self,
        schedule: Schedule,
        dose_name: str,
        given_date_bs: str,
        *,
        anchor_date: Union[DualDate, date],
        today: date,
        privileged: bool = False,
    ) -> Schedule:
        """Same as on_dose_administered, for a "YYYY-MM-DD" BS date as entered by a user."""
        given = self._scheduler.converter.dual_from_bs(given_date_bs)
        return self.on_dose_administered(
            schedule,
            dose_name,
            given.ad,
            anchor_date=anchor_date,
            today=today,
            privileged=privileged,
        )
