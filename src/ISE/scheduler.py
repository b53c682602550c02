"""
Dose scheduler.

Computes a subject's Schedule from its anchor date and a ScheduleTemplate:

1) walk the template strictly in definition order, so every anchor has been
   resolved before the entry that depends on it;
2) a dose already Given in the prior schedule is carried forward unchanged,
   and its given date is what later entries are measured from;
3) every other dose is planned at anchor date + offset (AD arithmetic,
   mirrored to BS by the CalendarConverter);
4) a dose whose anchor cannot be resolved gets the UNRESOLVED marker on both
   date fields instead of failing the whole schedule.

The result always follows template order and is recomputed from scratch on
every call; nothing is patched in place.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional, Union

from .bs_calendar import CalendarConverter, DualDate
from .dose import UNRESOLVED, ADValue, Dose, Schedule
from .template import ORIGIN, ScheduleTemplate, ScheduleTemplateEntry

LOGGER = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when a schedule cannot be created, e.g. the anchor date is missing."""


class DoseScheduler:
    def __init__(self, converter: Optional[CalendarConverter] = None):
        self._converter = converter or CalendarConverter()

    @property
    def converter(self) -> CalendarConverter:
        return self._converter

    def compute(
        self,
        anchor_date: Union[DualDate, date, None],
        template: ScheduleTemplate,
        prior_schedule: Optional[Schedule] = None,
    ) -> Schedule:
        """
        Build the schedule for `template` measured from `anchor_date`.
        Given doses in `prior_schedule` are frozen; everything else is replanned.
        """
        if anchor_date is None:
            raise ValidationError(f"Template {template.program!r}: an anchor date is required")
        origin = anchor_date.ad if isinstance(anchor_date, DualDate) else anchor_date

        # name -> date later entries are measured from (given date or plan)
        resolved: Dict[str, ADValue] = {}
        doses = []
        for entry in template.entries:
            prior = prior_schedule.get(entry.name) if prior_schedule is not None else None
            if prior is not None and prior.is_given:
                dose = prior
            else:
                dose = self._plan(entry, origin, resolved, template.program)
            resolved[entry.name] = dose.effective_date_ad
            doses.append(dose)

        return Schedule(tuple(doses))

    def _plan(
        self,
        entry: ScheduleTemplateEntry,
        origin: date,
        resolved: Dict[str, ADValue],
        program: str,
    ) -> Dose:
        if not entry.is_computed:
            # given on clinical judgment, no planned date
            return Dose.unresolved(entry.name)

        if entry.anchor == ORIGIN:
            base: ADValue = origin
        elif entry.anchor in resolved:
            base = resolved[entry.anchor]
        else:
            LOGGER.warning(
                f"Template {program!r}: {entry.name!r} anchors to {entry.anchor!r}, "
                f"which is not an earlier dose; leaving it unresolved"
            )
            return Dose.unresolved(entry.name)

        if base is UNRESOLVED:
            LOGGER.debug(f"{entry.name!r}: anchor {entry.anchor!r} is unresolved")
            return Dose.unresolved(entry.name)

        try:
            target = self._converter.add_months(base, entry.relative_months)
            target = self._converter.add_days(target, entry.relative_days)
            return Dose.pending(entry.name, self._converter.dual(target))
        except (ValueError, OverflowError) as e:
            # ConversionError is a ValueError
            LOGGER.warning(f"Template {program!r}: cannot date {entry.name!r}: {e}")
            return Dose.unresolved(entry.name)
