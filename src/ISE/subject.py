"""
Subject domain model.

A Subject is the record that owns one schedule: a child (anchored to the
date of birth), a pregnant patient (anchored to the LMP) or a rabies
exposure patient (anchored to the exposure/start date, with a regimen).
Subjects are values: every operation returns a new Subject carrying a freshly
computed Schedule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from .bs_calendar import CalendarConverter, ConversionError, DualDate
from .dose import Schedule
from .recalculation import RecalculationEngine
from .scheduler import DoseScheduler, ValidationError
from .template import Program, Regimen, ScheduleTemplate, rabies_template, template_for

LOGGER = logging.getLogger(__name__)

# LMP + 40 weeks
GESTATION_DAYS = 280

# Doses only the intramuscular regimen has (D14, D28)
INTRAMUSCULAR_ONLY_DOSES = frozenset(rabies_template(Regimen.INTRAMUSCULAR).names) - frozenset(
    rabies_template(Regimen.INTRADERMAL).names
)


@dataclass(frozen=True)
class Subject:
    """
    Attributes:
        subject_id: Caller supplied identifier (registration number).
        program: Vaccination program.
        anchor: Origin date in AD and BS.
        template: Template the schedule was computed from.
        schedule: Current schedule.
        regimen: Rabies regimen, None for other programs.
        converter: Calendar the subject was registered with.
    """

    subject_id: str
    program: Program
    anchor: DualDate
    template: ScheduleTemplate
    schedule: Schedule
    regimen: Optional[Regimen] = None
    converter: CalendarConverter = field(default_factory=CalendarConverter, compare=False, repr=False)

    @classmethod
    def register(
        cls,
        subject_id: str,
        program: Program,
        anchor_bs: Optional[str],
        regimen: Optional[Regimen] = None,
        template: Optional[ScheduleTemplate] = None,
        converter: Optional[CalendarConverter] = None,
    ) -> "Subject":
        """
        Create a subject and its first schedule from a BS anchor string.

        `template` overrides the built-in program template. For rabies the
        regimen of a custom template is read from its doses when none is
        given; a regimen that contradicts the template is a ValidationError.
        """
        scheduler = DoseScheduler(converter)
        anchor = _parse_anchor(anchor_bs, scheduler.converter)
        if program is Program.RABIES:
            regimen = _rabies_regimen(subject_id, regimen, template)
        else:
            regimen = None
        template = template or template_for(program, regimen)
        return cls(
            subject_id=subject_id,
            program=program,
            anchor=anchor,
            template=template,
            schedule=scheduler.compute(anchor, template),
            regimen=regimen,
            converter=scheduler.converter,
        )

    @property
    def estimated_due_date(self) -> Optional[DualDate]:
        """
        LMP + 280 days for maternal subjects; display only, not part of the dose chain.
        None for other programs and when the date falls outside the calendar range.
        """
        if self.program is not Program.MATERNAL_TD:
            return None
        due = self.converter.add_days(self.anchor.ad, GESTATION_DAYS)
        try:
            return self.converter.dual(due)
        except ConversionError as e:
            LOGGER.warning(f"Subject {self.subject_id!r}: no estimated due date: {e}")
            return None

    @property
    def fully_immunized(self) -> bool:
        if not self.template.terminal:
            return False
        return self.schedule.all_given(self.template.terminal)

    def change_anchor(self, anchor_bs: str, converter: Optional[CalendarConverter] = None) -> "Subject":
        """Move the origin date; only allowed while nothing has been given."""
        self._require_untouched("anchor date")
        scheduler = DoseScheduler(converter or self.converter)
        anchor = _parse_anchor(anchor_bs, scheduler.converter)
        return replace(
            self,
            anchor=anchor,
            schedule=scheduler.compute(anchor, self.template),
            converter=scheduler.converter,
        )

    def change_regimen(self, regimen: Regimen, converter: Optional[CalendarConverter] = None) -> "Subject":
        """
        Switch the rabies regimen; only allowed while nothing has been given
        and while the subject is on a built-in rabies template. A custom
        template is never swapped out: register the subject again instead.
        """
        if self.program is not Program.RABIES:
            raise ValidationError(f"Subject {self.subject_id!r}: only rabies subjects have a regimen")
        self._require_untouched("regimen")
        if self.template != template_for(Program.RABIES, self.regimen):
            raise ValidationError(
                f"Subject {self.subject_id!r}: regimen of custom template {self.template.program!r} cannot be changed"
            )
        template = template_for(Program.RABIES, regimen)
        scheduler = DoseScheduler(converter or self.converter)
        schedule = scheduler.compute(self.anchor, template)
        return replace(self, regimen=regimen, template=template, schedule=schedule, converter=scheduler.converter)

    def administer(
        self,
        dose_name: str,
        given_date_bs: str,
        today: date,
        privileged: bool = False,
        converter: Optional[CalendarConverter] = None,
    ) -> "Subject":
        """Record an administration event; see RecalculationEngine.on_dose_administered."""
        engine = RecalculationEngine(self.template, DoseScheduler(converter or self.converter))
        schedule = engine.on_dose_administered_bs(
            self.schedule,
            dose_name,
            given_date_bs,
            anchor_date=self.anchor,
            today=today,
            privileged=privileged,
        )
        return replace(self, schedule=schedule)

    def _require_untouched(self, what: str) -> None:
        if self.schedule.has_given:
            raise ValidationError(
                f"Subject {self.subject_id!r}: cannot change {what} after a dose has been given"
            )


def _parse_anchor(anchor_bs: Optional[str], converter: CalendarConverter) -> DualDate:
    if anchor_bs is None or not str(anchor_bs).strip():
        raise ValidationError("An anchor date (BS) is required")
    return converter.dual_from_bs(str(anchor_bs))


def _rabies_regimen(
    subject_id: str,
    regimen: Optional[Regimen],
    template: Optional[ScheduleTemplate],
) -> Regimen:
    if template is None:
        return regimen or Regimen.INTRADERMAL
    implied = (
        Regimen.INTRAMUSCULAR
        if INTRAMUSCULAR_ONLY_DOSES & set(template.names)
        else Regimen.INTRADERMAL
    )
    if regimen is not None and regimen is not implied:
        raise ValidationError(
            f"Subject {subject_id!r}: template {template.program!r} is {implied.value.lower()}, "
            f"not {regimen.value.lower()}"
        )
    return implied
