"""
Schedule template domain model.

A ScheduleTemplate is the fixed, ordered list of doses of one vaccination
program. Each entry is measured from an anchor: either the subject's origin
date (birth, LMP, exposure) or an earlier entry of the same template.
Templates are immutable values handed to the scheduler; nothing here is
mutated at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from stairval.notepad import Notepad

# Anchor sentinel for "measured from the subject's origin date"
ORIGIN = "origin"

# Anchor spellings accepted from configuration tables
_ORIGIN_ALIASES = {"origin", "dob", "lmp", "start", "exposure", ""}


class Program(Enum):
    """The vaccination programs handled by the engine."""

    CHILD = "child"
    MATERNAL_TD = "maternal"
    RABIES = "rabies"

    @classmethod
    def from_label(cls, label: str) -> "Program":
        key = label.strip().lower().replace("-", "_").replace(" ", "_")
        mapping = {
            "child": cls.CHILD,
            "child_immunization": cls.CHILD,
            "maternal": cls.MATERNAL_TD,
            "maternal_td": cls.MATERNAL_TD,
            "td": cls.MATERNAL_TD,
            "rabies": cls.RABIES,
            "pep": cls.RABIES,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown program label: {label!r}")


class Regimen(Enum):
    """Rabies post-exposure prophylaxis variants."""

    INTRADERMAL = "Intradermal"
    INTRAMUSCULAR = "Intramuscular"

    @classmethod
    def from_label(cls, label: str) -> "Regimen":
        key = label.strip().lower()
        mapping = {
            "intradermal": cls.INTRADERMAL,
            "id": cls.INTRADERMAL,
            "intramuscular": cls.INTRAMUSCULAR,
            "im": cls.INTRAMUSCULAR,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown regimen label: {label!r}")


def normalize_anchor(value: Optional[str]) -> str:
    """Map the origin spellings ('dob', 'lmp', blank, ...) to ORIGIN; keep dose names as-is."""
    if value is None:
        return ORIGIN
    text = str(value).strip()
    return ORIGIN if text.lower() in _ORIGIN_ALIASES else text


@dataclass(frozen=True)
class ScheduleTemplateEntry:
    """
    One dose definition.

    Attributes:
        name: Dose name, unique within the template.
        relative_days: Day offset from the anchor, or None when the dose has
            no computed date and is given on clinical judgment.
        anchor: ORIGIN or the name of an earlier entry.
        relative_months: Gregorian month offset applied before the day offset.
    """

    name: str
    relative_days: Optional[int]
    anchor: str = ORIGIN
    relative_months: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError(f"Invalid dose name: {self.name!r}")
        if self.relative_days is not None and (
            isinstance(self.relative_days, bool) or not isinstance(self.relative_days, int)
        ):
            raise ValueError(
                f"relative_days must be an integer or None, got {type(self.relative_days).__name__}"
            )
        if isinstance(self.relative_months, bool) or not isinstance(self.relative_months, int):
            raise ValueError(
                f"relative_months must be an integer, got {type(self.relative_months).__name__}"
            )

    @property
    def is_computed(self) -> bool:
        return self.relative_days is not None

    @property
    def is_program_start(self) -> bool:
        """The first dose of a program: origin anchored at offset 0."""
        return (
            self.anchor == ORIGIN
            and self.relative_days == 0
            and self.relative_months == 0
        )


@dataclass(frozen=True)
class ScheduleTemplate:
    """
    Ordered, read-only dose definitions for one program.

    `terminal` lists the dose names whose Given status makes a subject fully
    immunized for this program.
    """

    program: str
    entries: Tuple[ScheduleTemplateEntry, ...]
    terminal: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # accept any sequence but store tuples so the value stays hashable
        object.__setattr__(self, "entries", tuple(self.entries))
        object.__setattr__(self, "terminal", tuple(self.terminal))

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(entry.name for entry in self.entries)

    def entry(self, name: str) -> ScheduleTemplateEntry:
        for entry in self.entries:
            if entry.name == name:
                return entry
        raise KeyError(f"No dose named {name!r} in {self.program!r} template")


# -------------------------
# Built-in program templates
# -------------------------


def child_template() -> ScheduleTemplate:
    """National child immunization schedule (17 doses)."""
    entries = [
        ScheduleTemplateEntry("BCG", 0),
        ScheduleTemplateEntry("DPT-HepB-Hib-1", 42),
        ScheduleTemplateEntry("OPV-1", 42),
        ScheduleTemplateEntry("PCV-1", 42),
        ScheduleTemplateEntry("Rota-1", 42),
        # 10-week doses follow the actual 6-week dose
        ScheduleTemplateEntry("DPT-HepB-Hib-2", 28, "DPT-HepB-Hib-1"),
        ScheduleTemplateEntry("OPV-2", 28, "OPV-1"),
        ScheduleTemplateEntry("Rota-2", 28, "Rota-1"),
        ScheduleTemplateEntry("PCV-2", 28, "PCV-1"),
        # FIPV rides on the DPT series
        ScheduleTemplateEntry("FIPV", 28, "DPT-HepB-Hib-2"),
        ScheduleTemplateEntry("DPT-HepB-Hib-3", 28, "DPT-HepB-Hib-2"),
        ScheduleTemplateEntry("OPV-3", 28, "OPV-2"),
        ScheduleTemplateEntry("MR-1", 270),
        ScheduleTemplateEntry("JE", 270),
        ScheduleTemplateEntry("PCV-3", 270),
        ScheduleTemplateEntry("MR-2", 450),
        ScheduleTemplateEntry("Typhoid", 450),
    ]
    return ScheduleTemplate("child", entries, terminal=("MR-2", "Typhoid"))


def maternal_td_template() -> ScheduleTemplate:
    """Maternal tetanus-diphtheria: TD1 on clinical judgment, TD2 +28 days, booster +6 months."""
    entries = [
        ScheduleTemplateEntry("TD1", None),
        ScheduleTemplateEntry("TD2", 28, "TD1"),
        ScheduleTemplateEntry("TD Booster", 0, "TD2", relative_months=6),
    ]
    return ScheduleTemplate("maternal", entries, terminal=("TD Booster",))


def rabies_template(regimen: Regimen = Regimen.INTRADERMAL) -> ScheduleTemplate:
    """Rabies PEP. D7 is measured from D3, never from D0."""
    entries = [
        ScheduleTemplateEntry("D0", 0),
        ScheduleTemplateEntry("D3", 3),
        ScheduleTemplateEntry("D7", 4, "D3"),
    ]
    terminal: Tuple[str, ...] = ("D7",)
    if regimen is Regimen.INTRAMUSCULAR:
        entries += [
            ScheduleTemplateEntry("D14", 14),
            ScheduleTemplateEntry("D28", 28),
        ]
        terminal = ("D28",)
    return ScheduleTemplate(f"rabies-{regimen.value.lower()}", entries, terminal=terminal)


def template_for(program: Program, regimen: Optional[Regimen] = None) -> ScheduleTemplate:
    if program is Program.CHILD:
        return child_template()
    if program is Program.MATERNAL_TD:
        return maternal_td_template()
    return rabies_template(regimen or Regimen.INTRADERMAL)


# ------------------
# Template validation
# ------------------


def audit_template(template: ScheduleTemplate, notepad: Notepad) -> None:
    """
    Record template configuration problems in the notepad:
      - duplicate dose names (error)
      - anchors that name an unknown or later dose (error)
      - terminal doses missing from the entries (error)
      - negative offsets (warning)
    """
    seen: set[str] = set()
    all_names = set(template.names)
    for position, entry in enumerate(template.entries):
        if entry.name in seen:
            notepad.add_error(f"Template {template.program!r}: duplicate dose name {entry.name!r}")
        if entry.anchor != ORIGIN and entry.anchor not in seen:
            if entry.anchor in all_names:
                notepad.add_error(
                    f"Template {template.program!r}: {entry.name!r} anchors to "
                    f"{entry.anchor!r}, which is defined later"
                )
            else:
                notepad.add_error(
                    f"Template {template.program!r}: {entry.name!r} anchors to unknown dose {entry.anchor!r}"
                )
        if (entry.relative_days or 0) < 0 or entry.relative_months < 0:
            notepad.add_warning(
                f"Template {template.program!r}: {entry.name!r} (entry {position + 1}) has a negative offset"
            )
        seen.add(entry.name)

    for name in template.terminal:
        if name not in all_names:
            notepad.add_error(f"Template {template.program!r}: terminal dose {name!r} is not defined")

