"""
Command-line interface for the ISE toolkit.
Converts dates between AD and BS, prints a subject's schedule after replaying
administration events, and audits template configuration tables.
"""

import json
import logging
import os
import sys
import typing
from datetime import date

import click
from stairval.notepad import create_notepad

from .bs_calendar import CalendarConverter, ConversionError
from .eligibility import AlreadyGivenConflict, EligibilityRejection
from .loader import load_template_table, template_from_table
from .report import schedule_to_frame
from .scheduler import ValidationError
from .subject import Subject
from .template import Program, Regimen, audit_template, template_for

PROGRAM_CHOICES = [program.value for program in Program]
REGIMEN_CHOICES = ["intradermal", "intramuscular"]


@click.group()
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def main(verbose_logging: bool = False, log_file_path: typing.Optional[str] = None):
    """ISE: Immunization Schedule Engine for child, maternal TD and rabies PEP programs."""
    # configure logging
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
        )


@main.command(name="convert")
@click.option("-a", "--ad", "ad_text", type=str, help="AD date (YYYY-MM-DD) to convert to BS")
@click.option("-b", "--bs", "bs_text", type=str, help="BS date (YYYY-MM-DD) to convert to AD")
def convert(ad_text: typing.Optional[str], bs_text: typing.Optional[str]):
    """
    Convert one date between the Gregorian (AD) and Bikram Sambat (BS) calendars.
    """
    if bool(ad_text) == bool(bs_text):
        click.echo("Error: give exactly one of --ad or --bs", err=True)
        sys.exit(1)

    converter = CalendarConverter()
    try:
        if ad_text:
            click.echo(converter.format_bs(converter.to_bs(date.fromisoformat(ad_text.strip()))))
        else:
            click.echo(converter.to_ad(converter.parse_bs(bs_text)).isoformat())
    except ValueError as e:
        # ConversionError and malformed ISO text alike
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command(name="schedule")
@click.option(
    "-p",
    "--program",
    type=click.Choice(PROGRAM_CHOICES, case_sensitive=False),
    default="child",
    show_default=True,
    help="vaccination program",
)
@click.option("--anchor", "anchor_bs", required=True, help="origin date in BS (DOB, LMP or exposure date)")
@click.option(
    "--regimen",
    type=click.Choice(REGIMEN_CHOICES, case_sensitive=False),
    default=None,
    help="rabies regimen (default: intradermal)",
)
@click.option(
    "-g",
    "--given",
    "given_events",
    multiple=True,
    help="administration event NAME=YYYY-MM-DD (BS); repeat, applied in order",
)
@click.option("--privileged", is_flag=True, help="allow backdating and corrections of given doses")
@click.option(
    "-t",
    "--template-path",
    type=click.Path(exists=True, dir_okay=False),
    help="custom template table (.csv or .xlsx) instead of the built-in program template",
)
@click.option("-r", "--raw", is_flag=True, help="print the schedule as JSON")
def schedule(
    program: str,
    anchor_bs: str,
    regimen: typing.Optional[str],
    given_events: typing.Tuple[str, ...],
    privileged: bool,
    template_path: typing.Optional[str],
    raw: bool,
):
    """
    Compute a subject's schedule, replay the --given events through the
    recalculation engine, and print the result.
    """
    selected_program = Program.from_label(program)
    selected_regimen = Regimen.from_label(regimen) if regimen else None

    template = None
    if template_path:
        template = _load_custom_template(template_path, selected_program.value)

    today = _today()
    try:
        subject = Subject.register("CLI", selected_program, anchor_bs, selected_regimen, template)
        for event in given_events:
            dose_name, given_bs = _split_event(event)
            subject = subject.administer(dose_name, given_bs, today, privileged=privileged)
    except AlreadyGivenConflict as e:
        click.echo(f"Conflict: {e}", err=True)
        sys.exit(1)
    except EligibilityRejection as e:
        click.echo(f"Rejected ({e.rule.value}): {e}", err=True)
        sys.exit(1)
    except (ConversionError, ValidationError, KeyError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    view = subject.schedule.as_of(today)
    if raw:
        payload = {
            "program": subject.template.program,
            "anchor_bs": subject.anchor.bs_string,
            "anchor_ad": subject.anchor.ad_string,
            "fully_immunized": subject.fully_immunized,
            "doses": view.to_records(),
        }
        edd = subject.estimated_due_date
        if edd is not None:
            payload["estimated_due_date_bs"] = edd.bs_string
        payload["today_bs"] = subject.converter.today_bs(today)
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    click.echo(f"Program: {subject.template.program}  Anchor: {subject.anchor.bs_string} ({subject.anchor.ad_string})")
    click.echo(f"Today: {subject.converter.today_bs(today)} ({today.isoformat()})")
    edd = subject.estimated_due_date
    if edd is not None:
        click.echo(f"Estimated due date: {edd.bs_string} ({edd.ad_string})")
    click.echo(schedule_to_frame(view).to_string(index=False))
    click.echo(f"Fully immunized: {'yes' if subject.fully_immunized else 'no'}")


@main.command(name="audit-template")
@click.option(
    "-t",
    "--template-path",
    type=click.Path(exists=True, dir_okay=False),
    help="template table (.csv or .xlsx) to audit",
)
@click.option(
    "-p",
    "--program",
    type=click.Choice(PROGRAM_CHOICES, case_sensitive=False),
    default="child",
    show_default=True,
    help="built-in program to audit when no table is given",
)
@click.option(
    "--regimen",
    type=click.Choice(REGIMEN_CHOICES, case_sensitive=False),
    default=None,
    help="rabies regimen for the built-in template",
)
def audit_template_command(template_path: typing.Optional[str], program: str, regimen: typing.Optional[str]):
    """
    Check a template for duplicate names, bad anchors and unknown terminal doses.
    """
    notepad = create_notepad("template")
    if template_path:
        df = load_template_table(template_path)
        template = template_from_table(df, program, notepad)
    else:
        template = template_for(Program.from_label(program), Regimen.from_label(regimen) if regimen else None)
        audit_template(template, notepad)

    _report_issues(notepad)
    if notepad.has_errors(include_subsections=True):
        sys.exit(1)
    click.echo(f"Template {template.program!r}: {len(template)} doses OK")


def _today() -> date:
    # ISE_TODAY pins "today" for reproducible runs
    pinned = os.getenv("ISE_TODAY")
    if pinned:
        return date.fromisoformat(pinned.strip())
    return date.today()


def _split_event(event: str) -> typing.Tuple[str, str]:
    name, sep, given_bs = event.rpartition("=")
    if not sep or not name.strip() or not given_bs.strip():
        raise click.BadParameter(f"expected NAME=YYYY-MM-DD, got {event!r}", param_hint="--given")
    return name.strip(), given_bs.strip()


def _load_custom_template(template_path: str, program: str):
    notepad = create_notepad("template")
    template = template_from_table(load_template_table(template_path), program, notepad)
    _report_issues(notepad)
    if notepad.has_errors(include_subsections=True):
        click.echo(f"Error: template {template_path} has errors", err=True)
        sys.exit(1)
    return template


def _report_issues(notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in template:")
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in template:")
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


if __name__ == "__main__":
    main()
