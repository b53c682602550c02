import logging
import pathlib
import typing

import pandas as pd
from stairval.notepad import Notepad

from .template import ScheduleTemplate, ScheduleTemplateEntry, audit_template, normalize_anchor

LOGGER = logging.getLogger(__name__)

# Columns that need renaming → target dataclass fields
RENAME_MAP = {
    "dose": "name",
    "vaccine": "name",
    "days": "relative_days",
    "offset_days": "relative_days",
    "months": "relative_months",
    "offset_months": "relative_months",
    "base": "anchor",
}

TEMPLATE_KEY_COLUMNS = {"name", "relative_days"}


def load_template_table(table_path: str) -> pd.DataFrame:
    """
    Read a template table (.csv, or .xlsx via openpyxl, first sheet):
      - first row = header
      - normalize all headers to snake_case lowercase
      - apply renames from RENAME_MAP
    Row order is kept: it is the template order.
    """
    path = pathlib.Path(table_path)
    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        df = pd.read_excel(path, sheet_name=0, header=0, engine="openpyxl", dtype=object)
    else:
        df = pd.read_csv(path, header=0, dtype=object, keep_default_na=True)

    # CLEAN & NORMALIZE headers:
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
        .str.lower()
    )

    df = df.rename(
        columns={
            orig: target
            for orig, target in RENAME_MAP.items()
            if orig in df.columns and target not in df.columns
        }
    )
    LOGGER.debug(f"Loaded template table {path.name!r} with columns {list(df.columns)}")
    return df


def _to_optional_int(value: typing.Any) -> typing.Optional[int]:
    """
    Offsets from spreadsheets:
    - empty/NaN -> None
    - 42, 42.0, "42" -> 42
    - anything else raises ValueError
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        value = float(text)
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"offset must be a whole number, got {value!r}")
    return int(number)


def template_from_table(
    df: pd.DataFrame,
    program: str,
    notepad: Notepad,
    terminal: typing.Sequence[str] = (),
) -> ScheduleTemplate:
    """
    Convert table rows into a ScheduleTemplate. Rows that cannot be parsed are
    reported in the notepad and skipped; the result is then audited.
    """
    missing = sorted(TEMPLATE_KEY_COLUMNS - set(df.columns))
    if missing:
        notepad.add_error(f"Template table: missing required columns: {missing}")
        return ScheduleTemplate(program, (), tuple(terminal))

    entries: list[ScheduleTemplateEntry] = []
    for index, row in df.iterrows():
        raw_name = row.get("name")
        if raw_name is None or pd.isna(raw_name) or not str(raw_name).strip():
            notepad.add_error(f"Template table, row {index}: missing dose name")
            continue
        try:
            raw_anchor = row.get("anchor")
            anchor = normalize_anchor(None if raw_anchor is None or pd.isna(raw_anchor) else str(raw_anchor))
            entries.append(
                ScheduleTemplateEntry(
                    name=str(raw_name).strip(),
                    relative_days=_to_optional_int(row.get("relative_days")),
                    anchor=anchor,
                    relative_months=_to_optional_int(row.get("relative_months")) or 0,
                )
            )
        except (ValueError, TypeError) as exception:
            notepad.add_error(f"Template table, row {index}: {exception}")

    template = ScheduleTemplate(program, tuple(entries), tuple(terminal))
    audit_template(template, notepad)
    return template
