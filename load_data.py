"""
Assessment Data Loader - CSV Edition

Parses the two CSV exports the analyser works from and exposes the
lookups the aggregators join on.

File structure:
- Assessment results: one row per student. Personal columns first
  (Unique ID, Given name, Family name, ...) then one column per question,
  headed by the bare question number ("1", "2", ...). Answers are 1 for
  correct, NA or blank for not attempted, anything else for incorrect.
- Lookup table: one row per metadata label. The "Question number" column
  holds the label ("Strand", "Strand name", "Question difficulty",
  "Percentage correct", "Correct Answer") and the remaining columns are
  keyed by question number.

NOTE: Quoting is not CSV-aware. Every double quote is removed and lines are
split on every comma, so a quoted field containing a comma will misparse.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from config import (
    ABSENT_DISPLAY,
    DELIMITER,
    FAMILY_NAME_FIELD,
    GIVEN_NAME_FIELD,
    LOOKUP_KEY_FIELD,
    NA_SENTINEL,
    PERSONAL_COLUMNS_FALLBACK,
    QUOTE_CHAR,
    UNIQUE_ID_FIELD,
)
from log_setup import get_logger

logger = get_logger("load_data")

# Optional sign, digits with optional fraction (or a bare fraction), optional exponent
DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
# Same literal without the end anchor: the number a cell such as "72%" starts with
LEADING_DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')
LINE_BREAK_PATTERN = re.compile(r'\r?\n')
QUESTION_COLUMN_PATTERN = re.compile(r'^[0-9]+$')


class ParseError(ValueError):
    """Raised when an input file cannot be turned into a table."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Error parsing {source} file: {reason}")


# ==================== CELL VALUES ====================

@dataclass(frozen=True)
class Number:
    """A cell whose text was a pure decimal literal."""
    value: float

    @property
    def text(self) -> str:
        return format_number(self.value)


@dataclass(frozen=True)
class Text:
    """Any other non-empty text (names, identifiers, labels)."""
    value: str

    @property
    def text(self) -> str:
        return self.value


@dataclass(frozen=True)
class Missing:
    """The explicit no-response sentinel "NA" or an empty field."""
    raw: str = ""

    @property
    def text(self) -> str:
        return self.raw


Cell = Union[Number, Text, Missing]
Row = Dict[str, Cell]


def format_number(value: float) -> str:
    """Render 1001.0 as "1001" and 0.45 as "0.45"."""
    if value.is_integer():
        return str(int(value))
    return repr(value)


def coerce_cell(value: str) -> Cell:
    """
    Decide the type of one field from its text.

    Order matters:
    - "1" is the correct-answer marker and is always numeric
    - blank and "NA" are missing responses
    - pure decimal literals (including "0") become numbers
    - everything else stays text
    """
    if value == "1":
        return Number(1.0)
    if value == "" or value == NA_SENTINEL:
        return Missing(value)
    if DECIMAL_PATTERN.match(value):
        return Number(float(value))
    return Text(value)


def cell_text(cell: Optional[Cell]) -> str:
    """Display text of a cell; empty for an absent field."""
    if cell is None:
        return ""
    return cell.text


def cell_float(cell: Optional[Cell]) -> float:
    """Numeric value of a cell, 0.0 when it is not a number."""
    if isinstance(cell, Number):
        return cell.value
    return 0.0


def leading_float(cell: Optional[Cell]) -> float:
    """
    Numeric value of a cell, reading the leading number of text cells.

    "72%" reads as 72.0; text with no leading number, blanks and NA read
    as 0.0.
    """
    if isinstance(cell, Text):
        match = LEADING_DECIMAL_PATTERN.match(cell.value)
        return float(match.group(0)) if match else 0.0
    return cell_float(cell)


def plain_value(cell: Optional[Cell]) -> Union[float, str, None]:
    """Untagged value for JSON output: floats, strings, or None when absent."""
    if cell is None:
        return None
    if isinstance(cell, Number):
        return cell.value
    return cell.text


# ==================== TABLE ====================

@dataclass(frozen=True)
class Table:
    """Parsed CSV: ordered headers plus rows in source order."""
    headers: Tuple[str, ...]
    rows: Tuple[Row, ...]

    def __len__(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        """
        Convert to a DataFrame of plain values for display.

        Numbers become floats, text stays str, and missing or absent
        cells become NaN.
        """
        records = []
        for row in self.rows:
            record = {}
            for header in self.headers:
                cell = row.get(header)
                if isinstance(cell, Number):
                    record[header] = cell.value
                elif isinstance(cell, Text):
                    record[header] = cell.value
                else:
                    record[header] = np.nan
            records.append(record)
        return pd.DataFrame(records, columns=list(self.headers))


def split_line(line: str) -> List[str]:
    """Split on the delimiter, trimming whitespace and dropping quote characters."""
    return [
        field.strip().replace(QUOTE_CHAR, '').strip()
        for field in line.split(DELIMITER)
    ]


def parse_table(text: str, source: str = "table") -> Table:
    """
    Parse delimited text into a Table.

    The first line holds the headers. Each following line is zipped
    positionally against them: short lines are padded with blanks, extra
    values are dropped. Types are decided per cell (see coerce_cell), so
    two rows can hold different types under the same header.

    Args:
        text: Full file contents
        source: Name used in error messages (e.g. "assessment", "lookup")

    Returns:
        Table with headers and typed rows

    Raises:
        ParseError: If the text has no lines at all
    """
    if text is None:
        raise ParseError(source, "no content")

    content = text.strip()
    if not content:
        raise ParseError(source, "file is empty")
    # Only \n and \r\n end a line; other separators stay inside fields
    lines = LINE_BREAK_PATTERN.split(content)

    headers = split_line(lines[0])

    rows = []
    for line in lines[1:]:
        values = split_line(line)
        row = {}
        for index, header in enumerate(headers):
            raw = values[index] if index < len(values) else ''
            row[header] = coerce_cell(raw)
        rows.append(row)

    logger.debug(f"Parsed {source}: {len(headers)} columns, {len(rows)} rows")
    return Table(headers=tuple(headers), rows=tuple(rows))


def read_table(file_path: Union[str, Path], source: Optional[str] = None) -> Table:
    """
    Read a CSV file from disk and parse it.

    Read failures are reported as ParseError so callers only handle one
    error type per file.
    """
    path = Path(file_path)
    source = source or path.name
    try:
        text = path.read_text(encoding='utf-8-sig')
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(source, str(e)) from e
    return parse_table(text, source=source)


def to_csv_text(table: Table) -> str:
    """Serialise a table back to delimited text."""
    lines = [DELIMITER.join(table.headers)]
    for row in table.rows:
        lines.append(DELIMITER.join(cell_text(row.get(h)) for h in table.headers))
    return "\n".join(lines) + "\n"


# ==================== LOOKUP RESOLUTION ====================

def find_meta_row(lookup: Table, label: str) -> Optional[Row]:
    """
    Find the lookup row whose "Question number" field equals label.

    Only the first match is used; duplicates are not an error.
    """
    for row in lookup.rows:
        if cell_text(row.get(LOOKUP_KEY_FIELD)) == label:
            return row
    return None


def find_meta_rows(lookup: Table, *labels: str) -> Optional[Dict[str, Row]]:
    """
    Resolve several metadata rows at once.

    Returns:
        Dict mapping label to row, or None if any label is missing
    """
    resolved = {}
    for label in labels:
        row = find_meta_row(lookup, label)
        if row is None:
            logger.debug(f"Lookup table has no '{label}' row")
            return None
        resolved[label] = row
    return resolved


# ==================== QUESTION AXIS ====================

def question_columns(headers: List[str]) -> List[str]:
    """Headers made only of digits, in their original order."""
    return [h for h in headers if QUESTION_COLUMN_PATTERN.match(h)]


def personal_columns(headers: List[str]) -> List[str]:
    """
    Columns before the first question column.

    Falls back to the first PERSONAL_COLUMNS_FALLBACK headers when the
    header has no question columns at all.
    """
    headers = list(headers)
    for index, header in enumerate(headers):
        if QUESTION_COLUMN_PATTERN.match(header):
            return headers[:index]
    return headers[:PERSONAL_COLUMNS_FALLBACK]


# ==================== STUDENTS ====================

@dataclass(frozen=True)
class StudentOption:
    """One entry in the student picker."""
    student_id: str
    family_name: str
    full_name: str


@dataclass(frozen=True)
class PersonalField:
    """One row of the personal information table."""
    field: str
    value: str


def find_student(assessment: Table, student_id: Union[str, int, float, None]) -> Optional[Row]:
    """
    Look up a student by "Unique ID".

    IDs are compared on display text, so a numeric ID cell 1001 matches
    the strings "1001" and "1001.0".

    Returns:
        The student's row, or None if the ID is empty or not present
    """
    if student_id is None:
        return None
    if isinstance(student_id, float):
        wanted = format_number(student_id)
    else:
        wanted = str(student_id).strip()
    if not wanted:
        return None
    # "1001.0" names the same student as 1001
    wanted = cell_text(coerce_cell(wanted))

    for row in assessment.rows:
        if cell_text(row.get(UNIQUE_ID_FIELD)) == wanted:
            return row
    return None


def student_options(assessment: Table) -> List[StudentOption]:
    """Build picker entries for every student, in file order."""
    options = []
    for row in assessment.rows:
        given = cell_text(row.get(GIVEN_NAME_FIELD))
        family = cell_text(row.get(FAMILY_NAME_FIELD))
        options.append(StudentOption(
            student_id=cell_text(row.get(UNIQUE_ID_FIELD)),
            family_name=family,
            full_name=f"{given} {family}".strip()
        ))
    return options


def personal_info(student: Optional[Mapping[str, Cell]], headers: List[str]) -> List[PersonalField]:
    """Field/value pairs for the personal columns of one student."""
    if student is None:
        return []

    info = []
    for column in personal_columns(headers):
        cell = student.get(column)
        value = ABSENT_DISPLAY if cell is None else cell.text
        info.append(PersonalField(field=column, value=value))
    return info
