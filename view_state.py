"""
View state for the detailed scale tables.

Holds the selected student and one sort setting per scale. States are
immutable: every transition returns a new object, so the dashboard keeps
the current state in its session and tests can drive it without a UI.

Clicking a column header:
- a new column, or the active column while descending -> ascending
- the active column while ascending -> descending
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from config import UNIQUE_ID_FIELD
from load_data import Number, Table, cell_text, find_student, leading_float
from log_setup import get_logger

logger = get_logger("view_state")

ASCENDING = "asc"
DESCENDING = "desc"


def numeric_key(cell) -> float:
    """Float value of a metadata cell; "72%" sorts as 72, other text, blanks and NA as 0."""
    return leading_float(cell)


# Column name -> sort key for a QuestionDetail
SORT_KEYS: Dict[str, Callable[[Any], Any]] = {
    'scale_item': lambda q: q.scale_item,
    'question_number': lambda q: q.question_number,
    'difficulty': lambda q: numeric_key(q.difficulty),
    'percentage_correct': lambda q: numeric_key(q.percentage_correct),
    'outcome': lambda q: q.outcome.value,
}

COLUMN_LABELS = {
    'scale_item': "Scale Item #",
    'question_number': "Question #",
    'difficulty': "Difficulty",
    'percentage_correct': "% Correct",
    'outcome': "Outcome",
}


def percent_text(cell) -> str:
    """Display text for a percentage cell: 72 shows as "72%", "72%" stays as is."""
    text = cell_text(cell)
    if isinstance(cell, Number):
        return f"{text}%"
    return text


@dataclass(frozen=True)
class SortState:
    """Active sort column and direction for one scale."""
    column: str
    direction: str = ASCENDING

    @property
    def ascending(self) -> bool:
        return self.direction == ASCENDING


def next_sort_state(current: Optional[SortState], column: str) -> SortState:
    """State after clicking column, given the current state (None = unsorted)."""
    if column not in SORT_KEYS:
        raise ValueError(f"Unknown sort column: {column!r}")
    if current is not None and current.column == column and current.ascending:
        return SortState(column, DESCENDING)
    return SortState(column, ASCENDING)


def apply_sort(questions: Sequence[Any], state: Optional[SortState]) -> List[Any]:
    """
    Return a sorted copy of questions.

    The input order is the base order. sorted() is stable in both
    directions, so equal keys keep their base order. With no state the copy
    is returned unchanged.
    """
    if state is None:
        return list(questions)
    key = SORT_KEYS[state.column]
    return sorted(questions, key=key, reverse=not state.ascending)


def sort_questions(questions: Sequence[Any],
                   column: str,
                   current: Optional[SortState] = None) -> Tuple[List[Any], SortState]:
    """Click column: returns (sorted copy, new sort state)."""
    new_state = next_sort_state(current, column)
    return apply_sort(questions, new_state), new_state


@dataclass(frozen=True)
class SortConfig:
    """Independent sort state per scale name."""
    by_scale: Mapping[str, SortState] = field(default_factory=dict)

    def get(self, scale: str) -> Optional[SortState]:
        return self.by_scale.get(scale)

    def toggle(self, scale: str, column: str) -> "SortConfig":
        updated = dict(self.by_scale)
        updated[scale] = next_sort_state(self.get(scale), column)
        return SortConfig(updated)

    def sorted_questions(self, scale: str, questions: Sequence[Any]) -> List[Any]:
        return apply_sort(questions, self.get(scale))


@dataclass(frozen=True)
class SelectionState:
    """Selected student plus the detailed-table sort settings."""
    student_id: Optional[str] = None
    sort: SortConfig = field(default_factory=SortConfig)

    def toggle_sort(self, scale: str, column: str) -> "SelectionState":
        return replace(self, sort=self.sort.toggle(scale, column))


def select_student(assessment: Optional[Table], student_id: Any) -> SelectionState:
    """
    Select a student by Unique ID.

    Every per-scale sort is reset. An ID that is not in the assessment
    table (or no table at all) gives an empty selection.
    """
    if assessment is None:
        return SelectionState()

    student = find_student(assessment, student_id)
    if student is None:
        logger.info(f"Student '{student_id}' not found; clearing selection")
        return SelectionState()

    return SelectionState(student_id=cell_text(student.get(UNIQUE_ID_FIELD)))
