"""
Assessment Analysis - per-student scale reports

Joins one student's answers against the lookup table and builds the three
views shown in the dashboard:
- Scale performance: correct / incorrect / not attempted counts per scale
- Unattempted analysis: where the missing responses fall
- Detailed scale analysis: one record per question, grouped by scale

Every view classifies answers the same way (see classify). A view whose
lookup rows are missing comes back empty instead of raising.

Run as a script to write reports to JSON:
    python analysis.py results.csv lookup.csv --student 1001
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from config import (
    CORRECT_ANSWER_LABEL,
    DEFAULT_OUTPUT_PATH,
    DIFFICULTY_LABEL,
    PERCENTAGE_CORRECT_LABEL,
    STRAND_LABEL,
    STRAND_NAME_LABEL,
    UNIQUE_ID_FIELD,
)
from load_data import (
    Cell,
    Missing,
    Number,
    ParseError,
    PersonalField,
    Table,
    cell_text,
    find_meta_row,
    find_meta_rows,
    find_student,
    personal_info,
    plain_value,
    question_columns,
    read_table,
)
from log_setup import get_logger, setup_logging

logger = get_logger("analysis")


# ==================== OUTCOMES ====================

class Outcome(Enum):
    """Result of one student on one question. The value is the display label."""
    CORRECT = "Correct"
    INCORRECT = "Incorrect"
    NOT_ATTEMPTED = "Not attempted"


def is_not_attempted(answer: Optional[Cell]) -> bool:
    """
    True when there is no recorded response: "NA", blank, or no field at all.

    This is the only not-attempted test in the analyser. Numeric 0 is a
    recorded (incorrect) response.
    """
    return answer is None or isinstance(answer, Missing)


def classify(answer: Optional[Cell]) -> Outcome:
    """Map a raw answer cell to Correct, Incorrect or Not attempted."""
    if isinstance(answer, Number) and answer.value == 1:
        return Outcome.CORRECT
    if is_not_attempted(answer):
        return Outcome.NOT_ATTEMPTED
    return Outcome.INCORRECT


def percentage(part: int, whole: int) -> float:
    """part as a percentage of whole, one decimal place; 0.0 for an empty whole."""
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


# ==================== VIEW MODELS ====================

@dataclass
class ScaleStat:
    """A student's performance on one scale."""
    scale: str
    strand_code: str
    correct: int
    incorrect: int
    not_attempted: int
    attempted: int
    total: int
    overall_percentage: float      # correct / total
    attempted_percentage: float    # correct / attempted
    attempted_rate: float          # attempted / total


@dataclass
class ScaleUnattempted:
    """Unattempted questions within one scale."""
    scale: str
    count: int
    total_in_scale: int
    percentage_of_scale: float
    percentage_of_total: float


@dataclass
class UnattemptedSummary:
    """Missing responses across the whole assessment, broken down by scale."""
    total_unattempted: int
    total_questions: int
    overall_percentage: float
    scale_breakdown: List[ScaleUnattempted] = field(default_factory=list)


@dataclass(frozen=True)
class QuestionDetail:
    """
    One question in the detailed view.

    scale_item is the 1-based position within the scale when questions are
    in question-number order. It is fixed at construction, so re-sorting
    the table never renumbers it.
    """
    question_number: int
    difficulty: Optional[Cell]
    percentage_correct: Optional[Cell]
    student_answer: Optional[Cell]
    outcome: Outcome
    scale_item: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scale_item': self.scale_item,
            'question_number': self.question_number,
            'difficulty': plain_value(self.difficulty),
            'percentage_correct': plain_value(self.percentage_correct),
            'student_answer': plain_value(self.student_answer),
            'outcome': self.outcome.value
        }


@dataclass
class ScaleDetail:
    """Questions of one scale in base (question-number) order."""
    scale: str
    questions: List[QuestionDetail]

    def count(self, outcome: Outcome) -> int:
        return sum(1 for q in self.questions if q.outcome is outcome)

    @property
    def correct(self) -> int:
        return self.count(Outcome.CORRECT)

    @property
    def incorrect(self) -> int:
        return self.count(Outcome.INCORRECT)

    @property
    def not_attempted(self) -> int:
        return self.count(Outcome.NOT_ATTEMPTED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scale': self.scale,
            'correct': self.correct,
            'incorrect': self.incorrect,
            'not_attempted': self.not_attempted,
            'questions': [q.to_dict() for q in self.questions]
        }


@dataclass
class StudentReport:
    """Everything derived for one selected student."""
    student_id: Optional[str]
    personal_info: List[PersonalField]
    scale_performance: List[ScaleStat]
    unattempted: Optional[UnattemptedSummary]
    detailed: List[ScaleDetail]

    @property
    def found(self) -> bool:
        return self.student_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'student_id': self.student_id,
            'personal_info': [asdict(p) for p in self.personal_info],
            'scale_performance': [asdict(s) for s in self.scale_performance],
            'unattempted': asdict(self.unattempted) if self.unattempted else None,
            'detailed': [d.to_dict() for d in self.detailed]
        }


# ==================== QUESTION FACTS ====================

FACT_COLUMNS = ['question_number', 'scale', 'answer', 'missing', 'outcome', 'outcome_label']


def question_facts(student: Mapping[str, Cell],
                   headers: List[str],
                   strand_name_row: Mapping[str, Cell],
                   extra_rows: Optional[Dict[str, Mapping[str, Cell]]] = None) -> pd.DataFrame:
    """
    Join a student's answers with the lookup rows, one row per question.

    Questions without a strand name are left out entirely: they belong to
    no scale and count towards no total.

    Args:
        student: The student's row from the assessment table
        headers: Assessment table headers
        strand_name_row: The "Strand name" lookup row
        extra_rows: Optional {column_name: lookup_row} to carry per-question
                    metadata (difficulty, strand code, ...) into the frame

    Returns:
        DataFrame with FACT_COLUMNS plus one column per extra row
    """
    extra_rows = extra_rows or {}

    records = []
    for question in question_columns(headers):
        scale = cell_text(strand_name_row.get(question))
        if not scale:
            continue

        answer = student.get(question)
        outcome = classify(answer)
        record = {
            'question_number': int(question),
            'scale': scale,
            'answer': answer,
            'missing': is_not_attempted(answer),
            'outcome': outcome,
            'outcome_label': outcome.value
        }
        for name, row in extra_rows.items():
            record[name] = row.get(question)
        records.append(record)

    return pd.DataFrame(records, columns=FACT_COLUMNS + list(extra_rows))


# ==================== AGGREGATORS ====================

def scale_performance(student: Optional[Mapping[str, Cell]],
                      lookup: Table,
                      headers: List[str]) -> List[ScaleStat]:
    """
    Correct / incorrect / not attempted counts for each scale.

    Needs the "Strand", "Strand name" and "Correct Answer" lookup rows;
    without all three the result is empty.

    Returns:
        ScaleStat list sorted by scale name
    """
    if student is None:
        return []

    rows = find_meta_rows(lookup, STRAND_LABEL, STRAND_NAME_LABEL, CORRECT_ANSWER_LABEL)
    if rows is None:
        return []

    facts = question_facts(student, headers, rows[STRAND_NAME_LABEL],
                           {'strand_code': rows[STRAND_LABEL]})
    if facts.empty:
        return []

    stats = []
    for scale, group in facts.groupby('scale', sort=True):
        counts = group['outcome_label'].value_counts()
        correct = int(counts.get(Outcome.CORRECT.value, 0))
        incorrect = int(counts.get(Outcome.INCORRECT.value, 0))
        not_attempted = int(counts.get(Outcome.NOT_ATTEMPTED.value, 0))
        total = len(group)
        attempted = correct + incorrect

        # Keep the first strand code seen for reference
        codes = [cell_text(c) for c in group['strand_code'] if cell_text(c)]

        stats.append(ScaleStat(
            scale=scale,
            strand_code=codes[0] if codes else '',
            correct=correct,
            incorrect=incorrect,
            not_attempted=not_attempted,
            attempted=attempted,
            total=total,
            overall_percentage=percentage(correct, total),
            attempted_percentage=percentage(correct, attempted),
            attempted_rate=percentage(attempted, total)
        ))

    return stats


def unattempted_analysis(student: Optional[Mapping[str, Cell]],
                         lookup: Table,
                         headers: List[str]) -> Optional[UnattemptedSummary]:
    """
    Count not-attempted questions overall and per scale.

    Only scales with at least one unattempted question are listed, most
    unattempted first; ties keep the order in which scales first appear.

    Returns:
        UnattemptedSummary, or None without a student or a "Strand name" row
    """
    if student is None:
        return None

    strand_name_row = find_meta_row(lookup, STRAND_NAME_LABEL)
    if strand_name_row is None:
        logger.debug(f"Lookup table has no '{STRAND_NAME_LABEL}' row")
        return None

    facts = question_facts(student, headers, strand_name_row)
    if facts.empty:
        return UnattemptedSummary(total_unattempted=0, total_questions=0, overall_percentage=0.0)

    total_questions = len(facts)
    total_unattempted = int(facts['missing'].sum())

    breakdown = []
    for scale, group in facts.groupby('scale', sort=False):
        count = int(group['missing'].sum())
        if count == 0:
            continue
        total_in_scale = len(group)
        breakdown.append(ScaleUnattempted(
            scale=scale,
            count=count,
            total_in_scale=total_in_scale,
            percentage_of_scale=percentage(count, total_in_scale),
            percentage_of_total=percentage(count, total_questions)
        ))

    # sorted() is stable, so equal counts stay in first-encounter order
    breakdown = sorted(breakdown, key=lambda item: item.count, reverse=True)

    return UnattemptedSummary(
        total_unattempted=total_unattempted,
        total_questions=total_questions,
        overall_percentage=percentage(total_unattempted, total_questions),
        scale_breakdown=breakdown
    )


def detailed_scale_analysis(student: Optional[Mapping[str, Cell]],
                            lookup: Table,
                            headers: List[str]) -> List[ScaleDetail]:
    """
    Per-question records grouped by scale.

    Needs the "Strand name", "Question difficulty" and "Percentage correct"
    lookup rows. Difficulty and percentage correct are passed through as
    they appear in the lookup table.

    Returns:
        ScaleDetail list sorted by scale name, questions in question order
    """
    if student is None:
        return []

    rows = find_meta_rows(lookup, STRAND_NAME_LABEL, DIFFICULTY_LABEL, PERCENTAGE_CORRECT_LABEL)
    if rows is None:
        return []

    facts = question_facts(student, headers, rows[STRAND_NAME_LABEL], {
        'difficulty': rows[DIFFICULTY_LABEL],
        'percentage_correct': rows[PERCENTAGE_CORRECT_LABEL]
    })
    if facts.empty:
        return []

    details = []
    for scale, group in facts.groupby('scale', sort=True):
        ordered = group.sort_values('question_number', kind='stable')
        questions = [
            QuestionDetail(
                question_number=int(q.question_number),
                difficulty=q.difficulty,
                percentage_correct=q.percentage_correct,
                student_answer=q.answer,
                outcome=q.outcome,
                scale_item=position
            )
            for position, q in enumerate(ordered.itertuples(index=False), start=1)
        ]
        details.append(ScaleDetail(scale=scale, questions=questions))

    return details


# ==================== REPORTS ====================

def build_student_report(assessment: Table,
                         lookup: Table,
                         student_id: Any) -> StudentReport:
    """
    Build every view for one student.

    This is the main entry point for the analysis. An unknown ID is not an
    error: the report simply comes back empty.
    """
    student = find_student(assessment, student_id)
    headers = list(assessment.headers)

    if student is None:
        logger.info(f"No student with ID '{student_id}' in the assessment table")
        return StudentReport(
            student_id=None,
            personal_info=[],
            scale_performance=[],
            unattempted=None,
            detailed=[]
        )

    return StudentReport(
        student_id=cell_text(student.get(UNIQUE_ID_FIELD)),
        personal_info=personal_info(student, headers),
        scale_performance=scale_performance(student, lookup, headers),
        unattempted=unattempted_analysis(student, lookup, headers),
        detailed=detailed_scale_analysis(student, lookup, headers)
    )


def save_reports(reports: List[StudentReport],
                 output_path: str = DEFAULT_OUTPUT_PATH) -> None:
    """Save student reports to JSON."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    data = {'students': [r.to_dict() for r in reports]}
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    print(f"\nReports saved to {output_path}")


def load_reports(json_path: str = DEFAULT_OUTPUT_PATH) -> Dict[str, Any]:
    """Load saved student reports from JSON."""
    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Analyse student performance by scale from assessment and lookup CSVs."
    )
    parser.add_argument("assessment", help="Assessment results CSV")
    parser.add_argument("lookup", help="Lookup table CSV")
    parser.add_argument("--student", help="Unique ID of one student (default: all students)")
    parser.add_argument("--output", default=DEFAULT_OUTPUT_PATH, help="JSON output path")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.verbose)

    print("=" * 60)
    print("Assessment Data Analyser")
    print("=" * 60)

    try:
        assessment = read_table(args.assessment, source="assessment")
        lookup = read_table(args.lookup, source="lookup")
    except ParseError as e:
        logger.error(str(e))
        return 1

    print(f"  Loaded assessment: {len(assessment)} students")
    print(f"  Loaded lookup table: {len(lookup)} rows")

    if args.student is not None:
        student_ids = [args.student]
    else:
        student_ids = [cell_text(row.get(UNIQUE_ID_FIELD)) for row in assessment.rows]

    reports = []
    for student_id in student_ids:
        report = build_student_report(assessment, lookup, student_id)
        if not report.found:
            continue
        reports.append(report)
        unattempted = report.unattempted.total_unattempted if report.unattempted else 0
        print(f"  {student_id}: {len(report.scale_performance)} scales, "
              f"{unattempted} unattempted")

    save_reports(reports, args.output)
    return 0


# CLI entry point
if __name__ == "__main__":
    sys.exit(main())
