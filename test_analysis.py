import json
import logging

import pytest

from analysis import (
    FACT_COLUMNS,
    Outcome,
    ScaleStat,
    build_student_report,
    classify,
    detailed_scale_analysis,
    is_not_attempted,
    percentage,
    question_facts,
    scale_performance,
    unattempted_analysis,
)
from load_data import Missing, Number, Text, find_student, parse_table


def student_of(assessment, student_id):
    return find_student(assessment, student_id)


# ==================== CLASSIFIER ====================

@pytest.mark.parametrize("answer,expected", [
    (Number(1.0), Outcome.CORRECT),
    (Number(0.0), Outcome.INCORRECT),
    (Number(2.0), Outcome.INCORRECT),
    (Number(0.5), Outcome.INCORRECT),
    (Text("B"), Outcome.INCORRECT),
    (Text("0"), Outcome.INCORRECT),
    (Missing("NA"), Outcome.NOT_ATTEMPTED),
    (Missing(""), Outcome.NOT_ATTEMPTED),
    (None, Outcome.NOT_ATTEMPTED),
])
def test_classify(answer, expected):
    assert classify(answer) is expected


@pytest.mark.parametrize("answer", [
    Number(1.0), Number(0.0), Text("x"), Missing("NA"), Missing(""), None
])
def test_not_attempted_predicate_matches_classifier(answer):
    assert is_not_attempted(answer) == (classify(answer) is Outcome.NOT_ATTEMPTED)


def test_outcome_labels():
    assert [o.value for o in Outcome] == ["Correct", "Incorrect", "Not attempted"]


def test_percentage():
    assert percentage(1, 3) == 33.3
    assert percentage(2, 3) == 66.7
    assert percentage(1, 6) == 16.7
    assert percentage(0, 0) == 0.0
    assert percentage(5, 5) == 100.0


# ==================== SCALE PERFORMANCE ====================

def test_scale_performance(assessment, lookup):
    stats = scale_performance(student_of(assessment, "1001"), lookup, assessment.headers)

    assert [s.scale for s in stats] == ["Abstract", "Kinetic", "Verbal"]
    assert stats[0] == ScaleStat(
        scale="Abstract", strand_code="A",
        correct=2, incorrect=0, not_attempted=1, attempted=2, total=3,
        overall_percentage=66.7, attempted_percentage=100.0, attempted_rate=66.7
    )
    assert stats[1] == ScaleStat(
        scale="Kinetic", strand_code="K",
        correct=0, incorrect=1, not_attempted=1, attempted=1, total=2,
        overall_percentage=0.0, attempted_percentage=0.0, attempted_rate=50.0
    )
    assert stats[2] == ScaleStat(
        scale="Verbal", strand_code="V",
        correct=1, incorrect=0, not_attempted=0, attempted=1, total=1,
        overall_percentage=100.0, attempted_percentage=100.0, attempted_rate=100.0
    )


def test_scale_performance_counts_add_up(assessment, lookup):
    for student in assessment.rows:
        for stat in scale_performance(student, lookup, assessment.headers):
            assert stat.correct + stat.incorrect + stat.not_attempted == stat.total
            assert stat.attempted == stat.correct + stat.incorrect


def test_scale_performance_two_question_scenario():
    lookup = parse_table(
        "Question number,1,2\n"
        "Strand,A,A\n"
        "Strand name,Abstract,Abstract\n"
        "Correct Answer,B,C\n"
    )
    assessment = parse_table("Unique ID,Given name,Family name,1,2\n1,Sam,Lee,1,NA\n")

    stats = scale_performance(assessment.rows[0], lookup, assessment.headers)

    assert stats == [ScaleStat(
        scale="Abstract", strand_code="A",
        correct=1, incorrect=0, not_attempted=1, attempted=1, total=2,
        overall_percentage=50.0, attempted_percentage=100.0, attempted_rate=50.0
    )]


def test_scale_performance_without_strand_codes():
    lookup = parse_table(
        "Question number,1,2\n"
        "Strand,,\n"
        "Strand name,Abstract,Abstract\n"
        "Correct Answer,B,C\n"
    )
    assessment = parse_table("Unique ID,1,2\n1,1,NA\n")

    stats = scale_performance(assessment.rows[0], lookup, assessment.headers)

    assert len(stats) == 1
    assert stats[0].strand_code == ""
    assert stats[0].total == 2


def test_scale_order_is_plain_string_order():
    lookup = parse_table(
        "Question number,1,2,3,4\n"
        "Strand,a,Z,b,B\n"
        "Strand name,abstract,Zeta,beta,Beta\n"
        "Question difficulty,0,0,0,0\n"
        "Percentage correct,50,50,50,50\n"
        "Correct Answer,A,A,A,A\n"
    )
    assessment = parse_table("Unique ID,1,2,3,4\n1,1,0,NA,1\n")
    student = assessment.rows[0]

    # Upper case sorts before lower case
    expected = ["Beta", "Zeta", "abstract", "beta"]
    stats = scale_performance(student, lookup, assessment.headers)
    assert [s.scale for s in stats] == expected
    details = detailed_scale_analysis(student, lookup, assessment.headers)
    assert [d.scale for d in details] == expected


@pytest.mark.parametrize("missing_label", ["Strand", "Strand name", "Correct Answer"])
def test_scale_performance_needs_its_lookup_rows(assessment, lookup_text, missing_label):
    lines = [line for line in lookup_text.splitlines()
             if line.split(",")[0] != missing_label]
    lookup = parse_table("\n".join(lines))
    assert scale_performance(student_of(assessment, "1001"), lookup, assessment.headers) == []


def test_questions_without_strand_name_are_skipped():
    lookup = parse_table(
        "Question number,1,2,3\n"
        "Strand,A,,A\n"
        "Strand name,Abstract,,Abstract\n"
        "Correct Answer,B,C,D\n"
    )
    assessment = parse_table("Unique ID,1,2,3\n1,1,NA,0\n")

    stats = scale_performance(assessment.rows[0], lookup, assessment.headers)

    assert len(stats) == 1
    assert stats[0].total == 2
    assert stats[0].not_attempted == 0


# ==================== UNATTEMPTED ANALYSIS ====================

def test_unattempted_analysis(assessment, lookup):
    summary = unattempted_analysis(student_of(assessment, "1002"), lookup, assessment.headers)

    assert summary.total_unattempted == 3
    assert summary.total_questions == 6
    assert summary.overall_percentage == 50.0
    assert [(b.scale, b.count, b.total_in_scale) for b in summary.scale_breakdown] == [
        ("Abstract", 2, 3),
        ("Kinetic", 1, 2),
    ]
    assert summary.scale_breakdown[0].percentage_of_scale == 66.7
    assert summary.scale_breakdown[0].percentage_of_total == 33.3
    assert summary.scale_breakdown[1].percentage_of_scale == 50.0
    assert summary.scale_breakdown[1].percentage_of_total == 16.7


def test_unattempted_ties_keep_first_encounter_order(assessment, lookup):
    summary = unattempted_analysis(student_of(assessment, "1001"), lookup, assessment.headers)

    # Abstract (question 1) appears before Kinetic (question 2)
    assert [(b.scale, b.count) for b in summary.scale_breakdown] == [
        ("Abstract", 1),
        ("Kinetic", 1),
    ]
    assert summary.overall_percentage == 33.3


def test_unattempted_omits_scales_with_no_missing_answers(assessment, lookup):
    summary = unattempted_analysis(student_of(assessment, "1003"), lookup, assessment.headers)
    assert summary.total_unattempted == 0
    assert summary.total_questions == 6
    assert summary.scale_breakdown == []


def test_unattempted_does_not_count_zero_as_missing():
    lookup = parse_table("Question number,1,2\nStrand name,Abstract,Abstract\n")
    assessment = parse_table("Unique ID,1,2\n1,0,NA\n")

    summary = unattempted_analysis(assessment.rows[0], lookup, assessment.headers)

    assert summary.total_unattempted == 1


def test_unattempted_invariants(assessment, lookup):
    for student in assessment.rows:
        summary = unattempted_analysis(student, lookup, assessment.headers)
        assert sum(b.count for b in summary.scale_breakdown) == summary.total_unattempted
        expected = round(summary.total_unattempted / summary.total_questions * 100, 1)
        assert summary.overall_percentage == expected


def test_unattempted_needs_strand_name_row(assessment, lookup_text):
    lines = [line for line in lookup_text.splitlines() if not line.startswith("Strand name")]
    lookup = parse_table("\n".join(lines))
    assert unattempted_analysis(student_of(assessment, "1002"), lookup, assessment.headers) is None


# ==================== DETAILED ANALYSIS ====================

def test_detailed_scale_analysis(assessment, lookup):
    details = detailed_scale_analysis(student_of(assessment, "1001"), lookup, assessment.headers)

    assert [d.scale for d in details] == ["Abstract", "Kinetic", "Verbal"]

    abstract = details[0]
    assert [q.question_number for q in abstract.questions] == [1, 3, 6]
    assert [q.scale_item for q in abstract.questions] == [1, 2, 3]
    assert [q.outcome for q in abstract.questions] == [
        Outcome.CORRECT, Outcome.NOT_ATTEMPTED, Outcome.CORRECT
    ]
    assert abstract.questions[1].difficulty == Number(-0.3)
    assert abstract.questions[1].percentage_correct == Number(81.0)
    assert abstract.questions[1].student_answer == Missing("NA")
    assert (abstract.correct, abstract.incorrect, abstract.not_attempted) == (2, 0, 1)

    kinetic = details[1]
    assert [q.outcome for q in kinetic.questions] == [Outcome.INCORRECT, Outcome.NOT_ATTEMPTED]


def test_detailed_base_order_is_question_number_order():
    lookup = parse_table(
        "Question number,10,2,1\n"
        "Strand name,Abstract,Abstract,Abstract\n"
        "Question difficulty,3,2,1\n"
        "Percentage correct,30,20,10\n"
    )
    assessment = parse_table("Unique ID,10,2,1\n1,1,1,1\n")

    details = detailed_scale_analysis(assessment.rows[0], lookup, assessment.headers)

    assert [q.question_number for q in details[0].questions] == [1, 2, 10]
    assert [q.scale_item for q in details[0].questions] == [1, 2, 3]


def test_detailed_outcomes_agree_with_scale_performance(assessment, lookup):
    for student in assessment.rows:
        stats = {s.scale: s for s in scale_performance(student, lookup, assessment.headers)}
        for detail in detailed_scale_analysis(student, lookup, assessment.headers):
            stat = stats[detail.scale]
            assert (detail.correct, detail.incorrect, detail.not_attempted) == (
                stat.correct, stat.incorrect, stat.not_attempted
            )


@pytest.mark.parametrize("missing_label", [
    "Strand name", "Question difficulty", "Percentage correct"
])
def test_detailed_needs_its_lookup_rows(assessment, lookup_text, missing_label):
    lines = [line for line in lookup_text.splitlines()
             if line.split(",")[0] != missing_label]
    lookup = parse_table("\n".join(lines))
    assert detailed_scale_analysis(student_of(assessment, "1001"), lookup, assessment.headers) == []


def test_no_strand_names_gives_empty_results(assessment):
    lookup = parse_table(
        "Question number,1,2,3,4,5,6\n"
        "Strand,,,,,,\n"
        "Strand name,,,,,,\n"
        "Question difficulty,1,1,1,1,1,1\n"
        "Percentage correct,50,50,50,50,50,50\n"
        "Correct Answer,A,A,A,A,A,A\n"
    )
    student = student_of(assessment, "1001")

    assert scale_performance(student, lookup, assessment.headers) == []
    assert detailed_scale_analysis(student, lookup, assessment.headers) == []
    summary = unattempted_analysis(student, lookup, assessment.headers)
    assert summary.total_unattempted == 0
    assert summary.total_questions == 0
    assert summary.scale_breakdown == []


# ==================== REPORTS ====================

def test_build_student_report(assessment, lookup):
    report = build_student_report(assessment, lookup, "1002")

    assert report.found
    assert report.student_id == "1002"
    assert report.personal_info[2].value == "Turing"
    assert len(report.scale_performance) == 3
    assert report.unattempted.total_unattempted == 3
    assert len(report.detailed) == 3


def test_unknown_student_gives_empty_report(assessment, lookup, caplog):
    with caplog.at_level(logging.INFO, logger="analyser"):
        report = build_student_report(assessment, lookup, "4242")

    assert not report.found
    assert report.personal_info == []
    assert report.scale_performance == []
    assert report.unattempted is None
    assert report.detailed == []
    assert "4242" in caplog.text


def test_report_to_dict_is_json_ready(assessment, lookup):
    data = build_student_report(assessment, lookup, "1001").to_dict()
    encoded = json.loads(json.dumps(data))

    abstract = encoded["detailed"][0]
    assert abstract["scale"] == "Abstract"
    assert abstract["questions"][0] == {
        "scale_item": 1,
        "question_number": 1,
        "difficulty": 0.45,
        "percentage_correct": 72.0,
        "student_answer": 1.0,
        "outcome": "Correct",
    }
    assert abstract["questions"][1]["student_answer"] == "NA"
    assert encoded["scale_performance"][0]["strand_code"] == "A"
    assert encoded["unattempted"]["scale_breakdown"][0]["scale"] == "Abstract"


def test_question_facts_columns(assessment, lookup):
    strand_names = lookup.rows[1]
    facts = question_facts(student_of(assessment, "1001"), list(assessment.headers),
                           strand_names, {'strand_code': lookup.rows[0]})

    assert list(facts.columns) == FACT_COLUMNS + ['strand_code']
    assert list(facts['question_number']) == [1, 2, 3, 4, 5, 6]
    assert list(facts['missing']) == [False, False, True, False, True, False]
