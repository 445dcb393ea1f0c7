# Shared pytest fixtures: a small cohort and its lookup table
from pathlib import Path

import pytest

from load_data import parse_table
from log_setup import reset_logging

ASSESSMENT_CSV = """Unique ID,Given name,Family name,Year level,1,2,3,4,5,6
1001,Ada,Lovelace,7,1,0,NA,1,,1
1002,Alan,Turing,7,NA,NA,NA,0,1,0
1003,"Grace",Hopper,8,1,1,1,1,1,1
"""

LOOKUP_CSV = """Question number,1,2,3,4,5,6
Strand,A,K,A,V,K,A
Strand name,Abstract,Kinetic,Abstract,Verbal,Kinetic,Abstract
Question difficulty,0.45,1.2,-0.3,0.8,2.1,0.45
Percentage correct,72,55,81,60,33,72
Correct Answer,B,C,A,D,A,B
"""


@pytest.fixture(autouse=True)
def clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def assessment_text() -> str:
    return ASSESSMENT_CSV


@pytest.fixture()
def lookup_text() -> str:
    return LOOKUP_CSV


@pytest.fixture()
def assessment():
    return parse_table(ASSESSMENT_CSV, source="assessment")


@pytest.fixture()
def lookup():
    return parse_table(LOOKUP_CSV, source="lookup")


@pytest.fixture()
def csv_files(tmp_path: Path):
    assessment_path = tmp_path / "results.csv"
    lookup_path = tmp_path / "lookup.csv"
    assessment_path.write_text(ASSESSMENT_CSV, encoding="utf-8")
    lookup_path.write_text(LOOKUP_CSV, encoding="utf-8")
    return assessment_path, lookup_path
