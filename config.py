"""
Configuration for the Assessment Data Analyser

Contains the field names and metadata row labels the analyser joins on.
To adapt to a differently labelled export, simply edit the values below.
"""

# =============================================================================
# ASSESSMENT TABLE FIELDS
# =============================================================================

UNIQUE_ID_FIELD = "Unique ID"
GIVEN_NAME_FIELD = "Given name"
FAMILY_NAME_FIELD = "Family name"

# Personal columns shown when the header has no numbered question columns
PERSONAL_COLUMNS_FALLBACK = 10

# Shown in the personal information table when a row lacks the field
ABSENT_DISPLAY = "N/A"

# =============================================================================
# LOOKUP TABLE ROWS
# =============================================================================
# Metadata rows are found by the value in the key column, not by position

LOOKUP_KEY_FIELD = "Question number"

STRAND_LABEL = "Strand"
STRAND_NAME_LABEL = "Strand name"
DIFFICULTY_LABEL = "Question difficulty"
PERCENTAGE_CORRECT_LABEL = "Percentage correct"
CORRECT_ANSWER_LABEL = "Correct Answer"

# =============================================================================
# PARSING
# =============================================================================

DELIMITER = ","
QUOTE_CHAR = '"'
NA_SENTINEL = "NA"

# =============================================================================
# OUTPUT
# =============================================================================

DEFAULT_OUTPUT_PATH = "output/student_reports.json"

# =============================================================================
# DISPLAY SETTINGS
# =============================================================================

OUTCOME_COLORS = {
    "Correct": "#28a745",        # Green
    "Incorrect": "#dc3545",      # Red
    "Not attempted": "#f57c00"   # Orange
}

ATTEMPTED_COLOR = "#1976d2"      # Blue
