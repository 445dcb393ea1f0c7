"""
Assessment Data Analyser - Streamlit Dashboard

Upload assessment results and a lookup table, pick a student, and see
their performance by cognitive scale.

Designed for students with incomplete assessments: the unattempted
analysis shows where the missing responses fall across scales.

Run with: streamlit run dashboard.py
"""

import streamlit as st
import plotly.graph_objects as go
import pandas as pd

from analysis import Outcome, build_student_report
from config import ATTEMPTED_COLOR, OUTCOME_COLORS
from load_data import ParseError, cell_text, parse_table, student_options
from view_state import COLUMN_LABELS, SORT_KEYS, SelectionState, percent_text, select_student

# Page configuration
st.set_page_config(
    page_title="Assessment Data Analyser",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .focus-note {
        background-color: #e3f2fd;
        border-left: 4px solid #1976d2;
        padding: 10px;
        margin: 5px 0;
    }
    .unattempted-card {
        background-color: #fff3e0;
        border-left: 4px solid #f57c00;
        padding: 10px;
        margin: 5px 0;
    }
</style>
""", unsafe_allow_html=True)


# ==================== DATA LOADING ====================

@st.cache_data
def load_table(text: str, source: str):
    """Parse uploaded CSV text (with caching per file content)."""
    return parse_table(text, source=source)


def read_upload(uploaded, source: str):
    """Parse an uploaded file, reporting failures in the page."""
    if uploaded is None:
        return None
    try:
        text = uploaded.getvalue().decode('utf-8-sig')
        return load_table(text, source)
    except (ParseError, UnicodeDecodeError) as e:
        message = str(e) if isinstance(e, ParseError) else f"Error parsing {source} file: {e}"
        st.error(message)
        return None


def reset_state():
    """Clear the selection and every per-scale sort."""
    st.session_state.selection = SelectionState()


# ==================== CHART FUNCTIONS ====================

def create_scale_chart(scale_stats: list) -> go.Figure:
    """Stacked horizontal bars: correct / incorrect / not attempted per scale."""
    scales = [f"Scale {s.scale}" for s in scale_stats]

    fig = go.Figure()
    for outcome, attr in [(Outcome.CORRECT, 'correct'),
                          (Outcome.INCORRECT, 'incorrect'),
                          (Outcome.NOT_ATTEMPTED, 'not_attempted')]:
        values = [getattr(s, attr) for s in scale_stats]
        fig.add_trace(go.Bar(
            x=values,
            y=scales,
            orientation='h',
            name=outcome.value,
            marker_color=OUTCOME_COLORS[outcome.value],
            text=values,
            textposition='inside'
        ))

    fig.update_layout(
        barmode='stack',
        title="Questions by Outcome",
        xaxis_title="Questions",
        yaxis_title="",
        height=max(300, len(scale_stats) * 60),
        margin=dict(l=150)
    )

    return fig


def create_attempted_chart(scale_stats: list) -> go.Figure:
    """Attempted rate per scale."""
    scales = [f"Scale {s.scale}" for s in scale_stats]
    rates = [s.attempted_rate for s in scale_stats]

    fig = go.Figure(go.Bar(
        x=rates,
        y=scales,
        orientation='h',
        marker_color=ATTEMPTED_COLOR,
        text=[f"{r:.1f}%" for r in rates],
        textposition='outside'
    ))

    fig.update_layout(
        title="Attempted Rate",
        xaxis_title="Attempted (%)",
        xaxis=dict(range=[0, 105]),
        height=max(300, len(scale_stats) * 50),
        margin=dict(l=150)
    )

    return fig


def create_unattempted_chart(summary) -> go.Figure:
    """Share of each scale left unattempted."""
    items = summary.scale_breakdown
    fig = go.Figure(go.Bar(
        x=[item.percentage_of_scale for item in items],
        y=[f"Scale {item.scale}" for item in items],
        orientation='h',
        marker_color=OUTCOME_COLORS[Outcome.NOT_ATTEMPTED.value],
        text=[f"{item.count}/{item.total_in_scale}" for item in items],
        textposition='outside'
    ))

    fig.update_layout(
        title="Unattempted by Scale (% of scale)",
        xaxis=dict(range=[0, 105]),
        yaxis=dict(autorange='reversed'),
        height=max(250, len(items) * 50),
        margin=dict(l=150)
    )

    return fig


def questions_frame(questions: list) -> pd.DataFrame:
    """Detailed table rows for display."""
    return pd.DataFrame([
        {
            COLUMN_LABELS['scale_item']: q.scale_item,
            COLUMN_LABELS['question_number']: q.question_number,
            COLUMN_LABELS['difficulty']: cell_text(q.difficulty),
            COLUMN_LABELS['percentage_correct']: percent_text(q.percentage_correct),
            COLUMN_LABELS['outcome']: q.outcome.value
        }
        for q in questions
    ])


def highlight_outcome(row: pd.Series) -> list:
    color = OUTCOME_COLORS.get(row[COLUMN_LABELS['outcome']], '')
    return [f'background-color: {color}22' for _ in row]


# ==================== SECTIONS ====================

def show_personal_info(report):
    st.subheader("Personal Information")
    info_df = pd.DataFrame([{'Field': p.field, 'Value': p.value} for p in report.personal_info])
    st.dataframe(info_df, use_container_width=True, hide_index=True)


def show_scale_performance(report):
    st.subheader("Performance by Scale")
    if not report.scale_performance:
        st.caption("No scale data in the lookup table.")
        return

    for scale in report.scale_performance:
        col1, col2, col3 = st.columns([2, 1, 1])
        with col1:
            st.markdown(f"**Scale {scale.scale}**")
            st.caption(f"Correct: {scale.correct}/{scale.total} • Attempted: {scale.attempted}/{scale.total}")
        with col2:
            st.metric("Overall", f"{scale.overall_percentage}%")
        with col3:
            st.metric("Of attempted", f"{scale.attempted_percentage}%")

    st.plotly_chart(create_scale_chart(report.scale_performance), use_container_width=True)
    st.plotly_chart(create_attempted_chart(report.scale_performance), use_container_width=True)


def show_unattempted(report):
    summary = report.unattempted
    if summary is None or summary.total_unattempted == 0:
        return

    st.subheader("Unattempted Questions Analysis")
    st.markdown(
        f"<div class='unattempted-card'><b>{summary.total_unattempted} Questions Not Attempted</b><br>"
        f"{summary.overall_percentage}% of total assessment "
        f"({summary.total_unattempted}/{summary.total_questions} questions)</div>",
        unsafe_allow_html=True
    )

    st.plotly_chart(create_unattempted_chart(summary), use_container_width=True)

    breakdown_df = pd.DataFrame([
        {
            'Scale': item.scale,
            'Unattempted': item.count,
            'Total in Scale': item.total_in_scale,
            '% of Scale': f"{item.percentage_of_scale:.1f}%",
            '% of Total': f"{item.percentage_of_total:.1f}%"
        }
        for item in summary.scale_breakdown
    ])
    st.dataframe(breakdown_df, use_container_width=True, hide_index=True)


def show_detailed_analysis(report, selection: SelectionState):
    if not report.detailed:
        return

    st.subheader("Detailed Question Analysis by Scale")
    st.caption("Difficulty level, success rate and student outcome for each question. "
               "Click a column button to sort; click again to reverse.")

    for scale_detail in report.detailed:
        scale = scale_detail.scale
        st.markdown(f"#### Scale {scale}")

        current = selection.sort.get(scale)
        button_cols = st.columns(len(SORT_KEYS))
        for col, column in zip(button_cols, SORT_KEYS):
            label = COLUMN_LABELS[column]
            if current is not None and current.column == column:
                label += " ▲" if current.ascending else " ▼"
            with col:
                if st.button(label, key=f"sort-{scale}-{column}"):
                    st.session_state.selection = selection.toggle_sort(scale, column)
                    st.rerun()

        questions = selection.sort.sorted_questions(scale, scale_detail.questions)
        table = questions_frame(questions)
        st.dataframe(table.style.apply(highlight_outcome, axis=1),
                     use_container_width=True, hide_index=True)

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Correct", scale_detail.correct)
        with col2:
            st.metric("Incorrect", scale_detail.incorrect)
        with col3:
            st.metric("Not Attempted", scale_detail.not_attempted)

        st.divider()


# ==================== MAIN DASHBOARD ====================

def main():
    if "selection" not in st.session_state:
        reset_state()
    if "upload_generation" not in st.session_state:
        st.session_state.upload_generation = 0

    st.title("Assessment Data Analyser")
    st.markdown("Upload assessment results and lookup table to analyse student performance by scale")
    st.markdown(
        "<div class='focus-note'><b>Focus:</b> This analyser is designed for students with "
        "incomplete assessments. It analyses patterns in missing data and performance across "
        "cognitive scales.</div>",
        unsafe_allow_html=True
    )

    # Sidebar uploads
    st.sidebar.title("Files")
    # Uploaders are keyed by generation so "Clear All Data" can empty them
    generation = st.session_state.upload_generation
    assessment_file = st.sidebar.file_uploader("Assessment Results CSV", type=["csv"],
                                               key=f"assessment_upload_{generation}")
    lookup_file = st.sidebar.file_uploader("Lookup Table CSV", type=["csv"],
                                           key=f"lookup_upload_{generation}")

    if (assessment_file or lookup_file) and st.sidebar.button("Clear All Data"):
        st.session_state.upload_generation += 1
        reset_state()
        st.rerun()

    assessment = read_upload(assessment_file, "assessment")
    lookup = read_upload(lookup_file, "lookup")

    if assessment is not None:
        st.sidebar.success(f"✓ Loaded {len(assessment)} students")
    if lookup is not None:
        st.sidebar.success(f"✓ Loaded lookup table with {len(lookup)} rows")

    if assessment is None or lookup is None:
        reset_state()
        st.info("Upload both CSV files to begin analysis")
        return

    with st.expander("Raw Data Preview"):
        st.markdown("**Assessment Results**")
        st.dataframe(assessment.to_frame(), use_container_width=True, hide_index=True)
        st.markdown("**Lookup Table**")
        st.dataframe(lookup.to_frame(), use_container_width=True, hide_index=True)

    # Student selection
    options = student_options(assessment)
    labels = {o.student_id: f"{o.full_name} (ID: {o.student_id})" for o in options}
    selection = st.session_state.selection

    ids = [""] + [o.student_id for o in options]
    current_index = ids.index(selection.student_id) if selection.student_id in ids else 0
    chosen = st.selectbox(
        f"Select Student ({len(options)} available)",
        ids,
        index=current_index,
        format_func=lambda i: labels.get(i, "-")
    )

    if chosen != (selection.student_id or ""):
        selection = select_student(assessment, chosen)
        st.session_state.selection = selection

    if selection.student_id is None:
        st.info("Select a student to view their analysis")
        return

    report = build_student_report(assessment, lookup, selection.student_id)

    col1, col2 = st.columns(2)
    with col1:
        show_personal_info(report)
    with col2:
        show_scale_performance(report)

    st.divider()
    show_unattempted(report)
    show_detailed_analysis(report, selection)


if __name__ == "__main__":
    main()
