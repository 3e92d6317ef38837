import pandas as pd
from typing import Dict, Mapping

from hns_grades.backend_logic import (
    EMPTY_INPUT,
    ComputationResult,
    ScoreInput,
    parse_score_entry,
    round_2dp_half_up,
)
from hns_grades.config import SCORE_COMPONENTS
from hns_grades.curriculum import CurriculumStructure, iter_subjects

# ------------------------
# CSV helpers (UI-side)
# ------------------------

COLUMN_ALIASES = {
    "subject_id": "subject",
    "ca": "td",
    "continuous_assessment": "td",
    "practical": "tp",
}


def _normalise_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    renames = {
        alias: canonical
        for alias, canonical in COLUMN_ALIASES.items()
        if alias in df.columns and canonical not in df.columns
    }
    return df.rename(columns=renames)


def read_csv_upload(uploaded_file) -> pd.DataFrame:
    df = pd.read_csv(uploaded_file)
    return _normalise_cols(df)


def validate_scores_csv(df: pd.DataFrame, structure: CurriculumStructure) -> pd.DataFrame:
    if "subject" not in df.columns:
        raise ValueError("Missing column: 'subject'. Expected: Subject, TD, TP, Exam.")
    components = [c for c in SCORE_COMPONENTS if c in df.columns]
    if not components:
        raise ValueError("No score columns found. Expected at least one of: TD, TP, Exam.")

    out = df[["subject"] + components].copy()
    out["subject"] = out["subject"].astype(str).str.strip()

    known = {subject.id for _, subject in iter_subjects(structure)}
    unknown = sorted(set(out["subject"]) - known)
    if unknown:
        raise ValueError(f"Unknown subjects for this semester: {unknown}.")
    return out


def parse_scores(df: pd.DataFrame) -> Dict[str, ScoreInput]:
    """
    One ScoreInput per row; blank or non-numeric cells are absent,
    out-of-range marks are clamped.
    """
    scores = {}
    for _, row in df.iterrows():
        values = {c: parse_score_entry(row.get(c)) for c in SCORE_COMPONENTS}
        scores[row["subject"]] = ScoreInput(**values)
    return scores


def scores_to_frame(structure: CurriculumStructure, inputs: Mapping[str, ScoreInput]) -> pd.DataFrame:
    rows = []
    for _, subject in iter_subjects(structure):
        score = inputs.get(subject.id, EMPTY_INPUT)
        rows.append({"subject": subject.id, "td": score.td, "tp": score.tp, "exam": score.exam})
    return pd.DataFrame(rows, columns=["subject", *SCORE_COMPONENTS])


def results_to_frame(structure: CurriculumStructure, result: ComputationResult) -> pd.DataFrame:
    rows = []
    for unit, subject in iter_subjects(structure):
        rows.append({
            "Unit": unit.name,
            "Subject": subject.name,
            "Coef": subject.coef,
            "Average": round_2dp_half_up(result.subject_averages[subject.id]),
        })
    return pd.DataFrame(rows, columns=["Unit", "Subject", "Coef", "Average"])
