import math
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional

import numpy as np

from hns_grades.config import GRADE_MAX, GRADE_MIN, PASS_MARK, SCORE_COMPONENTS
from hns_grades.curriculum import CurriculumStructure, Subject, iter_subjects


# ------------------------
# Score inputs
# ------------------------
@dataclass(frozen=True)
class ScoreInput:
    """
    Marks entered for one subject. Any component may be absent (None).
    td = continuous assessment, tp = practical, exam = final exam.
    """
    td: Optional[float] = None
    tp: Optional[float] = None
    exam: Optional[float] = None

    def with_component(self, component: str, value: Optional[float]) -> "ScoreInput":
        if component not in SCORE_COMPONENTS:
            raise KeyError(f"Unknown score component: {component!r}")
        return replace(self, **{component: value})

    @property
    def is_empty(self) -> bool:
        return self.td is None and self.tp is None and self.exam is None


EMPTY_INPUT = ScoreInput()


def clamp_score(x: float) -> float:
    return float(max(GRADE_MIN, min(GRADE_MAX, x)))


def parse_score_entry(raw) -> Optional[float]:
    """
    Turn whatever the form (or a CSV cell) hands us into a mark.

    Empty, NaN and non-numeric entries are absent (None); numbers are
    clamped to the 20-point scale.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip().replace(",", ".")
        if raw == "":
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value):
        return None
    return clamp_score(value)


# ------------------------
# Core logic
# ------------------------
@dataclass
class ComputationResult:
    subject_averages: Dict[str, float] = field(default_factory=dict)
    unit_averages: Dict[str, float] = field(default_factory=dict)
    semester_average: float = 0.0
    total_coefficient: float = 0.0


def subject_average(subject: Subject, score: ScoreInput) -> float:
    # Absent components count as 0; weights are applied as given.
    marks = np.array([score.td or 0.0, score.tp or 0.0, score.exam or 0.0], dtype=float)
    weights = np.array(subject.weights.as_tuple(), dtype=float)
    return float(np.dot(marks, weights))


def compute_yield(
    structure: CurriculumStructure,
    inputs: Mapping[str, ScoreInput],
) -> ComputationResult:
    """
    structure: the units/subjects of one semester
    inputs: subject id -> ScoreInput, already clamped; missing subjects are empty
    returns: subject, unit and semester averages plus the total coefficient

    No rounding happens here; display code rounds.
    """
    result = ComputationResult()
    total_weighted_sum = 0.0
    total_coef_sum = 0.0

    for unit in structure:
        unit_weighted_sum = 0.0
        unit_coef_sum = 0.0

        for subject in unit.subjects:
            avg = subject_average(subject, inputs.get(subject.id, EMPTY_INPUT))
            result.subject_averages[subject.id] = avg
            unit_weighted_sum += avg * subject.coef
            unit_coef_sum += subject.coef

        # Floor of 1 keeps an empty unit at 0 instead of dividing by zero
        result.unit_averages[unit.id] = unit_weighted_sum / max(unit_coef_sum, 1)

        total_weighted_sum += unit_weighted_sum
        total_coef_sum += unit_coef_sum

    result.semester_average = total_weighted_sum / max(total_coef_sum, 1)
    result.total_coefficient = total_coef_sum
    return result


def has_any_input(structure: CurriculumStructure, inputs: Mapping[str, ScoreInput]) -> bool:
    """True if some subject has a mark in a component that carries weight."""
    for _, subject in iter_subjects(structure):
        score = inputs.get(subject.id, EMPTY_INPUT)
        for component in SCORE_COMPONENTS:
            if getattr(score, component) is not None and getattr(subject.weights, component) > 0:
                return True
    return False


def round_2dp_half_up(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def yield_status(average: float) -> str:
    if np.isnan(average) or average < PASS_MARK:
        return "Yield Under Target"
    return "HNS Standard Met"


# ------------------------
# Target planner
# ------------------------
def required_exam_for_target(
    structure: CurriculumStructure,
    inputs: Mapping[str, ScoreInput],
    target: float = PASS_MARK,
) -> Optional[float]:
    """
    Minimum exam mark, the same on every subject whose exam is still
    missing, for the semester average to reach `target`.

    Returns 0.0 if the target is already reached, and None if no exam is
    outstanding or the target is out of reach even with 20 everywhere.
    """
    current = compute_yield(structure, inputs)
    if current.semester_average >= target:
        return 0.0

    # Each exam point on the outstanding subjects moves the semester
    # average by gain / total coefficient.
    gain = 0.0
    for _, subject in iter_subjects(structure):
        if inputs.get(subject.id, EMPTY_INPUT).exam is None:
            gain += subject.coef * subject.weights.exam

    if gain == 0:
        return None

    x = (target - current.semester_average) * max(current.total_coefficient, 1) / gain
    if x > GRADE_MAX:
        return None
    return x
