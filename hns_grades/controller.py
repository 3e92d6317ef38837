import logging
import math
from typing import Dict, Mapping

from hns_grades.backend_logic import (
    EMPTY_INPUT,
    ComputationResult,
    ScoreInput,
    compute_yield,
    has_any_input,
    parse_score_entry,
)
from hns_grades.curriculum import CurriculumStructure, SemesterKey, iter_subjects, select_structure
from hns_grades.debounce import PersistenceDebouncer

logger = logging.getLogger(__name__)


def should_persist(
    structure: CurriculumStructure,
    result: ComputationResult,
    inputs: Mapping[str, ScoreInput],
) -> bool:
    """
    A positive average is always saved. A zero average is saved only when
    it was earned (some weighted mark entered), never before any input exists.
    """
    average = result.semester_average
    if not math.isfinite(average):
        return False
    return average > 0 or has_any_input(structure, inputs)


class GradesController:
    """
    State of the grades calculator for one user session: the selected
    semester, the marks entered for every semester, the current result and
    the debounced save of the semester average.
    """

    def __init__(
        self,
        user_id: str,
        debouncer: PersistenceDebouncer,
        selection: SemesterKey = SemesterKey(2, 1),
    ):
        select_structure(selection.year, selection.semester)
        self.user_id = user_id
        self._debouncer = debouncer
        self.selection = selection
        self._inputs: Dict[SemesterKey, Dict[str, ScoreInput]] = {}
        self.result = compute_yield(self.structure, {})

    @property
    def structure(self) -> CurriculumStructure:
        return select_structure(self.selection.year, self.selection.semester)

    @property
    def inputs(self) -> Dict[str, ScoreInput]:
        return self._inputs.setdefault(self.selection, {})

    @property
    def saving(self) -> bool:
        return self._debouncer.saving

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def set_score(self, subject_id: str, component: str, raw) -> ComputationResult:
        known = {subject.id for _, subject in iter_subjects(self.structure)}
        if subject_id not in known:
            raise KeyError(f"Unknown subject for {self.selection}: {subject_id!r}")

        current = self.inputs.get(subject_id, EMPTY_INPUT)
        self.inputs[subject_id] = current.with_component(component, parse_score_entry(raw))
        return self._recompute(schedule=True)

    def load_scores(self, inputs: Mapping[str, ScoreInput]) -> ComputationResult:
        self._inputs[self.selection] = dict(inputs)
        return self._recompute(schedule=True)

    def select_semester(self, year: int, semester: int) -> ComputationResult:
        selection = SemesterKey(year, semester)
        if selection == self.selection:
            return self.result
        select_structure(year, semester)

        # A pending save belongs to the previous selection.
        self._debouncer.cancel()
        logger.debug("Switched %s -> %s", self.selection, selection)
        self.selection = selection
        return self._recompute(schedule=False)

    def close(self) -> None:
        self._debouncer.cancel()

    def _recompute(self, schedule: bool) -> ComputationResult:
        self.result = compute_yield(self.structure, self.inputs)
        if schedule:
            if should_persist(self.structure, self.result, self.inputs):
                self._debouncer.schedule(self.selection, self.result.semester_average)
            else:
                # An edit back to "no input" supersedes the pending value.
                self._debouncer.cancel()
        return self.result
