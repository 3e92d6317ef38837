import re
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple


# ------------------------
# Curriculum model
# ------------------------
@dataclass(frozen=True)
class Weights:
    td: float
    tp: float
    exam: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.td, self.tp, self.exam)


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    coef: float
    weights: Weights

    @property
    def has_td(self) -> bool:
        return self.weights.td > 0

    @property
    def has_tp(self) -> bool:
        return self.weights.tp > 0


@dataclass(frozen=True)
class Unit:
    id: str
    name: str
    subjects: Tuple[Subject, ...] = ()


CurriculumStructure = Tuple[Unit, ...]


@dataclass(frozen=True, order=True)
class SemesterKey:
    year: int
    semester: int

    @property
    def label(self) -> str:
        return f"Y{self.year}S{self.semester}"

    @classmethod
    def parse(cls, label: str) -> "SemesterKey":
        match = re.fullmatch(r"Y(\d)S(\d)", label.strip().upper())
        if not match:
            raise ValueError(f"Invalid semester key: {label!r} (expected e.g. 'Y2S1').")
        return cls(int(match.group(1)), int(match.group(2)))

    def __str__(self) -> str:
        return self.label


# Common weighting schemes
TD_EXAM = Weights(td=0.5, tp=0.0, exam=0.5)
TD_TP_EXAM = Weights(td=0.25, tp=0.25, exam=0.5)
EXAM_ONLY = Weights(td=0.0, tp=0.0, exam=1.0)


# ------------------------
# Curriculum tables
# ------------------------
YEAR_1_SEMESTER_1: CurriculumStructure = (
    Unit("unit1", "Unit 1: Fundamental Sciences I", (
        Subject("analysis1", "Analysis 1", 5, TD_EXAM),
        Subject("algebra1", "Algebra 1", 4, TD_EXAM),
    )),
    Unit("unit2", "Unit 2: Physics & Chemistry I", (
        Subject("physics1", "Physics 1 (Mechanics)", 4, TD_TP_EXAM),
        Subject("chemistry1", "Chemistry 1 (Structure of Matter)", 3, TD_TP_EXAM),
    )),
    Unit("unit3", "Unit 3: Computer Science I", (
        Subject("computer_science1", "Computer Science 1", 4, TD_TP_EXAM),
    )),
    Unit("unit4", "Unit 4: Engineering Tools I", (
        Subject("technical_drawing", "Technical Drawing", 3, TD_EXAM),
        Subject("intro_energy", "Introduction to Energy Systems", 3, EXAM_ONLY),
    )),
    Unit("unit5", "Unit 5: Communication & Languages I", (
        Subject("english1", "English 1", 2, EXAM_ONLY),
        Subject("terminology", "Scientific Terminology", 2, EXAM_ONLY),
    )),
)

YEAR_1_SEMESTER_2: CurriculumStructure = (
    Unit("unit1", "Unit 1: Fundamental Sciences II", (
        Subject("analysis2", "Analysis 2", 5, TD_EXAM),
        Subject("algebra2", "Algebra 2", 4, TD_EXAM),
    )),
    Unit("unit2", "Unit 2: Physics & Chemistry II", (
        Subject("physics2", "Physics 2 (Electricity & Magnetism)", 4, TD_TP_EXAM),
        Subject("thermodynamics", "Thermodynamics", 3, TD_TP_EXAM),
    )),
    Unit("unit3", "Unit 3: Computer Science II", (
        Subject("computer_science2", "Computer Science 2", 4, TD_TP_EXAM),
    )),
    Unit("unit4", "Unit 4: Engineering Tools II", (
        Subject("cad", "Computer-Aided Design", 3, TD_EXAM),
        Subject("probability_stats", "Probability & Statistics", 3, TD_EXAM),
    )),
    Unit("unit5", "Unit 5: Communication & Languages II", (
        Subject("english2", "English 2", 2, EXAM_ONLY),
        Subject("history_of_science", "History of Science", 2, EXAM_ONLY),
    )),
)

YEAR_2_SEMESTER_1: CurriculumStructure = (
    Unit("unit1", "Unit 1: Fundamental Sciences I", (
        Subject("analysis3", "Analysis 3", 4, TD_EXAM),
        Subject("num_analysis1", "Numerical Analysis 1", 2, TD_TP_EXAM),
    )),
    Unit("unit2", "Unit 2: Physics & Chemistry I", (
        Subject("physics3", "Physics 3", 4, TD_TP_EXAM),
        Subject("chemistry", "Chemistry", 3, TD_TP_EXAM),
    )),
    Unit("unit3", "Unit 3: Applied Mechanics I", (
        Subject("rational_mech1", "Rational Mechanics 1", 3, TD_EXAM),
        Subject("gen_electricity", "General Electricity", 3, TD_TP_EXAM),
        Subject("fluid_mechanics", "Fluid Mechanics", 3, TD_TP_EXAM),
    )),
    Unit("unit4", "Unit 4: Computer Science I", (
        Subject("computer_science3", "Computer Science 3", 3, TD_EXAM),
    )),
    Unit("unit5", "Unit 5: Engineering Tools I", (
        Subject("engineering1", "Engineering 1", 3, TD_EXAM),
    )),
    Unit("unit6", "Unit 6: Communication & Languages I", (
        Subject("english3", "English 3", 1, EXAM_ONLY),
        Subject("expressive_tech1", "Expressive Techniques 1", 1, EXAM_ONLY),
    )),
)

YEAR_2_SEMESTER_2: CurriculumStructure = (
    Unit("unit1", "Unit 1: Fundamental Sciences II", (
        Subject("analysis4", "Analysis 4", 4, TD_EXAM),
        Subject("num_analysis2", "Numerical Analysis 2", 2, TD_TP_EXAM),
    )),
    Unit("unit2", "Unit 2: Physics & Chemistry II", (
        Subject("physics4", "Physics 4 (Waves & Optics)", 4, TD_TP_EXAM),
        Subject("heat_transfer", "Heat Transfer", 3, TD_TP_EXAM),
    )),
    Unit("unit3", "Unit 3: Applied Mechanics II", (
        Subject("rational_mech2", "Rational Mechanics 2", 3, TD_EXAM),
        Subject("strength_materials", "Strength of Materials", 3, TD_TP_EXAM),
        Subject("electronics", "Fundamentals of Electronics", 3, TD_TP_EXAM),
    )),
    Unit("unit4", "Unit 4: Computer Science II", (
        Subject("computer_science4", "Computer Science 4", 3, TD_EXAM),
    )),
    Unit("unit5", "Unit 5: Engineering Tools II", (
        Subject("engineering2", "Engineering 2", 3, TD_EXAM),
    )),
    Unit("unit6", "Unit 6: Communication & Languages II", (
        Subject("english4", "English 4", 1, EXAM_ONLY),
        Subject("expressive_tech2", "Expressive Techniques 2", 1, EXAM_ONLY),
    )),
)

STRUCTURES: Dict[SemesterKey, CurriculumStructure] = {
    SemesterKey(1, 1): YEAR_1_SEMESTER_1,
    SemesterKey(1, 2): YEAR_1_SEMESTER_2,
    SemesterKey(2, 1): YEAR_2_SEMESTER_1,
    SemesterKey(2, 2): YEAR_2_SEMESTER_2,
}


def select_structure(year: int, semester: int) -> CurriculumStructure:
    key = SemesterKey(year, semester)
    if key not in STRUCTURES:
        raise ValueError(f"No curriculum for year {year}, semester {semester}.")
    return STRUCTURES[key]


def iter_subjects(structure: CurriculumStructure) -> Iterator[Tuple[Unit, Subject]]:
    for unit in structure:
        for subject in unit.subjects:
            yield unit, subject


def total_coefficient(structure: CurriculumStructure) -> float:
    return float(sum(subject.coef for _, subject in iter_subjects(structure)))
