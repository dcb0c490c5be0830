from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from reportcard.core.grading import GradingSystem, resolve_grade


COMPONENTS = ("ca1", "ca2", "ca3", "exam")


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class AssessmentScore:
    ca1: Optional[float]
    ca2: Optional[float]
    ca3: Optional[float]
    exam: Optional[float]
    is_absent: bool = False
    is_exempt: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AssessmentScore":
        return cls(
            ca1=_optional_float(data.get("ca1")),
            ca2=_optional_float(data.get("ca2")),
            ca3=_optional_float(data.get("ca3")),
            exam=_optional_float(data.get("exam")),
            is_absent=bool(data.get("is_absent", data.get("isAbsent", False))),
            is_exempt=bool(data.get("is_exempt", data.get("isExempt", False))),
        )

    @property
    def not_applicable(self) -> bool:
        return self.is_absent or self.is_exempt

    @property
    def has_all_scores(self) -> bool:
        return all(getattr(self, name) is not None for name in COMPONENTS)


@dataclass(frozen=True)
class CalculatedAssessment:
    ca1: Optional[float]
    ca2: Optional[float]
    ca3: Optional[float]
    exam: Optional[float]
    is_absent: bool
    is_exempt: bool
    total_ca: Optional[float]
    total: Optional[float]
    grade: Optional[str]
    is_complete: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _pending(score: AssessmentScore) -> CalculatedAssessment:
    return CalculatedAssessment(
        ca1=score.ca1,
        ca2=score.ca2,
        ca3=score.ca3,
        exam=score.exam,
        is_absent=score.is_absent,
        is_exempt=score.is_exempt,
        total_ca=None,
        total=None,
        grade=None,
        is_complete=False,
    )


def calculate_assessment_totals(
    score: AssessmentScore,
    system: Optional[GradingSystem] = None,
    *,
    honor_grading_system: bool = True,
) -> CalculatedAssessment:
    """Aggregate one student's subject scores into CA and grand totals with a grade.

    Absent or exempt records, and records with any component still missing, come
    back incomplete with null aggregates. Components are summed as given; range
    checks belong to ``reportcard.core.validation``.

    With ``honor_grading_system=False`` the default scale grades every record
    whatever ``system`` is passed, matching how report sheets were graded before
    school-defined grading systems were wired into the aggregation.
    """
    if score.not_applicable or not score.has_all_scores:
        return _pending(score)

    total_ca = score.ca1 + score.ca2 + score.ca3
    total = total_ca + score.exam
    grade = resolve_grade(total, system if honor_grading_system else None).grade

    return CalculatedAssessment(
        ca1=score.ca1,
        ca2=score.ca2,
        ca3=score.ca3,
        exam=score.exam,
        is_absent=score.is_absent,
        is_exempt=score.is_exempt,
        total_ca=total_ca,
        total=total,
        grade=grade,
        is_complete=True,
    )


def batch_calculate_assessments(
    scores: Iterable[AssessmentScore],
    system: Optional[GradingSystem] = None,
    *,
    honor_grading_system: bool = True,
) -> List[CalculatedAssessment]:
    return [
        calculate_assessment_totals(score, system, honor_grading_system=honor_grading_system)
        for score in scores
    ]


def raw_total(score: AssessmentScore) -> Optional[float]:
    """Sheet total used for ranking: missing components count as 0, absent/exempt has none."""
    if score.not_applicable:
        return None
    return sum(getattr(score, name) or 0.0 for name in COMPONENTS)
