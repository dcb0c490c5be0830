from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, TypeVar

from reportcard.core.assessments import AssessmentScore, raw_total
from reportcard.core.grading import GradingSystem, resolve_grade


K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class SubjectStatistics:
    total_students: int
    lowest: float
    highest: float
    average: float


@dataclass(frozen=True)
class SubjectResult:
    score: Optional[float]
    grade: Optional[str]


@dataclass(frozen=True)
class StudentTermResult:
    student_id: str
    subjects: Dict[str, SubjectResult] = field(default_factory=dict)
    total_score: Optional[float] = None
    average_score: float = 0.0
    grade: str = ""
    position: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_subject_statistics(scores: Iterable[AssessmentScore]) -> SubjectStatistics:
    totals = [total for total in (raw_total(score) for score in scores) if total is not None]
    if not totals:
        return SubjectStatistics(total_students=0, lowest=0.0, highest=0.0, average=0.0)
    return SubjectStatistics(
        total_students=len(totals),
        lowest=min(totals),
        highest=max(totals),
        average=sum(totals) / len(totals),
    )


def rank_positions(totals: Mapping[K, Optional[float]]) -> Dict[K, int]:
    """Competition ranking by descending total: ties share a position and the next one skips.

    Entries without a total are unranked (position 0).
    """
    ranked = sorted(
        ((key, total) for key, total in totals.items() if total is not None),
        key=lambda item: item[1],
        reverse=True,
    )
    positions: Dict[K, int] = {key: 0 for key, total in totals.items() if total is None}
    previous: Optional[float] = None
    position = 0
    for index, (key, total) in enumerate(ranked, start=1):
        if total != previous:
            position = index
            previous = total
        positions[key] = position
    return positions


def compile_class_results(
    sheet: Mapping[str, Mapping[str, AssessmentScore]],
    subject_ids: Sequence[str],
    system: Optional[GradingSystem] = None,
) -> List[StudentTermResult]:
    results: List[StudentTermResult] = []
    for student_id, scores in sheet.items():
        subjects: Dict[str, SubjectResult] = {}
        total_score = 0.0
        counted = 0
        for subject_id in subject_ids:
            score = scores.get(subject_id)
            total = raw_total(score) if score is not None else None
            if total is None:
                subjects[subject_id] = SubjectResult(score=None, grade=None)
                continue
            subjects[subject_id] = SubjectResult(score=total, grade=resolve_grade(total, system).grade)
            total_score += total
            counted += 1

        average = total_score / counted if counted else 0.0
        results.append(
            StudentTermResult(
                student_id=student_id,
                subjects=subjects,
                total_score=total_score if counted else None,
                average_score=average,
                grade=resolve_grade(average, system).grade if counted else "",
            )
        )

    positions = rank_positions({result.student_id: result.total_score for result in results})
    ranked = [replace(result, position=positions[result.student_id]) for result in results]
    # Unranked students (position 0) go last; ties keep input order.
    ranked.sort(key=lambda result: (result.position == 0, result.position))
    return ranked
