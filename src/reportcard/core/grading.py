from dataclasses import dataclass
import logging
import math
from typing import Any, Iterable, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingLevel:
    min_score: float
    max_score: float
    grade: str
    remark: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GradingLevel":
        return cls(
            min_score=float(_pick(data, "min_score", "minScore")),
            max_score=float(_pick(data, "max_score", "maxScore")),
            grade=str(data["grade"]),
            remark=str(data.get("remark", "")),
        )


@dataclass(frozen=True)
class GradingSystem:
    levels: Tuple[GradingLevel, ...]
    pass_mark: float
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GradingSystem":
        levels = tuple(
            level if isinstance(level, GradingLevel) else GradingLevel.from_dict(level)
            for level in data.get("levels") or ()
        )
        return cls(
            levels=levels,
            pass_mark=float(_pick(data, "pass_mark", "passMark")),
            name=str(data.get("name") or ""),
        )


@dataclass(frozen=True)
class GradeResult:
    grade: str
    remark: str
    passed: bool


def _pick(data: Mapping[str, Any], snake: str, camel: str) -> Any:
    if snake in data:
        return data[snake]
    return data[camel]


# Adjacent bands share an edge; the higher band wins there because levels are
# scanned by max_score descending.
DEFAULT_GRADING_SYSTEM = GradingSystem(
    levels=(
        GradingLevel(70, math.inf, "A", "Excellent"),
        GradingLevel(60, 70, "B", "Very Good"),
        GradingLevel(50, 60, "C", "Good"),
        GradingLevel(45, 50, "D", "Fair"),
        GradingLevel(40, 45, "E", "Pass"),
        GradingLevel(-math.inf, 40, "F", "Fail"),
    ),
    pass_mark=40,
    name="Default",
)

FALLBACK_RESULT = GradeResult(grade="F", remark="Fail", passed=False)


def _ordered_levels(system: GradingSystem) -> Tuple[GradingLevel, ...]:
    # sorted() is stable: levels sharing a max_score keep their configured order.
    return tuple(sorted(system.levels, key=lambda level: level.max_score, reverse=True))


def resolve_grade(score: float, system: Optional[GradingSystem] = None) -> GradeResult:
    if system is None or not system.levels:
        system = DEFAULT_GRADING_SYSTEM

    for level in _ordered_levels(system):
        if level.min_score <= score <= level.max_score:
            return GradeResult(
                grade=level.grade,
                remark=level.remark,
                passed=is_passing(score, system.pass_mark),
            )

    logger.debug("Score %s is not covered by grading system %r; falling back to F", score, system.name)
    return FALLBACK_RESULT


def is_passing(score: float, pass_mark: float) -> bool:
    return score >= pass_mark


def pass_rate(scores: Iterable[float], pass_mark: float) -> float:
    values = list(scores)
    if not values:
        return 0.0
    passed = sum(1 for score in values if is_passing(score, pass_mark))
    return (passed / len(values)) * 100


def format_score(score: float) -> str:
    return f"{score:.1f}%"


GRADE_TONES = {
    "A": "success",
    "B": "info",
    "C": "warning",
    "D": "caution",
    "E": "caution",
    "F": "danger",
}


def grade_tone(grade: str) -> str:
    """Badge tone for a grade code, keyed on its leading letter (so "A1" reads as "A")."""
    if not grade:
        return "neutral"
    return GRADE_TONES.get(grade[0].upper(), "neutral")
