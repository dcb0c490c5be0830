from dataclasses import dataclass
import math
from numbers import Real
from typing import Any, Optional

from reportcard.config.settings import settings
from reportcard.core.assessments import AssessmentScore
from reportcard.core.grading import GradingSystem


class ScoreValidationError(ValueError):
    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class GradingConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ScoreLimits:
    ca1: float = 10
    ca2: float = 10
    ca3: float = 10
    exam: float = 70

    @classmethod
    def from_settings(cls) -> "ScoreLimits":
        return cls(
            ca1=settings.ca_max,
            ca2=settings.ca_max,
            ca3=settings.ca_max,
            exam=settings.exam_max,
        )


def validate_component(value: Any, field: str, maximum: float) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ScoreValidationError(field, value, f"{field} score must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0 or value > maximum:
        raise ScoreValidationError(
            field,
            value,
            f"{field} score must be between 0 and {maximum:g}, got {value}",
        )


def validate_assessment_score(score: AssessmentScore, limits: Optional[ScoreLimits] = None) -> AssessmentScore:
    limits = limits or ScoreLimits.from_settings()
    validate_component(score.ca1, "CA1", limits.ca1)
    validate_component(score.ca2, "CA2", limits.ca2)
    validate_component(score.ca3, "CA3", limits.ca3)
    validate_component(score.exam, "Exam", limits.exam)
    return score


def validate_grading_system(system: GradingSystem) -> GradingSystem:
    """Reject grading systems that cannot be meaningfully resolved.

    Gaps and overlaps between bands are allowed; resolution handles them.
    """
    if not 0 <= system.pass_mark <= 100:
        raise GradingConfigError(f"Pass mark must be between 0 and 100, got {system.pass_mark:g}")
    for level in system.levels:
        if math.isnan(level.min_score) or math.isnan(level.max_score):
            raise GradingConfigError(f"Grade {level.grade} has a non-numeric score band")
        if level.min_score > level.max_score:
            raise GradingConfigError(
                f"Grade {level.grade} has min score {level.min_score:g} above max score {level.max_score:g}"
            )
    return system
