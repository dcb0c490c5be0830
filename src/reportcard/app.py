from dataclasses import asdict
import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from reportcard.config.settings import settings
from reportcard.core.assessments import AssessmentScore, batch_calculate_assessments
from reportcard.core.grading import GradingSystem, resolve_grade
from reportcard.core.results import compile_class_results
from reportcard.core.validation import GradingConfigError, ScoreValidationError, validate_grading_system
from reportcard.services.appwrite_service import AppwriteService, AppwriteServiceError


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="ReportCard API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_origin_regex=settings.cors_allow_origin_regex or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GradingLevelPayload(BaseModel):
    min_score: float = Field(allow_inf_nan=False)
    max_score: float = Field(allow_inf_nan=False)
    grade: str = Field(min_length=1)
    remark: str = ""


class GradingSystemPayload(BaseModel):
    name: str = ""
    pass_mark: float = Field(ge=0, le=100)
    levels: List[GradingLevelPayload] = Field(default_factory=list)


class AssessmentScorePayload(BaseModel):
    ca1: Optional[float] = Field(default=None, allow_inf_nan=False)
    ca2: Optional[float] = Field(default=None, allow_inf_nan=False)
    ca3: Optional[float] = Field(default=None, allow_inf_nan=False)
    exam: Optional[float] = Field(default=None, allow_inf_nan=False)
    is_absent: bool = False
    is_exempt: bool = False


class ResolvePayload(BaseModel):
    score: float = Field(allow_inf_nan=False)
    grading_system: Optional[GradingSystemPayload] = None


class CalculatePayload(BaseModel):
    scores: List[AssessmentScorePayload]
    grading_system: Optional[GradingSystemPayload] = None
    honor_grading_system: Optional[bool] = None


class CompilePayload(BaseModel):
    subject_ids: List[str]
    sheet: Dict[str, Dict[str, AssessmentScorePayload]]
    grading_system: Optional[GradingSystemPayload] = None


def _required_uid(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing x-user-id header")
    return x_user_id


def _grading_system(payload: Optional[GradingSystemPayload]) -> Optional[GradingSystem]:
    if payload is None:
        return None
    try:
        return validate_grading_system(GradingSystem.from_dict(payload.model_dump()))
    except GradingConfigError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _score(payload: AssessmentScorePayload) -> AssessmentScore:
    return AssessmentScore.from_dict(payload.model_dump())


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/grading/resolve")
def grading_resolve(payload: ResolvePayload) -> Dict:
    result = resolve_grade(payload.score, _grading_system(payload.grading_system))
    return {"grade": result.grade, "remark": result.remark, "passed": result.passed}


@app.post("/assessments/calculate")
def assessments_calculate(payload: CalculatePayload) -> List[Dict]:
    honor = settings.honor_grading_system if payload.honor_grading_system is None else payload.honor_grading_system
    results = batch_calculate_assessments(
        [_score(item) for item in payload.scores],
        _grading_system(payload.grading_system),
        honor_grading_system=honor,
    )
    return [result.to_dict() for result in results]


@app.post("/results/compile")
def results_compile(payload: CompilePayload) -> List[Dict]:
    sheet = {
        student_id: {subject_id: _score(item) for subject_id, item in subjects.items()}
        for student_id, subjects in payload.sheet.items()
    }
    results = compile_class_results(sheet, payload.subject_ids, _grading_system(payload.grading_system))
    return [result.to_dict() for result in results]


@app.get("/schools/{school_id}/class-terms/{class_term_id}/subjects/{subject_id}/assessments")
def list_subject_assessments(school_id: str, class_term_id: str, subject_id: str) -> List[Dict]:
    try:
        store = AppwriteService.from_settings()
        return store.get_subject_sheet(school_id, class_term_id, subject_id)
    except AppwriteServiceError as exc:
        logger.error("Failed to load assessments for class term %s: %s", class_term_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/schools/{school_id}/class-terms/{class_term_id}/subjects/{subject_id}/statistics")
def subject_statistics(school_id: str, class_term_id: str, subject_id: str) -> Dict:
    try:
        store = AppwriteService.from_settings()
        return asdict(store.get_subject_statistics(class_term_id, subject_id))
    except AppwriteServiceError as exc:
        logger.error("Failed to load statistics for subject %s: %s", subject_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.put("/schools/{school_id}/class-terms/{class_term_id}/subjects/{subject_id}/assessments/{student_id}")
def save_subject_assessment(
    school_id: str,
    class_term_id: str,
    subject_id: str,
    student_id: str,
    payload: AssessmentScorePayload,
    x_user_id: Optional[str] = Header(default=None),
) -> Dict:
    uid = _required_uid(x_user_id)
    try:
        store = AppwriteService.from_settings()
        return store.save_assessment(school_id, class_term_id, subject_id, student_id, _score(payload), edited_by=uid)
    except ScoreValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except AppwriteServiceError as exc:
        logger.error("Failed to save assessment for student %s: %s", student_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.get("/schools/{school_id}/class-terms/{class_term_id}/results")
def class_term_results(school_id: str, class_term_id: str) -> List[Dict]:
    try:
        store = AppwriteService.from_settings()
        return [result.to_dict() for result in store.get_class_results(school_id, class_term_id)]
    except AppwriteServiceError as exc:
        logger.error("Failed to compile results for class term %s: %s", class_term_id, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
