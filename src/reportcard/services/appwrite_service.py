from datetime import datetime, timezone
import json
import logging
from typing import Dict, List, Optional

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases

from reportcard.config.settings import settings
from reportcard.core.assessments import AssessmentScore, batch_calculate_assessments, calculate_assessment_totals
from reportcard.core.grading import GradingSystem
from reportcard.core.results import StudentTermResult, SubjectStatistics, calculate_subject_statistics, compile_class_results
from reportcard.core.validation import GradingConfigError, ScoreLimits, validate_assessment_score, validate_grading_system


logger = logging.getLogger(__name__)


class AppwriteServiceError(Exception):
    pass


class AppwriteService:
    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        database_id: str,
        grading_systems_collection_id: str,
        assessments_collection_id: str,
        honor_grading_system: bool = True,
    ) -> None:
        if not endpoint:
            raise AppwriteServiceError("Missing APPWRITE_ENDPOINT in environment")
        if not project_id:
            raise AppwriteServiceError("Missing APPWRITE_PROJECT_ID in environment")
        if not api_key:
            raise AppwriteServiceError("Missing APPWRITE_API_KEY in environment")
        if not database_id:
            raise AppwriteServiceError("Missing APPWRITE_DATABASE_ID in environment")

        self.database_id = database_id
        self.grading_systems_collection_id = grading_systems_collection_id
        self.assessments_collection_id = assessments_collection_id
        self.honor_grading_system = honor_grading_system

        client = Client()
        client.set_endpoint(endpoint.rstrip("/"))
        client.set_project(project_id)
        client.set_key(api_key)

        self.db = Databases(client)

    @classmethod
    def from_settings(cls) -> "AppwriteService":
        return cls(
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
            api_key=settings.appwrite_api_key,
            database_id=settings.appwrite_database_id,
            grading_systems_collection_id=settings.appwrite_grading_systems_collection_id,
            assessments_collection_id=settings.appwrite_assessments_collection_id,
            honor_grading_system=settings.honor_grading_system,
        )

    @staticmethod
    def _to_iso(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    def _list_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        try:
            result = self.db.list_documents(self.database_id, collection_id, queries=queries)
            return list(result.get("documents", []))
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _create_document(self, collection_id: str, data: Dict, document_id: Optional[str] = None) -> Dict:
        try:
            return self.db.create_document(
                self.database_id,
                collection_id,
                document_id or ID.unique(),
                data,
            )
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _update_document(self, collection_id: str, document_id: str, data: Dict) -> Dict:
        try:
            return self.db.update_document(self.database_id, collection_id, document_id, data)
        except AppwriteException as exc:
            raise AppwriteServiceError(str(exc)) from exc

    def _find_first(self, collection_id: str, queries: List[str]) -> Optional[Dict]:
        docs = self._list_documents(collection_id, [*queries, Query.limit(1)])
        if not docs:
            return None
        return docs[0]

    @staticmethod
    def _parse_grading_system(doc: Dict) -> GradingSystem:
        levels = doc.get("levels")
        if isinstance(levels, str) and levels:
            try:
                levels = json.loads(levels)
            except ValueError as exc:
                raise AppwriteServiceError(f"Grading system {doc.get('$id')} has malformed levels") from exc
        elif not isinstance(levels, list):
            levels = []

        try:
            system = GradingSystem.from_dict(
                {
                    "name": doc.get("name", ""),
                    "pass_mark": doc.get("pass_mark", 40),
                    "levels": levels,
                }
            )
            return validate_grading_system(system)
        except (KeyError, TypeError, ValueError, GradingConfigError) as exc:
            raise AppwriteServiceError(f"Grading system {doc.get('$id')} is invalid: {exc}") from exc

    def get_default_grading_system(self, school_id: str) -> Optional[GradingSystem]:
        doc = self._find_first(
            self.grading_systems_collection_id,
            [
                Query.equal("school_id", [school_id]),
                Query.equal("is_default", [True]),
            ],
        )
        if not doc:
            logger.info("School %s has no default grading system; using the default scale", school_id)
            return None
        return self._parse_grading_system(doc)

    @staticmethod
    def _to_row(doc: Dict) -> Dict:
        try:
            return {
                "id": doc["$id"],
                "student_id": doc.get("student_id"),
                "subject_id": doc.get("subject_id"),
                "score": AssessmentScore.from_dict(doc),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise AppwriteServiceError(f"Assessment {doc.get('$id')} is invalid: {exc}") from exc

    def list_assessments(self, class_term_id: str, subject_id: Optional[str] = None) -> List[Dict]:
        queries = [Query.equal("class_term_id", [class_term_id])]
        if subject_id is not None:
            queries.append(Query.equal("subject_id", [subject_id]))
        return [self._to_row(doc) for doc in self._list_documents(self.assessments_collection_id, queries)]

    def save_assessment(
        self,
        school_id: str,
        class_term_id: str,
        subject_id: str,
        student_id: str,
        score: AssessmentScore,
        edited_by: str,
        limits: Optional[ScoreLimits] = None,
    ) -> Dict:
        validate_assessment_score(score, limits)
        system = self.get_default_grading_system(school_id)

        existing = self._find_first(
            self.assessments_collection_id,
            [
                Query.equal("class_term_id", [class_term_id]),
                Query.equal("subject_id", [subject_id]),
                Query.equal("student_id", [student_id]),
            ],
        )
        payload = {
            "school_id": school_id,
            "class_term_id": class_term_id,
            "subject_id": subject_id,
            "student_id": student_id,
            "ca1": score.ca1,
            "ca2": score.ca2,
            "ca3": score.ca3,
            "exam": score.exam,
            "is_absent": score.is_absent,
            "is_exempt": score.is_exempt,
            "is_published": False,
            "edited_by": edited_by,
            "updated_at": self._to_iso(datetime.now(timezone.utc)),
        }
        if existing:
            doc = self._update_document(self.assessments_collection_id, existing["$id"], payload)
        else:
            doc = self._create_document(self.assessments_collection_id, {**payload, "created_by": edited_by})

        calculated = calculate_assessment_totals(score, system, honor_grading_system=self.honor_grading_system)
        return {
            "id": doc.get("$id"),
            "student_id": student_id,
            "subject_id": subject_id,
            **calculated.to_dict(),
        }

    def get_subject_sheet(self, school_id: str, class_term_id: str, subject_id: str) -> List[Dict]:
        rows = self.list_assessments(class_term_id, subject_id)
        system = self.get_default_grading_system(school_id)
        calculated = batch_calculate_assessments(
            [row["score"] for row in rows],
            system,
            honor_grading_system=self.honor_grading_system,
        )
        sheet = [
            {"id": row["id"], "student_id": row["student_id"], **result.to_dict()}
            for row, result in zip(rows, calculated)
        ]
        sheet.sort(key=lambda row: str(row.get("student_id") or ""))
        return sheet

    def get_subject_statistics(self, class_term_id: str, subject_id: str) -> SubjectStatistics:
        rows = self.list_assessments(class_term_id, subject_id)
        return calculate_subject_statistics(row["score"] for row in rows)

    def get_class_results(self, school_id: str, class_term_id: str) -> List[StudentTermResult]:
        rows = self.list_assessments(class_term_id)
        system = self.get_default_grading_system(school_id)

        sheet: Dict[str, Dict[str, AssessmentScore]] = {}
        subject_ids: List[str] = []
        for row in rows:
            student_id = row["student_id"]
            subject_id = row["subject_id"]
            if not student_id or not subject_id:
                continue
            if subject_id not in subject_ids:
                subject_ids.append(subject_id)
            sheet.setdefault(student_id, {})[subject_id] = row["score"]

        return compile_class_results(sheet, subject_ids, system)
