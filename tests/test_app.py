import unittest
from unittest import mock

from fastapi.testclient import TestClient

from reportcard.app import app
from reportcard.core.results import StudentTermResult, SubjectResult, SubjectStatistics
from reportcard.core.validation import ScoreValidationError
from reportcard.services.appwrite_service import AppwriteServiceError


CUSTOM_SYSTEM = {
    "name": "Senior",
    "pass_mark": 50,
    "levels": [{"min_score": 80, "max_score": 100, "grade": "A1", "remark": "Outstanding"}],
}


class EngineEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_resolve_default_scale(self):
        response = self.client.post("/grading/resolve", json={"score": 40})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"grade": "E", "remark": "Pass", "passed": True})

    def test_resolve_custom_system(self):
        response = self.client.post("/grading/resolve", json={"score": 85, "grading_system": CUSTOM_SYSTEM})
        self.assertEqual(response.json(), {"grade": "A1", "remark": "Outstanding", "passed": True})

        response = self.client.post("/grading/resolve", json={"score": 30, "grading_system": CUSTOM_SYSTEM})
        self.assertEqual(response.json(), {"grade": "F", "remark": "Fail", "passed": False})

    def test_resolve_rejects_inverted_band(self):
        system = {
            "pass_mark": 50,
            "levels": [{"min_score": 90, "max_score": 80, "grade": "A", "remark": "Excellent"}],
        }
        response = self.client.post("/grading/resolve", json={"score": 85, "grading_system": system})
        self.assertEqual(response.status_code, 422)

    def test_calculate_batch(self):
        response = self.client.post(
            "/assessments/calculate",
            json={
                "scores": [
                    {"ca1": 10, "ca2": 10, "ca3": 10, "exam": 40, "is_absent": True},
                    {"ca1": 8, "ca2": 7, "ca3": 9, "exam": None},
                    {"ca1": 10, "ca2": 10, "ca3": 10, "exam": 22},
                ]
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([row["is_complete"] for row in body], [False, False, True])
        self.assertEqual(body[2]["grade"], "C")
        self.assertEqual(body[2]["total"], 52)
        self.assertIsNone(body[0]["total"])

    def test_calculate_strict_mode(self):
        payload = {"scores": [{"ca1": 10, "ca2": 10, "ca3": 10, "exam": 55}], "grading_system": CUSTOM_SYSTEM}
        honored = self.client.post("/assessments/calculate", json=payload).json()
        strict = self.client.post("/assessments/calculate", json={**payload, "honor_grading_system": False}).json()
        self.assertEqual(honored[0]["grade"], "A1")
        self.assertEqual(strict[0]["grade"], "A")

    def test_compile_results(self):
        response = self.client.post(
            "/results/compile",
            json={
                "subject_ids": ["maths"],
                "sheet": {
                    "ada": {"maths": {"ca1": 5, "ca2": 5, "ca3": 5, "exam": 30}},
                    "ben": {"maths": {"ca1": 10, "ca2": 10, "ca3": 10, "exam": 50}},
                },
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([row["student_id"] for row in body], ["ben", "ada"])
        self.assertEqual([row["position"] for row in body], [1, 2])
        self.assertEqual(body[1]["subjects"]["maths"], {"score": 45, "grade": "D"})


class StoreEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        patcher = mock.patch("reportcard.app.AppwriteService.from_settings")
        self.from_settings = patcher.start()
        self.addCleanup(patcher.stop)
        self.store = self.from_settings.return_value

    def test_list_subject_assessments(self):
        self.store.get_subject_sheet.return_value = [{"id": "a1", "student_id": "stu-1", "grade": "A"}]
        response = self.client.get("/schools/s1/class-terms/ct1/subjects/maths/assessments")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [{"id": "a1", "student_id": "stu-1", "grade": "A"}])
        self.store.get_subject_sheet.assert_called_once_with("s1", "ct1", "maths")

    def test_store_errors_map_to_400(self):
        self.store.get_subject_sheet.side_effect = AppwriteServiceError("unavailable")
        response = self.client.get("/schools/s1/class-terms/ct1/subjects/maths/assessments")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "unavailable")

    def test_save_requires_user(self):
        response = self.client.put(
            "/schools/s1/class-terms/ct1/subjects/maths/assessments/stu-1",
            json={"ca1": 5},
        )
        self.assertEqual(response.status_code, 401)

    def test_save_assessment(self):
        self.store.save_assessment.return_value = {"id": "a1", "total": None, "is_complete": False}
        response = self.client.put(
            "/schools/s1/class-terms/ct1/subjects/maths/assessments/stu-1",
            json={"ca1": 5},
            headers={"x-user-id": "teacher-1"},
        )
        self.assertEqual(response.status_code, 200)
        args, kwargs = self.store.save_assessment.call_args
        self.assertEqual(args[:4], ("s1", "ct1", "maths", "stu-1"))
        self.assertEqual(args[4].ca1, 5)
        self.assertIsNone(args[4].exam)
        self.assertEqual(kwargs["edited_by"], "teacher-1")

    def test_save_invalid_score(self):
        self.store.save_assessment.side_effect = ScoreValidationError(
            "CA1", 15, "CA1 score must be between 0 and 10, got 15"
        )
        response = self.client.put(
            "/schools/s1/class-terms/ct1/subjects/maths/assessments/stu-1",
            json={"ca1": 15},
            headers={"x-user-id": "teacher-1"},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["detail"], "CA1 score must be between 0 and 10, got 15")

    def test_subject_statistics(self):
        self.store.get_subject_statistics.return_value = SubjectStatistics(
            total_students=2, lowest=40, highest=80, average=60
        )
        response = self.client.get("/schools/s1/class-terms/ct1/subjects/maths/statistics")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"total_students": 2, "lowest": 40, "highest": 80, "average": 60})
        self.store.get_subject_statistics.assert_called_once_with("ct1", "maths")

    def test_subject_statistics_store_error(self):
        self.store.get_subject_statistics.side_effect = AppwriteServiceError("Assessment a1 is invalid")
        response = self.client.get("/schools/s1/class-terms/ct1/subjects/maths/statistics")
        self.assertEqual(response.status_code, 400)

    def test_class_term_results(self):
        self.store.get_class_results.return_value = [
            StudentTermResult(
                student_id="stu-1",
                subjects={"maths": SubjectResult(score=80, grade="A")},
                total_score=80,
                average_score=80,
                grade="A",
                position=1,
            )
        ]
        response = self.client.get("/schools/s1/class-terms/ct1/results")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["subjects"], {"maths": {"score": 80, "grade": "A"}})
        self.assertEqual(response.json()[0]["position"], 1)


if __name__ == "__main__":
    unittest.main()
