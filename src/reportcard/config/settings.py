from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class Settings:
    appwrite_endpoint: str = os.getenv("APPWRITE_ENDPOINT", "")
    appwrite_project_id: str = os.getenv("APPWRITE_PROJECT_ID", "")
    appwrite_api_key: str = os.getenv("APPWRITE_API_KEY") or os.getenv("APPWRITE_FUNCTION_API_KEY", "")
    appwrite_database_id: str = os.getenv("APPWRITE_DATABASE_ID", "")

    appwrite_grading_systems_collection_id: str = os.getenv(
        "APPWRITE_GRADING_SYSTEMS_COLLECTION_ID", "grading_systems"
    )
    appwrite_assessments_collection_id: str = os.getenv("APPWRITE_ASSESSMENTS_COLLECTION_ID", "assessments")

    ca_max: float = float(os.getenv("REPORTCARD_CA_MAX", "10"))
    exam_max: float = float(os.getenv("REPORTCARD_EXAM_MAX", "70"))
    honor_grading_system: bool = _flag(os.getenv("REPORTCARD_HONOR_GRADING_SYSTEM", "1"))

    log_level: str = os.getenv("REPORTCARD_LOG_LEVEL", "INFO").upper()

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )
    cors_allow_origin_regex: str = os.getenv(
        "CORS_ALLOW_ORIGIN_REGEX",
        r"^https?:\/\/(localhost|127\.0\.0\.1)(:\d+)?$",
    )


settings = Settings()
