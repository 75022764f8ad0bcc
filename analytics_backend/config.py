import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# .env is optional
load_dotenv()


def _default_cors_origins() -> List[str]:
    value = os.getenv("CORS_ORIGINS")
    return value.split(",") if value else ["*"]


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass
class Settings:
    """Runtime configuration loaded from environment variables."""

    warehouse_backend: str = os.getenv("WAREHOUSE_BACKEND", "bigquery")
    project_id: Optional[str] = _optional("BIGQUERY_PROJECT_ID")
    dataset_id: Optional[str] = _optional("BIGQUERY_DATASET")
    location: Optional[str] = _optional("BIGQUERY_LOCATION")
    duckdb_path: str = os.getenv("DUCKDB_PATH", ":memory:")
    default_location: str = os.getenv("DEFAULT_LOCATION", "US")

    llm_provider: str = os.getenv("LLM_PROVIDER", "langchain")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.1"))
    llm_timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
    llm_max_retries: int = int(os.getenv("LLM_MAX_RETRIES", "0"))

    query_timeout_seconds: float = float(os.getenv("QUERY_TIMEOUT_SECONDS", "120"))
    sql_guard_mode: str = os.getenv("SQL_GUARD_MODE", "strict")
    explain_sample_rows: int = int(os.getenv("EXPLAIN_SAMPLE_ROWS", "3"))

    cors_origins: List[str] = field(default_factory=_default_cors_origins)
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3001"))


settings = Settings()
