# src/config/settings.py
from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List

# Get project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str
    openai_llm_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0
    openai_max_retries: int = 5

    # Classification
    classification_max_tokens: int = 100
    max_feedback_chars: int = 4000

    # PostgreSQL
    postgres_host: str
    postgres_port: int = 5432
    postgres_database: str
    postgres_username: str
    postgres_password: str
    postgres_sslmode: str = "require"
    postgres_pool_size: int = 5

    # Source weighting
    default_source_weight: float = 0.5

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_allow_origins: List[str] = ["*"]
    log_level: str = "INFO"

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        case_sensitive = False
