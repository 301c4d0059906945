"""Application configuration."""
import os
from dotenv import load_dotenv
from typing import Optional

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration from environment variables."""

    # LLM Settings (any OpenAI-compatible endpoint, e.g. Groq)
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
    LLM_MODEL: str = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "4096"))
    LLM_TIMEOUT: int = int(os.getenv("LLM_TIMEOUT", "60"))

    # App Settings
    APP_NAME: str = os.getenv("APP_NAME", "Text2Rule API")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Consistency gate / retry loop
    CONSISTENCY_THRESHOLD: float = float(os.getenv("CONSISTENCY_THRESHOLD", "0.80"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))

    # Seconds between consecutive LLM calls inside one stage (rate-limit protection)
    INTER_CALL_DELAY: float = float(os.getenv("INTER_CALL_DELAY", "12"))

    # Workflow
    RECURSION_LIMIT: int = int(os.getenv("RECURSION_LIMIT", "50"))
    PROMPTS_FILE: Optional[str] = os.getenv("PROMPTS_FILE") or None
    KPI_CONTEXT: str = os.getenv("KPI_CONTEXT", "")

    # Renderers
    RENDER_ASCII: bool = _env_bool("RENDER_ASCII", True)
    RENDER_JSON: bool = _env_bool("RENDER_JSON", True)


config = Config()
