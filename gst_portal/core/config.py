from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    PROJECT_NAME: str = "GST CA Portal"
    LOG_LEVEL: str = "INFO"

    # Document extraction (any OpenAI-compatible chat completions endpoint)
    EXTRACTION_API_KEY: str = ""
    EXTRACTION_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    EXTRACTION_MODEL: str = "gemini-2.5-flash"
    EXTRACTION_TIMEOUT_SECONDS: float = 60.0
    EXTRACTION_MAX_ATTEMPTS: int = 3
    EXTRACTION_BACKOFF_SECONDS: float = 1.0
    EXTRACTION_JITTER_SECONDS: float = 1.0

    # Reconciliation
    VARIANCE_TOLERANCE_PERCENT: float = 1.0

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
