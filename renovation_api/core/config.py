import os
from pydantic import BaseModel

class Settings(BaseModel):
    # Basic
    ENV: str = os.getenv("ENV", "dev")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "43200"))
    ESTIMATE_CACHE_ENABLED: bool = os.getenv("ESTIMATE_CACHE_ENABLED", "true").lower() == "true"

    # Property oracle
    ORACLE_PROVIDER: str = os.getenv("ORACLE_PROVIDER", "mock")    # mock | http | openai
    ORACLE_BASE_URL: str | None = os.getenv("ORACLE_BASE_URL")
    ORACLE_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("ORACLE_HTTP_TIMEOUT_SECONDS", "30"))

    # LLM
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Workflow
    HANDOFF_TIMEOUT_SECONDS: float = float(os.getenv("HANDOFF_TIMEOUT_SECONDS", "10"))
    DEFAULT_SQUARE_FOOTAGE: float = float(os.getenv("DEFAULT_SQUARE_FOOTAGE", "2000"))
    DEFAULT_BEDROOMS: float = float(os.getenv("DEFAULT_BEDROOMS", "3"))
    DEFAULT_BATHROOMS: float = float(os.getenv("DEFAULT_BATHROOMS", "2"))
    FALLBACK_CHV: int = int(os.getenv("FALLBACK_CHV", "400000"))   # specific property with no value

    # Security
    API_KEY: str | None = os.getenv("API_KEY")
    RATE_LIMIT_RPM: int = int(os.getenv("RATE_LIMIT_RPM", "60"))

    # CORS
    ALLOW_ORIGINS: str = os.getenv("ALLOW_ORIGINS", "*")

    # Cache
    USE_REDIS: bool = os.getenv("USE_REDIS", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Metrics
    PROMETHEUS_ENABLED: bool = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

settings = Settings()
