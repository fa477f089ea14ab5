# rapid_assessment/core/config.py
from typing import Optional
from pydantic import AnyUrl
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    SECRET_KEY: str = "change-me"  # override in .env / secrets
    LOG_LEVEL: str = "INFO"
    # comma separated list of allowed origins for the browser client
    CORS_ORIGINS: str = "*"

    # Auth
    AUTH_ENABLED: bool = True
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    # PBKDF2 work factor; stored hashes below it are upgraded on login
    PASSWORD_HASH_ITERATIONS: int = 200_000

    # Redis (validation summary cache)
    REDIS_URL: str = "redis://localhost:6379/0"
    VALIDATION_CACHE_TTL: int = 300

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017/rapid_assessment"
    MONGODB_DB: str = "rapid_assessment"

    # LLM
    LLM_API_KEY: Optional[str] = None
    # Adapter selection: 'mock', 'http' or 'bedrock'
    LLM_ADAPTER: str = "mock"
    # HTTP adapter settings
    LLM_HTTP_URL: Optional[AnyUrl] = None
    LLM_TIMEOUT_SEC: int = 60
    LLM_RETRIES: int = 2
    LLM_BACKOFF_FACTOR: float = 0.5
    # fall back to the mock adapter when the configured adapter fails
    LLM_ALLOW_FALLBACK: bool = False

    # AWS Bedrock
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-sonnet-20240229-v1:0"
    # model invoked by POST /api/v1/llm/test
    BEDROCK_TEST_MODEL_ID: str = "anthropic.claude-3-haiku-20240307-v1:0"
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    # Reports
    REPORT_MAX_TOKENS: int = 4000
    REPORT_MAX_RETRIES: int = 3

    # Auto-save
    AUTOSAVE_RETRIES: int = 3
    AUTOSAVE_RETRY_DELAY: float = 1.0

    # Pydantic v2 settings: read from .env file
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

# single shared settings instance
settings = Settings()
