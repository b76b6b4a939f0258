from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://rfqhub:rfqhub_dev@db:5432/rfqhub"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # SendGrid
    SENDGRID_API_KEY: str = "mock_sendgrid_key"
    FROM_EMAIL: str = "no-reply@rfqhub.app"

    # Automation webhook (n8n or compatible)
    AUTOMATION_WEBHOOK_URL: str = ""

    # AI Provider (OpenAI-compatible)
    AI_API_KEY: str = "mock_ai_key"
    AI_BASE_URL: str = "https://api.openai.com/v1"
    AI_MODEL: str = "gpt-4o"

    # Outbound timeouts (seconds)
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0
    AI_TIMEOUT_SECONDS: float = 15.0

    # Rate limits
    MARKETPLACE_TIMEZONE: str = "Asia/Kolkata"
    RFQ_DAILY_LIMIT: int = 10
    QUOTE_DAILY_LIMIT: int = 20

    # Supplier matching
    MATCH_POOL_SIZE: int = 200
    MATCH_SHORTLIST_SIZE: int = 15
    MATCH_MIN_SCORED: int = 5

    # Lifecycle
    RFQ_DEFAULT_TTL_DAYS: int = 30
    DEAL_CHECK_DAYS: int = 7
    TRUST_BONUS_ACCEPTED: int = 5
    TRUST_BONUS_COMPLETED: int = 10

    # Orchestration: "inline" runs events on the API event loop, "celery" hands them to workers
    EVENT_QUEUE_BACKEND: str = "inline"

    # App
    APP_ENV: str = "development"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "*"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
