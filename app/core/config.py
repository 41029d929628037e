from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Khidmap API"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/v1"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database (required)
    DATABASE_URL: str

    # JWT (required)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # Account tokens
    RESET_TOKEN_EXPIRE_MINUTES: int = 60
    MIN_PASSWORD_LENGTH: int = 6
    ADMIN_EMAIL: str = "admin@khidmap.com"
    FRONTEND_URL: str = "http://localhost:3000"

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "no-reply@khidmap.com"

    # Platform
    PLATFORM_COMMISSION_PERCENT: int = 5
    PLATFORM_PAYEE_NAME: str = "Khidmap"
    GRACE_PERIOD_MIN_DAYS: int = 1
    GRACE_PERIOD_MAX_DAYS: int = 3
    CALL_RING_TIMEOUT_SECONDS: int = 30
    CALL_SWEEP_INTERVAL_SECONDS: int = 10

    # AI
    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "claude-sonnet-4-5"
    LLM_MAX_TOKENS: int = 800

    # Upload
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 50 * 1024 * 1024  # 50MB
    MAX_PAYMENT_PROOF_SIZE: int = 10 * 1024 * 1024  # 10MB

    # CORS
    ALLOWED_ORIGINS: str = "*"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def cors_origins(self) -> list[str]:
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
