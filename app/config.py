from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Info
    PROJECT_NAME: str = "Immigration Back Office API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = Field(default="development", description="Environment: development, staging, production, test")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/backoffice.db",
        description="Database URL (SQLite or PostgreSQL)"
    )
    DB_POOL_SIZE: int = Field(default=5, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Database max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time in seconds")
    DB_AUTO_CREATE: bool = Field(default=False, description="Create missing tables on startup (development only)")

    # Security - JWT
    SECRET_KEY: str = Field(..., description="Secret key for JWT token generation")
    ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, description="JWT token expiration in minutes")

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters')
        return v

    # Security - CORS
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:8083", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # File Storage
    UPLOAD_DIR: str = Field(default="./uploads", description="Directory for file uploads")
    MAX_FILE_SIZE: int = Field(default=10485760, description="Max file size in bytes (default 10MB)")
    MAX_FILES_PER_UPLOAD: int = Field(default=10, description="Max number of files in one document upload")
    MAX_REQUEST_SIZE: int = Field(default=104857600, description="Max request body size in bytes (default 100MB)")
    ALLOWED_FILE_TYPES: List[str] = Field(
        default=[
            "application/pdf",
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/gif",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ],
        description="Allowed MIME types for file uploads"
    )

    # Access Links
    LINK_TOKEN_BYTES: int = Field(default=32, description="Random bytes behind each access link token")
    DOCUMENT_LINK_EXPIRE_DAYS: int = Field(default=7, description="Default document link lifetime in days")
    DOCUMENT_LINK_MAX_UPLOADS: int = Field(default=10, description="Default number of uploads per document link")
    PAYMENT_LINK_EXPIRE_DAYS: int = Field(default=7, description="Default payment link lifetime in days")
    PAYMENT_DEFAULT_CURRENCY: str = Field(default="MAD", description="Currency used when none is given")
    FRONTEND_URL: str = Field(default="http://localhost:8083", description="Public site base URL used to build client links")

    # Bank details snapshot copied onto payment links
    BANK_NAME: str = Field(default="Attijariwafa Bank")
    BANK_ACCOUNT_NAME: str = Field(default="Connect Job World")
    BANK_ACCOUNT_NUMBER: str = Field(default="007 810 0002 5810 0000 1234 56")
    BANK_RIB: str = Field(default="007 810 0002581000001234 56")
    BANK_SWIFT: str = Field(default="BCMAMAMC")

    # External APIs - WhatsApp messaging
    WHATSAPP_API_URL: str = Field(default="", description="WhatsApp gateway base URL (empty disables sending)")
    WHATSAPP_API_TOKEN: str = Field(default="", description="WhatsApp gateway bearer token")
    WHATSAPP_API_TIMEOUT: int = Field(default=15, description="WhatsApp gateway timeout in seconds")
    WHATSAPP_API_RETRY_ATTEMPTS: int = Field(default=3, description="WhatsApp gateway retry attempts")
    WHATSAPP_DEFAULT_COUNTRY_CODE: str = Field(default="212", description="Country code for local phone numbers")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: str = Field(default="./logs", description="Directory for log files")
    LOG_RETENTION_DAYS: int = Field(default=30, description="Number of days to keep log files")
    LOG_ENABLE_REQUEST_LOGGING: bool = Field(default=True, description="Enable HTTP request/response logging")

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT: str = Field(default="100/minute", description="Default rate limit")
    RATE_LIMIT_AUTH: str = Field(default="5/minute", description="Rate limit for login")
    RATE_LIMIT_SUBMISSIONS: str = Field(default="10/minute", description="Rate limit for public submissions and tracking")
    RATE_LIMIT_PUBLIC_LINKS: str = Field(default="30/minute", description="Rate limit for token validation and uploads")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="Rate limit storage URI")

    # CSRF Protection
    CSRF_ENABLED: bool = Field(default=True, description="Enable CSRF protection")

    # Circuit Breaker
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(default=5, description="Failures before circuit opens")
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(default=30, description="Seconds before attempting reset")
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS: int = Field(default=3, description="Max calls in half-open state")

    def get_log_level(self) -> str:
        """Get log level based on environment."""
        if self.ENVIRONMENT.lower() in ["development", "dev", "test"]:
            return "DEBUG"
        return self.LOG_LEVEL.upper()

    def get_bank_details(self) -> dict:
        """Default bank account snapshot for new payment links."""
        return {
            "bank_name": self.BANK_NAME,
            "account_name": self.BANK_ACCOUNT_NAME,
            "account_number": self.BANK_ACCOUNT_NUMBER,
            "rib": self.BANK_RIB,
            "swift": self.BANK_SWIFT,
        }


settings = Settings()
