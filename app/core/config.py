# app/core/config.py - Centralized settings management using Pydantic
from pydantic import Field, field_validator, EmailStr
from pydantic_settings import BaseSettings
from typing import List, Optional
from decimal import Decimal

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
]

class Settings(BaseSettings):
    """Application settings with validation and type safety"""

    # Application Environment
    ENV: str = Field(default="dev", description="Environment: dev, test, staging, prod")
    API_TITLE: str = Field(default="Campus Management API", description="API title")
    API_VERSION: str = Field(default="1.0.0", description="API version")

    # Database Configuration
    DATABASE_URL: str = Field(..., description="Database connection URL")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100, description="Connection pool size")
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0, le=100, description="Max overflow connections")
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300, description="Pool timeout in seconds")
    DATABASE_POOL_RECYCLE: int = Field(default=3600, ge=300, description="Pool recycle time in seconds")

    # JWT Configuration
    JWT_SECRET: str = Field(..., min_length=32, description="JWT signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, ge=1, le=10080, description="Access token expiry")
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1, le=365, description="Refresh session expiry")
    JWT_ISSUER: str = Field(default="campus-api", description="JWT issuer")
    JWT_AUDIENCE: str = Field(default="campus-api-users", description="JWT audience")

    # CORS Configuration
    CORS_ORIGINS: List[str] = Field(default=DEFAULT_CORS_ORIGINS, description="CORS allowed origins")
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True, description="Allow CORS credentials")

    # Email Configuration (SMTP)
    SMTP_HOST: Optional[str] = Field(default=None, description="SMTP server host")
    SMTP_PORT: int = Field(default=587, ge=1, le=65535, description="SMTP server port")
    SMTP_USER: Optional[str] = Field(default=None, description="SMTP username")
    SMTP_PASSWORD: Optional[str] = Field(default=None, description="SMTP password")
    SMTP_FROM_EMAIL: Optional[EmailStr] = Field(default=None, description="From email address")
    SMTP_FROM_NAME: str = Field(default="Campus Office", description="From name")
    SMTP_USE_TLS: bool = Field(default=True, description="Use TLS for SMTP")

    # SMS Gateway Configuration
    SMS_API_URL: Optional[str] = Field(default=None, description="SMS gateway endpoint")
    SMS_API_KEY: Optional[str] = Field(default=None, description="SMS gateway API key")
    SMS_SENDER_ID: str = Field(default="CAMPUS", description="SMS sender ID")
    SMS_DEFAULT_COUNTRY_CODE: str = Field(default="252", description="Country code for local numbers")
    SMS_TIMEOUT_SECONDS: int = Field(default=10, ge=1, le=120, description="SMS gateway timeout")

    # Password Reset Configuration
    RESET_TOKEN_EXPIRE_HOURS: int = Field(default=1, ge=1, le=168, description="Reset token expiry hours")
    RESET_TOKEN_LENGTH: int = Field(default=32, ge=16, le=64, description="Reset token length")
    MAX_RESET_ATTEMPTS: int = Field(default=3, ge=1, le=10, description="Max active reset tokens per user")
    PASSWORD_RESET_URL: str = Field(
        default="http://localhost:5173/reset-password",
        description="Front-end page that accepts reset tokens"
    )

    # Security Configuration
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=15, description="BCrypt rounds")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Cache Configuration (Redis)
    CACHE_ENABLED: bool = Field(default=False, description="Enable Redis caching")
    REDIS_URL: Optional[str] = Field(default=None, description="Redis connection URL")
    CACHE_KEY_PREFIX: str = Field(default="campus:", description="Prefix applied to every cache key")
    CACHE_DEFAULT_TTL: int = Field(default=300, ge=1, description="Default cache TTL in seconds")

    # Academic policy
    STUDENT_NUMBER_PREFIX: str = Field(default="CU", description="Prefix for generated student numbers")
    ATTENDANCE_THRESHOLD: int = Field(default=75, ge=0, le=100, description="Minimum attendance percentage")

    # Finance policy
    INVOICE_DUE_DAYS: int = Field(default=30, ge=1, le=365, description="Default invoice due period")
    PAYMENT_VOID_WINDOW_DAYS: int = Field(default=7, ge=0, le=90, description="Days a payment stays voidable")
    CURRENCY: str = Field(default="USD", description="Default currency for new campuses")

    # Library policy
    LIBRARY_STUDENT_MAX_BOOKS: int = Field(default=5, ge=1, description="Max concurrent loans for students")
    LIBRARY_EMPLOYEE_MAX_BOOKS: int = Field(default=10, ge=1, description="Max concurrent loans for employees")
    LIBRARY_LOAN_PERIOD_DAYS: int = Field(default=14, ge=1, description="Loan period in days")
    LIBRARY_MAX_RENEWALS: int = Field(default=2, ge=0, description="Max renewals per loan")
    LIBRARY_LATE_FEE_PER_DAY: Decimal = Field(default=Decimal("0.50"), ge=0, description="Late fee per day")
    LIBRARY_GRACE_PERIOD_DAYS: int = Field(default=1, ge=0, description="Days late before fees apply")
    LIBRARY_MAX_UNPAID_FINES: Decimal = Field(default=Decimal("10.00"), ge=0, description="Unpaid fines that block borrowing")

    # Feature Flags
    ENABLE_REGISTRATION: bool = Field(default=True, description="Allow new user registration")
    ENABLE_PASSWORD_RESET: bool = Field(default=True, description="Enable password reset")

    # Development Settings
    DEV_LOG_SQL: bool = Field(default=False, description="Log SQL queries in development")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra environment variables

    @field_validator("ENV")
    @classmethod
    def validate_environment(cls, v):
        allowed_envs = ["dev", "development", "test", "staging", "prod", "production"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENV must be one of: {allowed_envs}")
        return v.lower()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v):
        if v == "change_me_now":
            raise ValueError("JWT_SECRET must be changed from the placeholder value")
        if len(v) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        allowed_prefixes = (
            "postgresql://",
            "postgresql+psycopg://",
            "postgresql+psycopg2://",
            "sqlite://",
        )
        if not v.startswith(allowed_prefixes):
            raise ValueError("DATABASE_URL must be a postgresql, postgresql+psycopg or sqlite connection string")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            # Handle comma-separated string
            if v.strip():
                return [origin.strip() for origin in v.split(",") if origin.strip()]
            return list(DEFAULT_CORS_ORIGINS)
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENV in ["dev", "development"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENV in ["prod", "production"]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def get_cors_config(self) -> dict:
        """Get CORS configuration for FastAPI"""
        return {
            "allow_origins": self.CORS_ORIGINS,
            "allow_credentials": self.CORS_ALLOW_CREDENTIALS,
            "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "Accept", "Origin", "X-Campus-ID"],
        }

settings = Settings()

__all__ = ["settings", "Settings"]
