"""
Application Configuration
Uses pydantic-settings for environment variable management
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "GlowBook"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"  # Front-end base URL
    API_URL: str = "http://localhost:8000"  # Public URL of this API

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    DB_NAME: str = "glowbook"

    # JWT Authentication
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION_USE_SECURE_KEY"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Rate limiting (requests per minute per client IP)
    AUTH_RATE_LIMIT_PER_MINUTE: int = 10
    PUBLIC_RATE_LIMIT_PER_MINUTE: int = 120

    # SendGrid
    SENDGRID_API_KEY: Optional[str] = None
    SENDGRID_FROM_EMAIL: str = "noreply@glowbook.app"
    SENDGRID_FROM_NAME: str = "GlowBook"

    # Twilio
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # Stripe Connect
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_CURRENCY: str = "usd"

    # Marketplace fees
    PLATFORM_FEE_PERCENTAGE: float = 15.0
    STRIPE_FEE_PERCENTAGE: float = 2.9
    STRIPE_FEE_FIXED_CENTS: int = 30

    # AWS S3 (business photos)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_CLOUDFRONT_URL: Optional[str] = None
    MAX_UPLOAD_BYTES: int = 4 * 1024 * 1024
    PRESIGNED_URL_EXPIRE_SECONDS: int = 3600

    # Mapbox geocoding (business coordinates for map search)
    MAPBOX_ACCESS_TOKEN: Optional[str] = None
    GEOCODE_BATCH_DELAY_SECONDS: float = 0.2

    # Booking policy
    SLOT_INTERVAL_MINUTES: int = 30
    CANCELLATION_NOTICE_HOURS: int = 24
    ORDER_DELIVERY_FEE: float = 10.0

    # Customer CRM
    AT_RISK_DAYS: int = 90
    VIP_SPEND_THRESHOLD: float = 1000.0
    REGULAR_VISIT_THRESHOLD: int = 5

    def is_production(self) -> bool:
        """Check if running in production mode"""
        return not self.DEBUG

    def validate_production_settings(self) -> list[str]:
        """Validate that production-critical settings are configured"""
        errors = []
        if self.is_production():
            if self.JWT_SECRET_KEY == "CHANGE_ME_IN_PRODUCTION_USE_SECURE_KEY":
                errors.append("JWT_SECRET_KEY must be changed in production")
            if "*" in self.CORS_ORIGINS:
                errors.append("CORS_ORIGINS should not be '*' in production")
            if not self.STRIPE_SECRET_KEY:
                errors.append("STRIPE_SECRET_KEY is not set, online payments are disabled")
            if self.STRIPE_SECRET_KEY and not self.STRIPE_WEBHOOK_SECRET:
                errors.append("STRIPE_WEBHOOK_SECRET is not set, payment webhooks will be rejected")
            if not self.AWS_S3_BUCKET:
                errors.append("AWS_S3_BUCKET is not set, photo uploads are disabled")
        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
