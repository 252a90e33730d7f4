import logging
from typing import Annotated, List

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="Skill Forge API")
    app_description: str = Field(default="Online learning marketplace backend")
    app_version: str = Field(default="1.0.0")
    app_url: str = Field(default="http://localhost:8000")
    frontend_url: str = Field(default="http://localhost:3000")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)

    # Security Settings
    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:3000"])
    password_hash_rounds: int = Field(default=12)

    # JWT Configuration
    jwt_access_secret: str = Field(default="change-me-access-secret")
    jwt_refresh_secret: str = Field(default="change-me-refresh-secret")
    jwt_algorithm: str = Field(default="HS256")
    jwt_access_expiration_minutes: int = Field(default=15)
    jwt_refresh_expiration_days: int = Field(default=7)
    jwt_issuer: str = Field(default="skillforge")

    # Logging
    log_file: str = Field(default="logs/app.log")

    # Pagination
    default_page_size: int = Field(default=10)
    course_page_size: int = Field(default=12)
    max_page_size: int = Field(default=100)

    # Admin Defaults
    admin_default_first_name: str = Field(default="Super")
    admin_default_last_name: str = Field(default="Admin")
    admin_default_email: str = Field(default="admin@skillforge.com")
    admin_default_password: str = Field(default="Admin@123")
    seed_demo_data: bool = Field(default=False)

    # Courses
    default_currency: str = Field(default="USD")
    default_course_thumbnail: str = Field(
        default="https://images.unsplash.com/photo-1516321318423-f06f85e504b3?w=400"
    )

    # Payment (Stripe)
    stripe_secret_key: str = Field(default="")
    stripe_webhook_secret: str = Field(default="")
    payment_timeout: float = Field(default=10.0)

    # Object Storage (S3)
    aws_access_key_id: str = Field(default="")
    aws_secret_access_key: str = Field(default="")
    aws_region: str = Field(default="us-east-1")
    s3_bucket_name: str = Field(default="skillforge-uploads")
    storage_timeout: float = Field(default=10.0)
    storage_signed_url_expiry: int = Field(default=3600)
    max_upload_size_mb: int = Field(default=5)
    allowed_image_types: Annotated[List[str], NoDecode] = Field(
        default=["image/jpeg", "image/png", "image/webp"]
    )

    # AI Service
    ai_api_key: str = Field(default="")
    ai_api_endpoint: str = Field(default="")
    ai_model: str = Field(default="gpt-3.5-turbo")
    ai_timeout: float = Field(default=30.0)
    ai_cost_per_1k_tokens: float = Field(default=0.002)
    ai_chat_history_size: int = Field(default=50)

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_default: str = Field(default="100/15minutes")
    rate_limit_storage_uri: str = Field(default="memory://")

    # Redis
    redis_enabled: bool = Field(default=False)
    redis_url: str = Field(default="redis://localhost:6379")

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    @field_validator("allowed_image_types", mode="before")
    def validate_image_types(cls, v):
        return cls._parse_csv(v, ["image/jpeg", "image/png", "image/webp"])

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        raise


settings = load_settings()
