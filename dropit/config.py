"""
Configuration and settings for the Dropit service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "text/plain",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "video/mp4",
    "video/webm",
    "audio/mpeg",
    "audio/wav",
    "application/zip",
    "application/x-rar-compressed",
]


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Shared-password gate
    app_password: str = Field(default="default-password")
    # bcrypt hash; takes precedence over the plaintext password when set
    app_password_hash: Optional[str] = Field(default=None)
    jwt_secret: str = Field(default="your-secret-key")
    jwt_algorithm: str = Field(default="HS256")
    token_ttl_seconds: int = Field(default=24 * 60 * 60, ge=1)
    auth_cookie_name: str = Field(default="auth-token")

    # Key-value store (Upstash / Vercel KV REST, or plain Redis)
    kv_rest_api_url: Optional[str] = Field(default=None)
    kv_rest_api_token: Optional[str] = Field(default=None)
    kv_url: Optional[str] = Field(default=None)

    # Managed blob store
    blob_read_write_token: Optional[str] = Field(default=None)
    blob_api_url: str = Field(default="https://blob.vercel-storage.com")

    # S3-compatible storage
    s3_bucket: Optional[str] = Field(default=None)
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Local fallback storage
    uploads_dir: str = Field(default="public/uploads")
    uploads_base_url: str = Field(default="/uploads")

    # Upload and message limits
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )
    upload_prefix: str = Field(default="dropit/")
    upload_list_limit: int = Field(default=50, ge=1)
    max_messages: int = Field(default=100, ge=1)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
