"""
Configuration management for the render transfer pipeline.
Loads object store endpoints and credentials from environment variables.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from render_transfer.s3.config import DEFAULT_SIGNED_URL_EXPIRATION


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Render output store (Cloudflare R2 or any S3-compatible endpoint)
    R2_ENDPOINT: str
    R2_ACCESS_KEY_ID: str
    R2_SECRET_ACCESS_KEY: str
    R2_BUCKET_NAME: str
    R2_REGION: str = "auto"       # R2 ignores region but SigV4 needs one

    # Managed asset store (audio tracks)
    ASSET_STORAGE_BUCKET: str
    ASSET_STORAGE_ENDPOINT: Optional[str] = None            # None = provider default endpoint
    ASSET_STORAGE_ACCESS_KEY_ID: Optional[str] = None       # None = default credential chain
    ASSET_STORAGE_SECRET_ACCESS_KEY: Optional[str] = None
    ASSET_STORAGE_REGION: Optional[str] = None

    # Signed URL Configuration
    SIGNED_URL_EXPIRATION: int = Field(
        default=DEFAULT_SIGNED_URL_EXPIRATION,
        ge=60,
        le=604800,  # SigV4 presigned URLs cap at 7 days
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
