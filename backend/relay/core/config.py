"""Locket relay configuration (upstream endpoints, media limits, ffmpeg)."""

from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from relay.core.paths import PROJECT_ROOT, get_data_path

# Load .env file into environment variables
env_path = PROJECT_ROOT / ".env"
load_dotenv(env_path)


class Settings(BaseSettings):
    """Relay configuration with fail-loud validation at the call site."""

    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    # Upstream identity + API endpoints
    locket_api_key: str | None = Field(default=None)
    login_url: str = Field(
        default="https://www.googleapis.com/identitytoolkit/v3/relyingparty/verifyPassword"
    )
    create_post_url: str = Field(default="https://api.locketcamera.com/postMomentV2")

    # Firebase Storage (resumable upload protocol)
    storage_base_url: str = Field(default="https://firebasestorage.googleapis.com")
    image_bucket: str = Field(default="locket-img")
    video_bucket: str = Field(default="locket-video")

    # Passphrase shared with the frontend for credential encryption (empty = plaintext)
    login_secret_key: str = Field(default="")

    # Media limits
    upload_dir: str = Field(default=str(get_data_path("uploads")))
    max_video_bytes: int = Field(default=10 * 1024 * 1024)
    max_request_bytes: int = Field(default=60 * 1024 * 1024)
    thumbnail_max_width: int = Field(default=720)
    thumbnail_quality: int = Field(default=90)
    webp_quality: int = Field(default=90)

    # ffmpeg
    ffmpeg_path: str = Field(default="ffmpeg")
    ffprobe_path: str = Field(default="ffprobe")
    ffmpeg_timeout_s: int = Field(default=120)
    check_ffmpeg_on_startup: bool = Field(default=True)

    # HTTP
    http_timeout_s: float = Field(default=30.0)
    upload_timeout_s: float = Field(default=180.0)
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"]
    )
    rate_limit_enabled: bool = Field(default=True)

    # Logging
    log_file: str = Field(default=str(get_data_path("logs.txt")))


settings = Settings()
