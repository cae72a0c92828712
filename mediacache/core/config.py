"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "Drive Media Cache"
    version: str = "0.1.0"

    # CORS Settings
    cors_origins: list[str] = ["*"]  # Default to allow all in development
    cors_allow_credentials: bool = False

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Google Drive Settings
    GOOGLE_SERVICE_ACCOUNT_JSON: str | None = None
    DRIVE_QUERY: str = "(mimeType contains 'image/' or mimeType = 'video/mp4')"
    DRIVE_UPLOAD_FOLDER_ID: str | None = None

    # Listing Settings
    LISTING_TTL_SECONDS: float = Field(default=600.0, ge=0)  # 10 minutes

    # Reconciliation Settings
    RECONCILE_ENABLED: bool = True
    RECONCILE_INTERVAL_SECONDS: float = Field(default=5.0, gt=0)
    RECONCILE_FORCE_REFRESH: bool = False
    PIPELINE_CONCURRENCY: int = Field(default=5, ge=1)

    # Remote fetch retry
    FETCH_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    FETCH_RETRY_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    # Image transcoding
    IMAGE_RESIZE_WIDTH: int | None = Field(default=1920, gt=0)
    IMAGE_RESIZE_HEIGHT: int | None = Field(default=1080, gt=0)
    IMAGE_JPEG_QUALITY: int = Field(default=80, ge=1, le=100)
    IMAGE_RAW_MIME_TYPES: list[str] = Field(
        default_factory=list,
        description="Image mime types served as stored, without resizing",
    )

    # Video transcoding (disabled unless a target box is configured)
    VIDEO_TARGET_WIDTH: int | None = Field(default=None, gt=0)
    VIDEO_TARGET_HEIGHT: int | None = Field(default=None, gt=0)
    VIDEO_PRESET: str = "veryfast"
    VIDEO_CRF: int = Field(default=23, ge=0, le=51)
    FFMPEG_BINARY: str = "ffmpeg"
    TRANSCODE_TMP_DIR: str | None = None

    # Range requests
    RANGE_CHUNK_SIZE: int = Field(default=10**6, gt=0)  # 1MB

    # Remote-side HEIC conversion
    REMOTE_CONVERT_HEIC: bool = False

    # Settings blob served at /settings
    SETTINGS_FILE: str = "settings.json"

    # Keep-alive ping
    KEEPALIVE_URL: str | None = None
    KEEPALIVE_INTERVAL_SECONDS: float = Field(default=45.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def validate_origins(self) -> "Settings":
        """Validate CORS origins."""
        if self.cors_origins == ["*"]:
            self.cors_origins = [
                "http://localhost",
                "http://localhost:8000",
                "http://localhost:3000",
            ]
        return self

    @model_validator(mode="after")
    def validate_resize_boxes(self) -> "Settings":
        """Reject resize boxes with only one dimension set."""
        if (self.IMAGE_RESIZE_WIDTH is None) != (self.IMAGE_RESIZE_HEIGHT is None):
            raise ValueError(
                "IMAGE_RESIZE_WIDTH and IMAGE_RESIZE_HEIGHT must be set together"
            )
        if (self.VIDEO_TARGET_WIDTH is None) != (self.VIDEO_TARGET_HEIGHT is None):
            raise ValueError(
                "VIDEO_TARGET_WIDTH and VIDEO_TARGET_HEIGHT must be set together"
            )
        return self

    @property
    def image_resize_box(self) -> tuple[int, int] | None:
        """Target box for image resizing, or None when disabled."""
        if self.IMAGE_RESIZE_WIDTH is None or self.IMAGE_RESIZE_HEIGHT is None:
            return None
        return (self.IMAGE_RESIZE_WIDTH, self.IMAGE_RESIZE_HEIGHT)

    @property
    def video_target_box(self) -> tuple[int, int] | None:
        """Target box for video re-encoding, or None when disabled."""
        if self.VIDEO_TARGET_WIDTH is None or self.VIDEO_TARGET_HEIGHT is None:
            return None
        return (self.VIDEO_TARGET_WIDTH, self.VIDEO_TARGET_HEIGHT)


# Create settings instance
settings = Settings()
