from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    aws_access_key_id: Optional[str] = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, validation_alias="AWS_SECRET_ACCESS_KEY")
    aws_session_token: Optional[str] = Field(default=None, validation_alias="AWS_SESSION_TOKEN")
    aws_region: str = Field("us-east-1", validation_alias="AWS_REGION")

    bedrock_role_arn: Optional[str] = Field(default=None, validation_alias="BEDROCK_ROLE_ARN")
    image_model_id: str = Field("amazon.nova-canvas-v1:0", validation_alias="IMAGE_MODEL_ID")
    video_model_id: str = Field("amazon.nova-reel-v1:1", validation_alias="VIDEO_MODEL_ID")

    media_bucket: Optional[str] = Field(default=None, validation_alias="MEDIA_BUCKET")
    media_public_base_url: Optional[str] = Field(default=None, validation_alias="MEDIA_PUBLIC_BASE_URL")
    presets_key: str = Field("presets.json", validation_alias="PRESETS_KEY")

    place_index_name: str = Field("banana-weather-places", validation_alias="PLACE_INDEX_NAME")
    default_city: str = Field("San Francisco", validation_alias="DEFAULT_CITY")

    video_poll_interval_seconds: float = Field(5.0, validation_alias="VIDEO_POLL_INTERVAL_SECONDS")
    video_timeout_seconds: Optional[float] = Field(600.0, validation_alias="VIDEO_TIMEOUT_SECONDS")

    frontend_dir: str = Field("frontend/build/web", validation_alias="FRONTEND_DIR")
    app_host: str = Field("0.0.0.0", validation_alias="APP_HOST")
    app_port: int = Field(8080, validation_alias="PORT")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    @field_validator("media_public_base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return value.rstrip("/")

    @field_validator("media_bucket", "bedrock_role_arn", mode="before")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        value = (value or "").strip()
        return value or None

    @field_validator("video_poll_interval_seconds")
    @classmethod
    def non_negative_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("VIDEO_POLL_INTERVAL_SECONDS cannot be negative")
        return value

    @field_validator("video_timeout_seconds")
    @classmethod
    def positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            return None
        return value

    @property
    def media_enabled(self) -> bool:
        return self.media_bucket is not None


@lru_cache()
def get_settings() -> Settings:
    try:
        return Settings()
    except Exception as exc:
        raise RuntimeError("Failed to load application settings. Ensure your .env file is configured.") from exc


settings = get_settings()
