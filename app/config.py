import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings
from rich.logging import RichHandler


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env."""

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4.1-mini", description="OpenAI model used for frame analysis and refinement.")
    openai_search_model: str = Field(
        "gpt-4o-mini-search-preview", description="Search-capable OpenAI model used for video URL analysis."
    )
    max_tokens: int = Field(5000, description="Max tokens to request from the model.")
    max_frames: int = Field(15, ge=1, description="Upper bound on frames sampled from each video.")
    seconds_per_frame: float = Field(
        2.0, gt=0, description="Base sampling interval in seconds, stretched for long videos."
    )
    jpeg_quality: int = Field(70, ge=1, le=100, description="JPEG quality used when encoding sampled frames.")
    max_upload_mb: int = Field(200, ge=1, description="Largest accepted upload or assembled recording.")
    recording_ttl_seconds: float = Field(
        600.0, gt=0, description="Idle recordings older than this are discarded."
    )
    log_level: str = Field("INFO", description="Root log level.")

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def setup_logging(log_level: str = "INFO") -> None:
    """Route all logging through a single Rich console handler."""
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[rich_handler],
        format="%(message)s",
    )

    for logger_name in ("httpx", "httpcore", "openai", "multipart"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
