"""Duel server configuration via environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class GolfServerSettings(BaseSettings):
    model_config = {"env_prefix": "GOLF_"}

    host: str = Field(default="127.0.0.1", min_length=1)
    port: int = Field(default=42069, ge=0, le=65535)  # 0 lets the OS pick a free port
    max_capacity: int = Field(default=100, ge=1)
    max_payload_bytes: int = Field(default=64 * 1024, ge=1)
    log_dir: str | None = Field(default=None, min_length=1)

    ready_timeout_seconds: float = Field(default=5, gt=0)
    start_ack_timeout_seconds: float = Field(default=5, gt=0)
    play_timeout_seconds: float = Field(default=30, gt=0)
