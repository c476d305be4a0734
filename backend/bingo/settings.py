"""Client configuration via environment variables."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.dal.paths import split_path


class BingoSettings(BaseSettings):
    model_config = {"env_prefix": "BINGO_"}

    app_id: str = Field(default="bingo", min_length=1)
    # SQLite file shared by local clients; unset keeps the game in memory.
    store_path: str | None = None
    claim_grace_seconds: float = Field(default=3.0, gt=0)
    write_retries: int = Field(default=5, ge=1)
    presence_timeout_seconds: float = Field(default=60.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_dir: str | None = None

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        if len(split_path(v)) != 1:
            raise ValueError("app_id must be a single path segment")
        return v

    @field_validator("store_path")
    @classmethod
    def blank_store_path_means_memory(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_format", mode="before")
    @classmethod
    def lower_log_format(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v
