"""Runtime settings for the hub client."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "HUB_"


class Settings(BaseModel):
    api_base_url: str = "http://127.0.0.1:8080/api"
    request_timeout: float = Field(30.0, gt=0)
    notification_interval: float = Field(300.0, gt=0)
    unread_interval: float = Field(30.0, gt=0)
    log_level: str = "INFO"
    token_file: Path | None = None

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``HUB_*`` variables; unset ones keep their defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)
