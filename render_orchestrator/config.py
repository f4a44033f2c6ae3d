"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_ENV_KEYS = (
    "RENDER_AUTH_TOKEN",
    "RENDER_TEMP_ROOT",
    "RENDER_NODE_BINARY",
    "RENDER_REMOTION_ROOT",
    "RENDER_TIMEOUT",
    "RENDER_HOST",
    "RENDER_PORT",
    "RENDER_LOG_LEVEL",
)


class RuntimeSettings(BaseModel):
    auth_token: Optional[str] = Field(default=None, alias="RENDER_AUTH_TOKEN")
    temp_root: Optional[str] = Field(default=None, alias="RENDER_TEMP_ROOT")
    node_binary: Optional[str] = Field(default=None, alias="RENDER_NODE_BINARY")
    remotion_root: Optional[str] = Field(default=None, alias="RENDER_REMOTION_ROOT")
    render_timeout: Optional[float] = Field(default=None, alias="RENDER_TIMEOUT")
    host: str = Field(default="0.0.0.0", alias="RENDER_HOST")
    port: int = Field(default=8080, alias="RENDER_PORT")
    log_level: str = Field(default="INFO", alias="RENDER_LOG_LEVEL")

    @field_validator("render_timeout")
    @classmethod
    def _validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        if value <= 0:
            raise ValueError("render_timeout must be > 0")
        return value

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    data = {key: os.getenv(key) for key in _ENV_KEYS if os.getenv(key)}
    return RuntimeSettings(**data)
