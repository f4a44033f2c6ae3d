"""Pydantic models describing render job configuration."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def expand_output_path(path: str, now: datetime | None = None) -> str:
    if "{timestamp}" not in path:
        return path
    moment = now or datetime.now(timezone.utc)
    return path.replace("{timestamp}", moment.strftime("%Y%m%dT%H%M%SZ"))


class SubtitleCue(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: float = Field(ge=0.0)
    end: float = Field(ge=0.0)
    text: str

    @model_validator(mode="after")
    def _validate_bounds(self) -> "SubtitleCue":
        if self.end <= self.start:
            raise ValueError("cue end must be greater than start")
        return self


class CompositionInfo(BaseModel):
    """A renderable composition as reported by the bundle."""

    id: str
    width: int
    height: int
    fps: float
    duration_in_frames: int
    default_props: Dict[str, Any] = Field(default_factory=dict)


class RenderOptions(BaseModel):
    """Options handed through to the rendering engine untouched."""

    model_config = ConfigDict(frozen=True)

    codec: Literal["h264", "h265", "vp8", "vp9", "prores", "gif"] = "h264"
    pixel_format: Optional[str] = None
    crf: Optional[int] = Field(default=None, ge=0, le=63)
    concurrency: Optional[int] = Field(default=None, ge=1)
    chromium_options: Dict[str, Any] = Field(default_factory=dict)
    log_level: Literal["error", "warn", "info", "verbose"] = "info"

    @field_validator("pixel_format")
    @classmethod
    def _normalize_pixel_format(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None


class RenderJobSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str = Field(default="render", min_length=1)
    composition_id: str = Field(min_length=1)
    output_path: str = Field(default="output.mp4", min_length=1)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    fps: int = Field(gt=0)
    duration_in_frames: Optional[int] = Field(default=None, gt=0)
    audio_url: str = Field(min_length=1)
    audio_filename: str = "audio.mp3"
    subtitles: List[SubtitleCue] = Field(default_factory=list)
    subtitle_mode: Literal["inline", "sidecar"] = "inline"
    subtitle_export: Optional[Literal["srt", "ass"]] = None
    composition_template: Optional[str] = None
    render: RenderOptions = Field(default_factory=RenderOptions)
    render_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("audio_filename")
    @classmethod
    def _validate_audio_filename(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("audio_filename must be a bare file name")
        return value

    def resolved_output_path(self, now: datetime | None = None) -> str:
        """Return ``output_path`` with ``{timestamp}`` expanded."""

        return expand_output_path(self.output_path, now)
