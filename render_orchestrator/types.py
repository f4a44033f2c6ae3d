"""Lightweight export wrappers for render job configuration models."""

from .models import (
    CompositionInfo,
    RenderJobSpec,
    RenderOptions,
    SubtitleCue,
)

__all__ = [
    "CompositionInfo",
    "RenderJobSpec",
    "RenderOptions",
    "SubtitleCue",
]
