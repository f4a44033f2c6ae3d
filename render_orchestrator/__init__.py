"""Public API for the :mod:`render_orchestrator` package.

Keep imports lightweight at module load time; pull pipeline code lazily.
"""

from __future__ import annotations

from typing import Any

from .errors import (
	AssetFetchError,
	BundleError,
	CompositionNotFoundError,
	RenderError,
	RenderPipelineError,
	WorkspaceCreationError,
)
from .types import RenderJobSpec, SubtitleCue


async def run_render_job(*args: Any, **kwargs: Any):
	"""Lazily import and delegate to the full render pipeline."""

	from .pipeline import run_render_job as _run_render_job

	return await _run_render_job(*args, **kwargs)


__all__ = [
	"AssetFetchError",
	"BundleError",
	"CompositionNotFoundError",
	"RenderError",
	"RenderJobSpec",
	"RenderPipelineError",
	"SubtitleCue",
	"WorkspaceCreationError",
	"run_render_job",
]
