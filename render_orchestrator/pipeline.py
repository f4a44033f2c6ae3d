"""Render pipeline: workspace, composition, audio, bundle, render, cleanup."""

from __future__ import annotations

import asyncio
import logging
import math
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

import httpx

from .assets import fetch_remote_asset, probe_audio_duration
from .composition import (
    load_composition_source,
    materialize_composition,
    write_config_module,
)
from .errors import (
    AssetFetchError,
    BundleError,
    CompositionNotFoundError,
    RenderError,
    RenderPipelineError,
)
from .models import (
    CompositionInfo,
    RenderJobSpec,
    RenderOptions,
    SubtitleCue,
    expand_output_path,
)
from .remotion import RemotionBridge, RenderCollaborator
from .subtitles import write_subtitle_file
from .workspace import Workspace, create_workspace, remove_workspace

logger = logging.getLogger("render_orchestrator.pipeline")


def select_composition(
    compositions: Iterable[CompositionInfo], composition_id: str
) -> CompositionInfo:
    available = list(compositions)
    for composition in available:
        if composition.id == composition_id:
            return composition
    raise CompositionNotFoundError(composition_id, (c.id for c in available))


class RenderOrchestrator:
    """Drives one render job from configuration to a finished video file."""

    def __init__(
        self,
        collaborator: Optional[RenderCollaborator] = None,
        *,
        temp_root: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        duration_probe: Callable[[Union[str, Path]], float] = probe_audio_duration,
    ) -> None:
        self.collaborator = collaborator or RemotionBridge()
        self.temp_root = temp_root
        self.http_client = http_client
        self.duration_probe = duration_probe

    def prepare_workspace(self, job_id: str = "render") -> Workspace:
        return create_workspace(job_id, self.temp_root)

    def materialize_composition(
        self,
        workspace: Workspace,
        spec: RenderJobSpec,
        composition_source: str,
        subtitles: Sequence[SubtitleCue],
        duration_in_frames: Optional[int] = None,
    ) -> Path:
        return materialize_composition(
            workspace,
            spec,
            composition_source,
            subtitles,
            duration_in_frames=duration_in_frames,
        )

    async def fetch_remote_asset(self, url: str, destination: Path) -> Path:
        logger.info("Downloading audio from %s...", url)
        return await fetch_remote_asset(url, destination, client=self.http_client)

    async def build_bundle(self, entry_point: Path, workspace: Workspace) -> str:
        logger.info("Bundling Remotion project...")
        try:
            return await self.collaborator.bundle(
                entry_point, workspace.bundle_dir, public_dir=workspace.public_dir
            )
        except RenderPipelineError:
            raise
        except Exception as exc:
            raise BundleError(str(exc)) from exc

    async def discover_composition(
        self,
        bundle_location: str,
        composition_id: str,
        options: Optional[RenderOptions] = None,
    ) -> CompositionInfo:
        logger.info("Getting compositions...")
        try:
            compositions = await self.collaborator.discover_compositions(
                bundle_location, options=options or RenderOptions()
            )
        except RenderPipelineError:
            raise
        except Exception as exc:
            raise BundleError(str(exc)) from exc
        return select_composition(compositions, composition_id)

    async def render(
        self,
        composition: CompositionInfo,
        bundle_location: str,
        output_path: Path,
        options: RenderOptions,
        *,
        timeout: Optional[float] = None,
    ) -> Path:
        logger.info("Rendering video... This may take a few minutes.")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self.collaborator.render(
                composition,
                bundle_location,
                output_path,
                options=options,
                timeout=timeout,
            )
        except RenderPipelineError:
            raise
        except Exception as exc:
            raise RenderError(str(exc)) from exc
        if not output_path.exists():
            raise RenderError(f"renderer finished without writing {output_path}")
        return output_path

    def release_workspace(self, workspace: Workspace) -> None:
        remove_workspace(workspace)

    async def _resolve_duration(self, spec: RenderJobSpec, audio_path: Path) -> int:
        if spec.duration_in_frames is not None:
            return spec.duration_in_frames
        try:
            seconds = await asyncio.to_thread(self.duration_probe, audio_path)
        except (OSError, ValueError) as exc:
            raise AssetFetchError(
                spec.audio_url, f"could not read audio duration: {exc}"
            ) from exc
        frames = max(1, math.ceil(seconds * spec.fps))
        logger.info("Derived duration from audio: %.2fs -> %d frames", seconds, frames)
        return frames

    async def run(
        self,
        spec: RenderJobSpec,
        output_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        target = str(output_path) if output_path is not None else spec.output_path
        final_path = Path(expand_output_path(target)).resolve()
        logger.info("Starting video render process for job %s", spec.job_id)

        workspace = self.prepare_workspace(spec.job_id)
        try:
            composition_source = load_composition_source(spec.composition_template)
            entry_point = self.materialize_composition(
                workspace, spec, composition_source, spec.subtitles, spec.duration_in_frames
            )
            audio_path = await self.fetch_remote_asset(
                spec.audio_url, workspace.public_dir / spec.audio_filename
            )
            duration_in_frames = await self._resolve_duration(spec, audio_path)
            if spec.duration_in_frames is None:
                write_config_module(workspace, spec, spec.subtitles, duration_in_frames)

            bundle_location = await self.build_bundle(entry_point, workspace)
            found = await self.discover_composition(
                bundle_location, spec.composition_id, spec.render
            )
            composition = found.model_copy(
                update={
                    "width": spec.width,
                    "height": spec.height,
                    "fps": spec.fps,
                    "duration_in_frames": duration_in_frames,
                }
            )
            await self.render(
                composition,
                bundle_location,
                final_path,
                spec.render,
                timeout=spec.render_timeout,
            )
        finally:
            self.release_workspace(workspace)

        if spec.subtitle_export and spec.subtitles:
            subtitle_path = final_path.with_suffix(f".{spec.subtitle_export}")
            write_subtitle_file(
                spec.subtitles,
                str(subtitle_path),
                spec.subtitle_export,
                width=spec.width,
                height=spec.height,
            )
            logger.info("Wrote subtitles to %s", subtitle_path)

        logger.info("Render complete! Video saved to %s", final_path)
        return final_path


async def run_render_job(
    spec: RenderJobSpec,
    output_path: Optional[Union[str, Path]] = None,
    *,
    collaborator: Optional[RenderCollaborator] = None,
    temp_root: Optional[str] = None,
) -> Path:
    orchestrator = RenderOrchestrator(collaborator, temp_root=temp_root)
    return await orchestrator.run(spec, output_path)
