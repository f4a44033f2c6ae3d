"""Write the Remotion entry point and composition source into a workspace."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from .models import RenderJobSpec, SubtitleCue
from .workspace import Workspace

logger = logging.getLogger("render_orchestrator.composition")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_TEMPLATE = TEMPLATES_DIR / "Video.tsx"

ENTRY_FILENAME = "index.ts"
ROOT_FILENAME = "Root.tsx"
SOURCE_FILENAME = "Video.tsx"
CONFIG_FILENAME = "config.ts"
SUBTITLES_FILENAME = "subtitles.json"


def load_composition_source(template: Optional[str] = None) -> str:
    path = Path(template) if template else DEFAULT_TEMPLATE
    return path.read_text(encoding="utf-8")


def _cue_payload(subtitles: Sequence[SubtitleCue]) -> list[dict]:
    return [cue.model_dump() for cue in subtitles]


def build_config_module(
    spec: RenderJobSpec,
    subtitles: Sequence[SubtitleCue],
    duration_in_frames: int,
) -> str:
    """Return the ``config.ts`` module consumed by the composition source."""

    constants = [
        ("COMPOSITION_ID", spec.composition_id),
        ("VIDEO_WIDTH", spec.width),
        ("VIDEO_HEIGHT", spec.height),
        ("VIDEO_FPS", spec.fps),
        ("VIDEO_DURATION_IN_FRAMES", duration_in_frames),
        ("AUDIO_FILE", spec.audio_filename),
    ]
    lines = [f"export const {name} = {json.dumps(value)};" for name, value in constants]

    if spec.subtitle_mode == "sidecar":
        lines.insert(0, f"import subtitleData from './{SUBTITLES_FILENAME}';")
        lines.append("export const SUBTITLES: Array<{start: number; end: number; text: string}> = subtitleData;")
    else:
        cues = json.dumps(_cue_payload(subtitles), indent=2, ensure_ascii=False)
        lines.append(f"export const SUBTITLES: Array<{{start: number; end: number; text: string}}> = {cues};")
    return "\n".join(lines) + "\n"


def materialize_composition(
    workspace: Workspace,
    spec: RenderJobSpec,
    composition_source: str,
    subtitles: Sequence[SubtitleCue],
    *,
    duration_in_frames: Optional[int],
) -> Path:
    """Write the entry files and return the entry point path.

    The composition source is written verbatim; any syntax or semantic
    problems are reported by the bundler. When ``duration_in_frames`` is not
    known yet, ``config.ts`` is left for :func:`write_config_module`.
    """

    root = workspace.root
    workspace.public_dir.mkdir(parents=True, exist_ok=True)

    (root / SOURCE_FILENAME).write_text(composition_source, encoding="utf-8")
    (root / ROOT_FILENAME).write_text(
        (TEMPLATES_DIR / ROOT_FILENAME).read_text(encoding="utf-8"), encoding="utf-8"
    )
    if duration_in_frames is not None:
        write_config_module(workspace, spec, subtitles, duration_in_frames)
    if spec.subtitle_mode == "sidecar":
        (root / SUBTITLES_FILENAME).write_text(
            json.dumps(_cue_payload(subtitles), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    entry_point = root / ENTRY_FILENAME
    entry_point.write_text(
        (TEMPLATES_DIR / ENTRY_FILENAME).read_text(encoding="utf-8"), encoding="utf-8"
    )
    logger.info("Wrote composition entry point: %s", entry_point)
    return entry_point


def write_config_module(
    workspace: Workspace,
    spec: RenderJobSpec,
    subtitles: Sequence[SubtitleCue],
    duration_in_frames: int,
) -> Path:
    path = workspace.root / CONFIG_FILENAME
    path.write_text(build_config_module(spec, subtitles, duration_in_frames), encoding="utf-8")
    return path
