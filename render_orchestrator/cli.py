"""Command line entrypoint for a single render job."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from .config import get_settings
from .errors import RenderPipelineError
from .models import RenderJobSpec
from .pipeline import RenderOrchestrator
from .profiles import DEFAULT_PROFILE, available_profiles, load_job_file, load_profile
from .remotion import RemotionBridge

logger = logging.getLogger("render_orchestrator.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a Remotion composition to MP4")
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--profile",
        default=None,
        help=f"Packaged job profile (default: {DEFAULT_PROFILE}; available: {', '.join(available_profiles())})",
    )
    source.add_argument("--config", default=None, help="Path to a render job JSON file")
    parser.add_argument("--output", default=None, help="Output video path (supports {timestamp})")
    parser.add_argument("--audio-url", default=None, help="Override the audio URL")
    parser.add_argument("--composition-id", default=None, help="Override the composition identifier")
    parser.add_argument("--remotion-root", default=None, help="Directory with Remotion packages installed")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def _load_spec(args: argparse.Namespace) -> RenderJobSpec:
    spec = load_job_file(args.config) if args.config else load_profile(args.profile or DEFAULT_PROFILE)
    overrides = {
        key: value
        for key, value in (
            ("output_path", args.output),
            ("audio_url", args.audio_url),
            ("composition_id", args.composition_id),
        )
        if value
    }
    if overrides:
        spec = RenderJobSpec.model_validate({**spec.model_dump(), **overrides})
    settings = get_settings()
    if spec.render_timeout is None and settings.render_timeout is not None:
        spec = spec.model_copy(update={"render_timeout": settings.render_timeout})
    return spec


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )

    try:
        spec = _load_spec(args)
    except (OSError, KeyError, ValidationError) as exc:
        logger.error("Invalid render configuration: %s", exc)
        return EXIT_CONFIG

    settings = get_settings()
    bridge = RemotionBridge(
        remotion_root=args.remotion_root or settings.remotion_root,
        node_binary=settings.node_binary,
    )
    orchestrator = RenderOrchestrator(bridge, temp_root=settings.temp_root)

    try:
        output = asyncio.run(orchestrator.run(spec))
    except RenderPipelineError as exc:
        logger.error("Error during rendering: %s", exc)
        return EXIT_FAILED
    except Exception as exc:
        logger.error("Unexpected error during rendering: %s", exc, exc_info=True)
        return EXIT_FAILED

    print(output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
