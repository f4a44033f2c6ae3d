"""Start the render HTTP service with uvicorn."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from render_orchestrator.config import RuntimeSettings, get_settings

logger = logging.getLogger("orchestrator_service.run")

APP_PATH = "orchestrator_service.app:app"


def build_parser(settings: RuntimeSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve single-job Remotion renders over HTTP")
    parser.add_argument("--host", default=settings.host, help=f"Interface to bind (default: {settings.host}, RENDER_HOST)")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port to listen on (default: {settings.port}, RENDER_PORT)")
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level}, RENDER_LOG_LEVEL)",
    )
    parser.add_argument("--reload", action="store_true", help="Enable autoreload (dev only)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)
    level_name = str(args.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    logger.info(
        "Serving %s on %s:%d (remotion root: %s)",
        APP_PATH,
        args.host,
        args.port,
        settings.remotion_root or "package default",
    )
    # One worker: the app serializes renders per process.
    uvicorn.run(
        APP_PATH,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=level_name.lower(),
        workers=1,
    )


if __name__ == "__main__":
    main()
