"""RunPod serverless handler for the Remotion render orchestrator.

Input JSON:
{
  "job": <RenderJobSpec JSON>,
  "auth_token": "optional override token"
}

Returns JSON with keys:
{
  "job_id": str,
  "size_bytes": int,
  "video_b64": "...",  (if inline=True)
  "inline": bool
}

Outputs larger than MAX_INLINE_BYTES are not returned inline.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict

import runpod

from render_orchestrator import RenderJobSpec, RenderPipelineError, run_render_job
from render_orchestrator.config import get_settings
from render_orchestrator.remotion import RemotionBridge

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

MAX_INLINE_BYTES = int(os.getenv("MAX_INLINE_BYTES", str(25 * 1024 * 1024)))  # 25MB default


def _load_spec(payload: Dict[str, Any]) -> RenderJobSpec:
    spec_raw = payload.get("job")
    if spec_raw is None:
        raise ValueError("missing 'job' field")
    if isinstance(spec_raw, str):
        spec = RenderJobSpec.model_validate_json(spec_raw)
    else:
        spec = RenderJobSpec.model_validate(spec_raw)
    if spec.composition_template is not None:
        raise ValueError("composition_template is not accepted by the render worker")
    return spec


async def handler_async(job: Dict[str, Any]) -> Dict[str, Any]:
    """Core async logic for rendering. Processes job["input"] per RunPod convention."""
    logger.info("Handler received job: %s", job.get("id", "unknown"))
    job_input = job.get("input") or {}  # RunPod can send None

    settings = get_settings()
    expected_token = settings.auth_token
    provided_token = job_input.get("auth_token")
    if expected_token and provided_token != expected_token:
        logger.error("Authentication failed: invalid token")
        raise PermissionError("invalid or missing auth token")

    spec = _load_spec(job_input)
    logger.info("Loaded spec for job_id: %s", spec.job_id)

    with tempfile.TemporaryDirectory(prefix=f"srv_{spec.job_id}_", dir=settings.temp_root) as td:
        output_path = Path(td) / os.path.basename(spec.resolved_output_path())
        logger.info("Starting render to: %s", output_path)

        try:
            final_file = await run_render_job(
                spec,
                output_path,
                collaborator=RemotionBridge(
                    remotion_root=settings.remotion_root,
                    node_binary=settings.node_binary,
                ),
                temp_root=settings.temp_root,
            )
        except RenderPipelineError as exc:
            logger.error("Render failed for job %s: %s", spec.job_id, exc)
            return {"job_id": spec.job_id, "inline": False, "error": str(exc)}

        data = final_file.read_bytes()
        logger.info("Output size: %d bytes", len(data))

        if len(data) <= MAX_INLINE_BYTES:
            return {
                "job_id": spec.job_id,
                "size_bytes": len(data),
                "video_b64": base64.b64encode(data).decode("utf-8"),
                "inline": True,
            }
        return {
            "job_id": spec.job_id,
            "size_bytes": len(data),
            "inline": False,
            "error": f"result too big for inline (> {MAX_INLINE_BYTES} bytes)",
        }


def handler(job: Dict[str, Any]) -> Dict[str, Any]:
    """Sync wrapper matching RunPod docs pattern. Always uses asyncio.run."""
    return asyncio.run(handler_async(job))


if __name__ == "__main__":
    logger.info("Starting RunPod serverless handler...")
    logger.info("RENDER_REMOTION_ROOT: %s", os.getenv("RENDER_REMOTION_ROOT", "not set"))
    runpod.serverless.start({"handler": handler})
