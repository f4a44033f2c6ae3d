"""FastAPI application exposing the render endpoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from render_orchestrator import (
    AssetFetchError,
    CompositionNotFoundError,
    RenderJobSpec,
    RenderPipelineError,
    run_render_job,
)
from render_orchestrator.config import RuntimeSettings, get_settings
from render_orchestrator.remotion import RemotionBridge

logger = logging.getLogger("orchestrator_service.app")

app = FastAPI(title="Remotion Render Orchestrator", version="0.1.0")

# A process renders one job at a time.
_job_lock = asyncio.Lock()


def _check_auth(request: Request, settings: RuntimeSettings) -> None:
    if not settings.auth_token:
        return
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    provided = auth_header.split(" ", 1)[1].strip()
    if provided != settings.auth_token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid bearer token")


def _status_for(exc: RenderPipelineError) -> int:
    if isinstance(exc, AssetFetchError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, CompositionNotFoundError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/render")
async def render_endpoint(
    spec: RenderJobSpec,
    request: Request,
    background_tasks: BackgroundTasks,
    settings: RuntimeSettings = Depends(get_settings),
):
    _check_auth(request, settings)

    if spec.composition_template is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="composition_template is not accepted by the render service",
        )
    if _job_lock.locked():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="A render job is already running",
            headers={"Retry-After": "30"},
        )

    async with _job_lock:
        return await _render(spec, background_tasks, settings)


async def _render(
    spec: RenderJobSpec,
    background_tasks: BackgroundTasks,
    settings: RuntimeSettings,
) -> StreamingResponse:
    if spec.render_timeout is None and settings.render_timeout is not None:
        spec = spec.model_copy(update={"render_timeout": settings.render_timeout})

    temp_root = Path(settings.temp_root or tempfile.gettempdir())
    work_dir = Path(tempfile.mkdtemp(prefix=f"req_{spec.job_id}_", dir=temp_root))
    output_path = work_dir / os.path.basename(spec.resolved_output_path())

    cleanup_registered = False

    try:
        final_path = await run_render_job(
            spec,
            output_path,
            collaborator=RemotionBridge(
                remotion_root=settings.remotion_root,
                node_binary=settings.node_binary,
            ),
            temp_root=settings.temp_root,
        )

        def _cleanup(path: Path) -> None:
            with contextlib.suppress(Exception):
                shutil.rmtree(path)

        file_like = final_path.open("rb")
        background_tasks.add_task(file_like.close)
        background_tasks.add_task(_cleanup, work_dir)
        cleanup_registered = True
        return StreamingResponse(
            file_like,
            media_type="video/mp4",
            headers={
                "Content-Disposition": f"attachment; filename=\"{final_path.name}\"",
                "X-Render-Job-Id": spec.job_id,
            },
        )

    except RenderPipelineError as exc:
        logger.error("Render job %s failed: %s", spec.job_id, exc)
        raise HTTPException(status_code=_status_for(exc), detail=f"Render failed: {exc}") from exc
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Render failed: {exc}",
        ) from exc
    finally:
        if not cleanup_registered:
            with contextlib.suppress(Exception):
                shutil.rmtree(work_dir)
