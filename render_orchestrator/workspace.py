"""Temporary workspace handling for a single render job."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import WorkspaceCreationError

logger = logging.getLogger("render_orchestrator.workspace")

PUBLIC_DIRNAME = "public"
BUNDLE_DIRNAME = "bundle"


@dataclass(frozen=True)
class Workspace:
    root: Path

    @property
    def public_dir(self) -> Path:
        return self.root / PUBLIC_DIRNAME

    @property
    def bundle_dir(self) -> Path:
        return self.root / BUNDLE_DIRNAME


def create_workspace(job_id: str, temp_root: Optional[str] = None) -> Workspace:
    root_dir = temp_root or tempfile.gettempdir()
    try:
        path = tempfile.mkdtemp(prefix=f"remotion_{job_id}_", dir=root_dir)
    except OSError as exc:
        raise WorkspaceCreationError(
            f"Could not create workspace under {root_dir}: {exc}"
        ) from exc
    logger.info("Created temporary directory: %s", path)
    return Workspace(root=Path(path))


def remove_workspace(workspace: Workspace) -> None:
    shutil.rmtree(workspace.root, ignore_errors=True)
    if workspace.root.exists():
        logger.warning("Workspace %s could not be fully removed", workspace.root)
    else:
        logger.info("Cleaned up temporary files in %s", workspace.root)
