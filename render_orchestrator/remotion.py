"""Remotion collaborator driven through a Node.js bridge script."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .errors import BridgeError
from .models import CompositionInfo, RenderOptions

logger = logging.getLogger("render_orchestrator.remotion")

BRIDGE_SCRIPT = Path(__file__).resolve().parent / "bridge" / "remotion_bridge.mjs"
RESULT_PREFIX = "BRIDGE_RESULT="
_PROGRESS_RE = re.compile(r"RENDER_PROGRESS_PCT=([0-9]+(?:\.[0-9]+)?)")
_TAIL_LINES = 20
_STREAM_LIMIT = 4 * 1024 * 1024


class RenderCollaborator(Protocol):
    """Contract the orchestrator needs from a bundling/rendering engine."""

    async def bundle(self, entry_point: Path, out_dir: Path, *, public_dir: Optional[Path] = None) -> str:
        ...

    async def discover_compositions(
        self, bundle_location: str, *, options: RenderOptions
    ) -> List[CompositionInfo]:
        ...

    async def render(
        self,
        composition: CompositionInfo,
        bundle_location: str,
        output_path: Path,
        *,
        options: RenderOptions,
        timeout: Optional[float] = None,
    ) -> None:
        ...


def _resolve_node_binary(override: Optional[str] = None) -> str:
    if override:
        return override.strip().strip('"')
    env_node = os.environ.get("RENDER_NODE_BINARY")
    if env_node:
        return env_node.strip().strip('"')
    return shutil.which("node") or "node"


class RemotionBridge:
    """Runs ``remotion_bridge.mjs`` commands and decodes their JSON result."""

    def __init__(
        self,
        remotion_root: Optional[str] = None,
        node_binary: Optional[str] = None,
        script: Path = BRIDGE_SCRIPT,
    ) -> None:
        self.remotion_root = Path(
            remotion_root or os.environ.get("RENDER_REMOTION_ROOT") or os.getcwd()
        ).resolve()
        self.node_binary = _resolve_node_binary(node_binary)
        self.script = script

    def _command_line(self, command: str, request_path: str) -> List[str]:
        return [self.node_binary, str(self.script), command, request_path]

    async def _invoke(
        self,
        command: str,
        request: Dict[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        fd, request_path = tempfile.mkstemp(prefix=f"bridge_{command}_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(request, handle)

            env = dict(os.environ)
            env["REMOTION_ROOT"] = str(self.remotion_root)
            try:
                process = await asyncio.create_subprocess_exec(
                    *self._command_line(command, request_path),
                    cwd=str(self.remotion_root),
                    env=env,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    limit=_STREAM_LIMIT,
                )
            except OSError as exc:
                raise BridgeError(command, None, f"could not start {self.node_binary}: {exc}") from exc

            recent: List[str] = []
            result: Optional[Dict[str, Any]] = None

            async def _consume() -> None:
                nonlocal result
                assert process.stdout is not None
                async for raw in process.stdout:
                    line = raw.decode("utf-8", errors="replace").strip()
                    if not line:
                        continue
                    if line.startswith(RESULT_PREFIX):
                        try:
                            result = json.loads(line[len(RESULT_PREFIX):])
                        except ValueError:
                            recent.append(line)
                        continue
                    recent.append(line)
                    if len(recent) > _TAIL_LINES * 2:
                        recent.pop(0)
                    match = _PROGRESS_RE.search(line)
                    if match:
                        logger.info("Render progress: %s%%", match.group(1))
                        continue
                    logger.debug("[remotion] %s", line)
                await process.wait()

            try:
                await asyncio.wait_for(_consume(), timeout=timeout)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
                raise BridgeError(
                    command,
                    process.returncode,
                    f"timed out after {timeout}s\n" + "\n".join(recent[-_TAIL_LINES:]),
                ) from None

            if process.returncode != 0 or result is None:
                raise BridgeError(command, process.returncode, "\n".join(recent[-_TAIL_LINES:]))
            return result
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.remove(request_path)

    async def bundle(self, entry_point: Path, out_dir: Path, *, public_dir: Optional[Path] = None) -> str:
        payload = await self._invoke(
            "bundle",
            {
                "entry_point": str(entry_point),
                "out_dir": str(out_dir),
                "public_dir": str(public_dir) if public_dir else None,
            },
        )
        return str(payload["location"])

    async def discover_compositions(
        self, bundle_location: str, *, options: RenderOptions
    ) -> List[CompositionInfo]:
        payload = await self._invoke(
            "compositions",
            {
                "serve_url": bundle_location,
                "chromium_options": options.chromium_options,
                "log_level": options.log_level,
            },
        )
        return [CompositionInfo.model_validate(item) for item in payload.get("compositions", [])]

    async def render(
        self,
        composition: CompositionInfo,
        bundle_location: str,
        output_path: Path,
        *,
        options: RenderOptions,
        timeout: Optional[float] = None,
    ) -> None:
        await self._invoke(
            "render",
            {
                "serve_url": bundle_location,
                "composition": composition.model_dump(),
                "output_location": str(output_path),
                "codec": options.codec,
                "pixel_format": options.pixel_format,
                "crf": options.crf,
                "concurrency": options.concurrency,
                "chromium_options": options.chromium_options,
                "log_level": options.log_level,
            },
            timeout=timeout,
        )
