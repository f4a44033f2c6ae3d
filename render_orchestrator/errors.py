"""Exceptions raised by the render pipeline."""

from __future__ import annotations

from typing import Iterable, Optional


class RenderPipelineError(RuntimeError):
    """Base class for every failure that aborts a render job."""


class WorkspaceCreationError(RenderPipelineError):
    pass


class AssetFetchError(RenderPipelineError):
    def __init__(self, url: str, message: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(f"Failed to download {url}: {message}")


class BundleError(RenderPipelineError):
    pass


class CompositionNotFoundError(RenderPipelineError):
    def __init__(self, composition_id: str, available: Iterable[str] = ()) -> None:
        self.composition_id = composition_id
        self.available = list(available)
        listing = ", ".join(self.available) or "none"
        super().__init__(f'Composition "{composition_id}" not found (available: {listing})')


class RenderError(RenderPipelineError):
    pass


class BridgeError(RuntimeError):
    """The Node bridge process exited unsuccessfully."""

    def __init__(self, command: str, returncode: Optional[int], output_tail: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output_tail = output_tail
        detail = f"Remotion {command} failed (exit={returncode})"
        if output_tail:
            detail += f". Recent output:\n{output_tail}"
        super().__init__(detail)
