from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional

import httpx
import pytest

from render_orchestrator import pipeline
from render_orchestrator.errors import (
    AssetFetchError,
    BridgeError,
    BundleError,
    CompositionNotFoundError,
    RenderError,
    WorkspaceCreationError,
)
from render_orchestrator.models import CompositionInfo, RenderJobSpec, RenderOptions

AUDIO_URL = "https://media.example.test/narration.mp3"
AUDIO_BYTES = b"ID3" + b"\x00" * 2048


def _info(comp_id: str) -> CompositionInfo:
    return CompositionInfo(id=comp_id, width=1920, height=1080, fps=30, duration_in_frames=90)


class FakeCollaborator:
    def __init__(
        self,
        compositions: Optional[List[CompositionInfo]] = None,
        *,
        fail_on: Optional[str] = None,
    ) -> None:
        self.compositions = compositions if compositions is not None else [_info("EducationalVideo")]
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.rendered: Optional[CompositionInfo] = None
        self.render_options: Optional[RenderOptions] = None
        self.render_timeout: Optional[float] = None
        self.entry_snapshot: List[str] = []

    async def bundle(self, entry_point: Path, out_dir: Path, *, public_dir: Optional[Path] = None) -> str:
        self.calls.append("bundle")
        self.entry_snapshot = sorted(p.name for p in entry_point.parent.iterdir())
        if self.fail_on == "bundle":
            raise BridgeError("bundle", 1, "SyntaxError: Unexpected token")
        return str(out_dir)

    async def discover_compositions(self, bundle_location: str, *, options: RenderOptions):
        self.calls.append("discover")
        if self.fail_on == "discover":
            raise BridgeError("compositions", 1, "browser crashed")
        return list(self.compositions)

    async def render(self, composition, bundle_location, output_path, *, options, timeout=None):
        self.calls.append("render")
        self.rendered = composition
        self.render_options = options
        self.render_timeout = timeout
        if self.fail_on == "render":
            raise BridgeError("render", 1, "ffmpeg exited with code 1")
        Path(output_path).write_bytes(b"MP4")


class CountingOrchestrator(pipeline.RenderOrchestrator):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.released: List[Path] = []

    def release_workspace(self, workspace) -> None:
        self.released.append(workspace.root)
        super().release_workspace(workspace)


def _audio_client(status: int = 200, body: bytes = AUDIO_BYTES) -> httpx.AsyncClient:
    def _handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == AUDIO_URL
        return httpx.Response(status, content=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(_handler))


def _spec(tmp_path: Path, **overrides) -> RenderJobSpec:
    data = {
        "job_id": "job-1",
        "composition_id": "EducationalVideo",
        "output_path": str(tmp_path / "out" / "video.mp4"),
        "width": 1280,
        "height": 720,
        "fps": 30,
        "duration_in_frames": 300,
        "audio_url": AUDIO_URL,
        "subtitles": [{"start": 0.5, "end": 2.0, "text": "Hello"}],
        "render": {"codec": "h264", "crf": 18, "pixel_format": "yuv420p", "concurrency": 2},
    }
    data.update(overrides)
    return RenderJobSpec.model_validate(data)


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.mark.asyncio
async def test_successful_job_writes_output_and_removes_workspace(tmp_path: Path, temp_root: Path):
    collaborator = FakeCollaborator()
    orchestrator = CountingOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client()
    )
    spec = _spec(tmp_path)

    result = await orchestrator.run(spec)

    assert result == Path(spec.output_path).resolve()
    assert result.read_bytes() == b"MP4"
    assert collaborator.calls == ["bundle", "discover", "render"]
    assert "index.ts" in collaborator.entry_snapshot
    assert "config.ts" in collaborator.entry_snapshot
    assert len(orchestrator.released) == 1
    assert not orchestrator.released[0].exists()
    assert list(temp_root.iterdir()) == []


@pytest.mark.asyncio
async def test_render_receives_job_dimensions_and_options(tmp_path: Path, temp_root: Path):
    collaborator = FakeCollaborator()
    orchestrator = pipeline.RenderOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client()
    )

    await orchestrator.run(_spec(tmp_path, render_timeout=45))

    rendered = collaborator.rendered
    assert rendered is not None
    assert (rendered.width, rendered.height, rendered.fps) == (1280, 720, 30)
    assert rendered.duration_in_frames == 300
    assert collaborator.render_options.crf == 18
    assert collaborator.render_options.pixel_format == "yuv420p"
    assert collaborator.render_options.concurrency == 2
    assert collaborator.render_timeout == 45


@pytest.mark.asyncio
async def test_missing_audio_aborts_before_bundle(tmp_path: Path, temp_root: Path):
    collaborator = FakeCollaborator()
    orchestrator = CountingOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client(status=404, body=b"nope")
    )
    spec = _spec(tmp_path)

    with pytest.raises(AssetFetchError) as excinfo:
        await orchestrator.run(spec)

    assert excinfo.value.status_code == 404
    assert "404" in str(excinfo.value)
    assert collaborator.calls == []
    assert len(orchestrator.released) == 1
    assert list(temp_root.iterdir()) == []
    assert not Path(spec.output_path).exists()


@pytest.mark.asyncio
async def test_unknown_composition_skips_render(tmp_path: Path, temp_root: Path):
    collaborator = FakeCollaborator([_info("Intro"), _info("Outro")])
    orchestrator = CountingOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client()
    )

    with pytest.raises(CompositionNotFoundError) as excinfo:
        await orchestrator.run(_spec(tmp_path))

    assert excinfo.value.composition_id == "EducationalVideo"
    assert excinfo.value.available == ["Intro", "Outro"]
    assert "render" not in collaborator.calls
    assert len(orchestrator.released) == 1
    assert list(temp_root.iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("fail_on", "expected", "calls"),
    [
        ("bundle", BundleError, ["bundle"]),
        ("discover", BundleError, ["bundle", "discover"]),
        ("render", RenderError, ["bundle", "discover", "render"]),
    ],
)
async def test_collaborator_failures_release_workspace_once(
    tmp_path: Path, temp_root: Path, fail_on, expected, calls
):
    collaborator = FakeCollaborator(fail_on=fail_on)
    orchestrator = CountingOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client()
    )

    with pytest.raises(expected):
        await orchestrator.run(_spec(tmp_path))

    assert collaborator.calls == calls
    assert len(orchestrator.released) == 1
    assert list(temp_root.iterdir()) == []


@pytest.mark.asyncio
async def test_materialize_failure_releases_workspace(tmp_path: Path, temp_root: Path):
    collaborator = FakeCollaborator()
    orchestrator = CountingOrchestrator(
        collaborator, temp_root=str(temp_root), http_client=_audio_client()
    )
    spec = _spec(tmp_path, composition_template=str(tmp_path / "missing.tsx"))

    with pytest.raises(FileNotFoundError):
        await orchestrator.run(spec)

    assert collaborator.calls == []
    assert len(orchestrator.released) == 1
    assert list(temp_root.iterdir()) == []


@pytest.mark.asyncio
async def test_render_without_output_file_is_an_error(tmp_path: Path, temp_root: Path):
    class SilentCollaborator(FakeCollaborator):
        async def render(self, composition, bundle_location, output_path, *, options, timeout=None):
            self.calls.append("render")

    orchestrator = CountingOrchestrator(
        SilentCollaborator(), temp_root=str(temp_root), http_client=_audio_client()
    )

    with pytest.raises(RenderError):
        await orchestrator.run(_spec(tmp_path))

    assert len(orchestrator.released) == 1


def test_workspace_creation_failure(tmp_path: Path):
    orchestrator = pipeline.RenderOrchestrator(
        FakeCollaborator(), temp_root=str(tmp_path / "does-not-exist")
    )

    with pytest.raises(WorkspaceCreationError):
        orchestrator.prepare_workspace("job")


@pytest.mark.asyncio
async def test_duration_derived_from_audio_when_not_configured(tmp_path: Path, temp_root: Path):
    measured: List[Path] = []

    def _measure(path):
        measured.append(Path(path))
        return 80.5

    collaborator = FakeCollaborator()
    orchestrator = pipeline.RenderOrchestrator(
        collaborator,
        temp_root=str(temp_root),
        http_client=_audio_client(),
        duration_probe=_measure,
    )

    await orchestrator.run(_spec(tmp_path, duration_in_frames=None))

    assert measured and measured[0].name == "audio.mp3"
    assert collaborator.rendered.duration_in_frames == 2415


@pytest.mark.asyncio
async def test_subtitle_export_written_next_to_output(tmp_path: Path, temp_root: Path):
    orchestrator = pipeline.RenderOrchestrator(
        FakeCollaborator(), temp_root=str(temp_root), http_client=_audio_client()
    )

    result = await orchestrator.run(_spec(tmp_path, subtitle_export="srt"))

    srt = result.with_suffix(".srt").read_text(encoding="utf-8")
    assert "00:00:00,500 --> 00:00:02,000" in srt
    assert "Hello" in srt


def test_select_composition_exact_match():
    comps = [_info("Intro"), _info("EducationalVideo"), _info("EducationalVideo2")]

    assert pipeline.select_composition(comps, "EducationalVideo").id == "EducationalVideo"


@pytest.mark.parametrize(
    "available",
    [
        [],
        ["Intro"],
        ["Intro", "educationalvideo", "EducationalVideo "],
    ],
)
def test_select_composition_missing(available):
    with pytest.raises(CompositionNotFoundError) as excinfo:
        pipeline.select_composition([_info(i) for i in available], "EducationalVideo")

    assert excinfo.value.available == available


@pytest.mark.asyncio
async def test_discover_composition_raises_when_absent():
    orchestrator = pipeline.RenderOrchestrator(FakeCollaborator([_info("Other")]))

    with pytest.raises(CompositionNotFoundError):
        await orchestrator.discover_composition("/bundle", "EducationalVideo")


@pytest.mark.asyncio
async def test_audio_duration_read_off_the_event_loop(tmp_path: Path, temp_root: Path):
    threads: List[threading.Thread] = []

    def _measure(path):
        threads.append(threading.current_thread())
        return 2.0

    orchestrator = pipeline.RenderOrchestrator(
        FakeCollaborator(),
        temp_root=str(temp_root),
        http_client=_audio_client(),
        duration_probe=_measure,
    )

    await orchestrator.run(_spec(tmp_path, duration_in_frames=None))

    assert threads and threads[0] is not threading.main_thread()


@pytest.mark.asyncio
async def test_unreadable_audio_duration_is_an_asset_error(tmp_path: Path, temp_root: Path):
    def _measure(path):
        raise ValueError(f"could not determine audio duration for {path}")

    collaborator = FakeCollaborator()
    orchestrator = CountingOrchestrator(
        collaborator,
        temp_root=str(temp_root),
        http_client=_audio_client(),
        duration_probe=_measure,
    )

    with pytest.raises(AssetFetchError, match="could not read audio duration"):
        await orchestrator.run(_spec(tmp_path, duration_in_frames=None))

    assert collaborator.calls == []
    assert len(orchestrator.released) == 1
    assert list(temp_root.iterdir()) == []


@pytest.mark.asyncio
async def test_explicit_output_path_expands_timestamp(tmp_path: Path, temp_root: Path):
    orchestrator = pipeline.RenderOrchestrator(
        FakeCollaborator(), temp_root=str(temp_root), http_client=_audio_client()
    )

    result = await orchestrator.run(_spec(tmp_path), tmp_path / "render_{timestamp}.mp4")

    assert "{timestamp}" not in result.name
    assert result.name.startswith("render_") and result.name.endswith("Z.mp4")
    assert result.read_bytes() == b"MP4"
