"""Packaged render job profiles."""

from __future__ import annotations

from pathlib import Path
from typing import List, Union

from .models import RenderJobSpec

PROFILES_DIR = Path(__file__).resolve().parent / "job_profiles"
DEFAULT_PROFILE = "educational-video"


def available_profiles() -> List[str]:
    return sorted(path.stem for path in PROFILES_DIR.glob("*.json"))


def load_job_file(path: Union[str, Path]) -> RenderJobSpec:
    return RenderJobSpec.model_validate_json(Path(path).read_text(encoding="utf-8"))


def load_profile(name: str = DEFAULT_PROFILE) -> RenderJobSpec:
    path = PROFILES_DIR / f"{name}.json"
    if not path.is_file():
        known = ", ".join(available_profiles()) or "none"
        raise KeyError(f"unknown profile {name!r} (available: {known})")
    return load_job_file(path)
