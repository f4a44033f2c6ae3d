"""Subtitle cue lookup and export helpers."""

from __future__ import annotations

import os
from typing import Optional, Sequence

from .models import SubtitleCue


def find_cue(cues: Sequence[SubtitleCue], seconds: float) -> Optional[SubtitleCue]:
    """Return the first cue whose ``[start, end]`` range contains ``seconds``."""

    for cue in cues:
        if cue.start <= seconds <= cue.end:
            return cue
    return None


def cue_at_frame(cues: Sequence[SubtitleCue], frame: int, fps: float) -> Optional[SubtitleCue]:
    if fps <= 0:
        raise ValueError("fps must be positive")
    return find_cue(cues, frame / fps)


def _ass_header(width: int, height: int) -> str:
    return (
        "[Script Info]\n"
        "ScriptType: v4.00+\n"
        f"PlayResX: {width}\n"
        f"PlayResY: {height}\n"
        "ScaledBorderAndShadow: yes\n\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding\n"
        "Style: Caption, Arial, 48, &H0037AFD4, &H00FFFFFF, &H00000000, &HB4000000, 0, 0, 0, 0, 100, 100, 0, 0, 3, 2, 0.5, 2, 50, 50, 50, 0\n\n"
        "[Events]\n"
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
    )


def _ass_escape(text: str) -> str:
    return text.replace("\\", r"\\").replace("{", r"\{").replace("}", r"\}").replace("\n", r"\N")


def _ass_time(seconds: float) -> str:
    centiseconds = int(round(seconds * 100))
    hours = centiseconds // 360000
    centiseconds %= 360000
    minutes = centiseconds // 6000
    centiseconds %= 6000
    secs = centiseconds // 100
    centiseconds %= 100
    return f"{hours}:{minutes:02d}:{secs:02d}.{centiseconds:02d}"


def _srt_time(seconds: float) -> str:
    millis = int(round(seconds * 1000))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def render_ass(cues: Sequence[SubtitleCue], width: int, height: int) -> str:
    lines = [_ass_header(width, height)]
    for cue in cues:
        text = cue.text.strip()
        if not text:
            continue
        lines.append(
            f"Dialogue: 0,{_ass_time(cue.start)},{_ass_time(cue.end)},"
            f"Caption,,0,0,0,,{_ass_escape(text)}"
        )
    return "\n".join(lines) + "\n"


def render_srt(cues: Sequence[SubtitleCue]) -> str:
    blocks: list[str] = []
    for cue in cues:
        text = cue.text.strip()
        if not text:
            continue
        index = len(blocks) + 1
        blocks.append(f"{index}\n{_srt_time(cue.start)} --> {_srt_time(cue.end)}\n{text}\n")
    return "\n".join(blocks)


def write_subtitle_file(
    cues: Sequence[SubtitleCue],
    out_path: str,
    fmt: str,
    *,
    width: int,
    height: int,
) -> str:
    if fmt == "ass":
        body = render_ass(cues, width, height)
    elif fmt == "srt":
        body = render_srt(cues)
    else:
        raise ValueError(f"unsupported subtitle format: {fmt}")

    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as file:
        file.write(body)
    return out_path
