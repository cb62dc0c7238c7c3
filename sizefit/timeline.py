"""Marker re-basing for trimmed output and ffmetadata chapter generation."""

import math
import re
from pathlib import Path

from sizefit.models import Marker

_FFMETADATA_SPECIAL = re.compile(r"([=;#\\\n])")


def adjust_markers(
    markers: list[Marker],
    trim_start: float | None = None,
    trim_duration: float | None = None,
) -> list[Marker]:
    """Map markers into the trimmed clip's timeline.

    Markers outside [trim_start, trim_start + trim_duration] are dropped; the
    rest are shifted so the trim start becomes time zero. Both ends of the
    window are inclusive.
    """
    start = trim_start or 0.0
    end = start + trim_duration if trim_duration is not None else math.inf

    return [
        Marker(id=m.id, time=m.time - start, name=m.name)
        for m in markers
        if start <= m.time <= end
    ]


def _escape(text: str) -> str:
    return _FFMETADATA_SPECIAL.sub(r"\\\1", text)


def build_chapters(markers: list[Marker], total_duration: float) -> str:
    """Render markers as an FFMETADATA1 chapter file.

    Each chapter runs from its marker to the next one (or to total_duration
    for the last). Returns "" when there are no markers.
    """
    if not markers:
        return ""

    ordered = sorted(markers, key=lambda m: m.time)
    total_ms = round(total_duration * 1000)

    lines: list[str] = [";FFMETADATA1", ""]
    for i, marker in enumerate(ordered):
        start_ms = round(marker.time * 1000)
        if i + 1 < len(ordered):
            end_ms = round(ordered[i + 1].time * 1000)
        else:
            end_ms = total_ms
        title = marker.name or f"Chapter {i + 1}"

        lines.append("[CHAPTER]")
        lines.append("TIMEBASE=1/1000")
        lines.append(f"START={start_ms}")
        lines.append(f"END={end_ms}")
        lines.append(f"title={_escape(title)}")
        lines.append("")

    return "\n".join(lines)


def write_chapter_file(text: str, directory: Path, job_id: str) -> Path:
    """Write chapter metadata to a sidecar file in directory."""
    path = Path(directory) / f"sizefit-{job_id}-chapters.txt"
    path.write_text(text, encoding="utf-8")
    return path
