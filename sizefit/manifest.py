"""JSON job manifests and runtime settings, the contract between CLI/API and engine."""

import json
import os
import re
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from sizefit.models import Marker, OutputKind, TranscodeRequest

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgt]?)(?:i?b)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3, "t": 1024**4}


@dataclass
class Settings:
    """Where the external tools live and where sidecar files go."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    work_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))


def load_settings() -> Settings:
    """Build Settings from SIZEFIT_* environment variables."""
    settings = Settings()
    if os.environ.get("SIZEFIT_FFMPEG"):
        settings.ffmpeg = os.environ["SIZEFIT_FFMPEG"]
    if os.environ.get("SIZEFIT_FFPROBE"):
        settings.ffprobe = os.environ["SIZEFIT_FFPROBE"]
    if os.environ.get("SIZEFIT_WORK_DIR"):
        settings.work_dir = Path(os.environ["SIZEFIT_WORK_DIR"])
    return settings


def parse_size(value: str | int | float) -> int:
    """Parse '25M', '1.5g', '512KiB' or a plain byte count."""
    if isinstance(value, (int, float)):
        return int(value)
    match = _SIZE_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.lower()])


def parse_markers(items: list[dict]) -> list[Marker]:
    markers: list[Marker] = []
    for i, item in enumerate(items):
        if "time" not in item:
            raise ValueError(f"Marker {i} is missing 'time'")
        markers.append(
            Marker(
                id=str(item.get("id", i)),
                time=float(item["time"]),
                name=item.get("name") or None,
            )
        )
    return markers


def request_from_dict(data: dict) -> TranscodeRequest:
    """Validate a job description dict and build a TranscodeRequest."""
    if "input" not in data or "kind" not in data:
        raise ValueError("Manifest must contain 'input' and 'kind' fields")
    if "target_bytes" in data:
        target_bytes = int(data["target_bytes"])
    elif "target_size" in data:
        target_bytes = parse_size(data["target_size"])
    else:
        raise ValueError("Manifest must contain 'target_bytes' or 'target_size'")

    trim = data.get("trim") or {}

    return TranscodeRequest(
        id=str(data.get("id") or uuid.uuid4().hex[:12]),
        input=Path(data["input"]),
        target_bytes=target_bytes,
        kind=OutputKind.from_tag(data["kind"]),
        output_name=data.get("output_name", ""),
        trim_start=_optional_float(trim.get("start")),
        trim_duration=_optional_float(trim.get("duration")),
        markers=parse_markers(data.get("markers", [])),
    )


def _optional_float(value) -> float | None:
    return None if value is None else float(value)


def load_manifest(path: str | Path) -> TranscodeRequest:
    """Load and validate a job manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())
    return request_from_dict(data)
