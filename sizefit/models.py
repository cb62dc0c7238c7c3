"""Shared data types used across SizeFit."""

import enum
from dataclasses import dataclass, field
from pathlib import Path


class UnsupportedKindError(ValueError):
    """Raised when an output-kind tag is not one of the known kinds."""
    pass


class OutputKind(enum.Enum):
    """Closed set of output formats a job can produce."""

    MP4 = "mp4"
    MOV = "mov"
    MKV = "mkv"
    MP4_HEVC = "mp4_hevc"
    WEBP = "webp"
    GIF = "gif"

    @property
    def extension(self) -> str:
        if self is OutputKind.MP4_HEVC:
            return "mp4"
        return self.value

    @classmethod
    def from_tag(cls, tag: str) -> "OutputKind":
        try:
            return cls(tag)
        except ValueError:
            raise UnsupportedKindError(f"Unknown conversion type: {tag!r}") from None


class Strategy(enum.Enum):
    HARDWARE_SINGLE_PASS = "hardware_single_pass"
    SOFTWARE_TWO_PASS = "software_two_pass"
    TIERED_QUALITY = "tiered_quality"


class JobStatus(str, enum.Enum):
    ANALYZING = "analyzing"
    CONVERTING = "converting"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Marker:
    """A named point in time, in seconds on the source timeline."""

    id: str
    time: float
    name: str | None = None


@dataclass
class MediaInfo:
    """Lightweight metadata needed for bitrate and scale decisions."""

    duration: float
    width: int
    height: int


@dataclass
class MediaMetadata:
    """Fuller metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    codec_video: str
    codec_audio: str | None
    bitrate: int
    format_name: str
    size: int


@dataclass(frozen=True)
class Bitrate:
    """Video rate-control triple in kbps."""

    target: int
    maxrate: int
    bufsize: int


@dataclass(frozen=True)
class Tier:
    """One quality step for formats without bitrate control."""

    max_dimension: int
    fps: int
    quality: int | None = None


@dataclass(frozen=True)
class EncodePlan:
    strategy: Strategy
    effective_duration: float
    scale_filter: str
    bitrate: Bitrate | None = None


def _number(name: str, value, kind: type):
    """Coerce a numeric request field, rejecting anything non-numeric."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class TranscodeRequest:
    """A single size-targeted conversion job."""

    id: str
    input: Path
    target_bytes: int
    kind: OutputKind
    output_name: str = ""
    trim_start: float | None = None
    trim_duration: float | None = None
    markers: list[Marker] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.input = Path(self.input)
        self.target_bytes = _number("target_bytes", self.target_bytes, int)
        if self.trim_start is not None:
            self.trim_start = _number("trim_start", self.trim_start, float)
        if self.trim_duration is not None:
            self.trim_duration = _number("trim_duration", self.trim_duration, float)

        if self.trim_start is not None and self.trim_start < 0:
            raise ValueError(f"trim_start must be >= 0, got {self.trim_start}")
        if self.trim_duration is not None and self.trim_duration < 0:
            raise ValueError(f"trim_duration must be >= 0, got {self.trim_duration}")
        if self.target_bytes <= 0:
            raise ValueError(f"target_bytes must be positive, got {self.target_bytes}")
        if self.output_path.resolve() == self.input.resolve():
            raise ValueError(f"Output would overwrite the input file: {self.input}")

    @property
    def output_path(self) -> Path:
        """Output file beside the input, named after output_name."""
        ext = "." + self.kind.extension
        name = self.output_name or f"{self.input.stem}_converted"
        if not name.lower().endswith(ext):
            name += ext
        return self.input.parent / name


@dataclass
class ProgressEvent:
    id: str
    progress: float
    status: JobStatus

    def to_dict(self) -> dict:
        return {"id": self.id, "progress": round(self.progress, 2), "status": self.status.value}


@dataclass
class ConversionResult:
    """Terminal outcome of a job. Failures are values, not exceptions."""

    success: bool
    output_path: Path | None = None
    output_size: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "outputPath": str(self.output_path) if self.output_path else None,
            "outputSize": self.output_size,
            "error": self.error,
        }
