"""FFmpeg/ffprobe subprocess helpers."""

import collections
import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Callable

from sizefit.models import MediaInfo, MediaMetadata
from sizefit.monitor import ProgressMonitor

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


class FFmpegNotFoundError(RuntimeError):
    pass


class ProbeError(ValueError):
    """Raised when ffprobe cannot read a file or find its duration."""
    pass


class EncodeError(RuntimeError):
    """Raised when an ffmpeg invocation exits non-zero."""

    def __init__(self, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        message = f"FFmpeg encoding failed (rc={returncode})"
        if stderr.strip():
            message += f": {stderr.strip().splitlines()[-1]}"
        super().__init__(message)


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be found."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def _ffprobe_json(input_path: Path, ffprobe: str) -> dict:
    cmd = [
        ffprobe,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise FFmpegNotFoundError(f"Failed to run ffprobe ({ffprobe}): {e}") from e

    if result.returncode != 0:
        raise ProbeError(
            f"ffprobe failed on {input_path} (rc={result.returncode}): {result.stderr.strip()}"
        )
    return json.loads(result.stdout or "{}")


def _positive_float(value) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _parse_rate(rate: str | None) -> float:
    if not rate or "/" not in rate:
        return 0.0
    num, den = rate.split("/")
    return int(num) / int(den) if int(den) else 0.0


def _media_duration(data: dict, video_stream: dict | None) -> float:
    """Stream-level duration first, then container-level."""
    duration = None
    if video_stream is not None:
        duration = _positive_float(video_stream.get("duration"))
    if duration is None:
        duration = _positive_float(data.get("format", {}).get("duration"))
    if duration is None:
        raise ProbeError("Could not determine video duration")
    return duration


def _rotation(stream: dict) -> int:
    for side_data in stream.get("side_data_list") or []:
        if "rotation" in side_data:
            return int(float(side_data["rotation"]))
    return int(float(stream.get("tags", {}).get("rotate", 0) or 0))


def _display_size(stream: dict) -> tuple[int, int]:
    """Frame size as shown, with 90-degree rotations applied."""
    width = int(stream.get("width", 0))
    height = int(stream.get("height", 0))
    if _rotation(stream) % 180:
        return height, width
    return width, height


def probe(input_path: Path, ffprobe: str = "ffprobe") -> MediaInfo:
    """Extract duration and frame size via ffprobe."""
    data = _ffprobe_json(input_path, ffprobe)
    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
    )
    if video_stream is None:
        raise ProbeError(f"No video stream found in {input_path}")

    width, height = _display_size(video_stream)
    return MediaInfo(
        duration=_media_duration(data, video_stream),
        width=width,
        height=height,
    )


def probe_metadata(input_path: Path, ffprobe: str = "ffprobe") -> MediaMetadata:
    """Extract codec, bitrate and container details via ffprobe."""
    data = _ffprobe_json(input_path, ffprobe)
    streams = data.get("streams", [])
    fmt = data.get("format", {})

    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)
    if video_stream is None:
        raise ProbeError(f"No video stream found in {input_path}")

    width, height = _display_size(video_stream)
    return MediaMetadata(
        duration=_media_duration(data, video_stream),
        width=width,
        height=height,
        fps=_parse_rate(video_stream.get("r_frame_rate")),
        codec_video=video_stream.get("codec_name", "unknown"),
        codec_audio=audio_stream.get("codec_name") if audio_stream else None,
        bitrate=int(fmt.get("bit_rate") or 0),
        format_name=fmt.get("format_name", ""),
        size=int(fmt.get("size") or 0),
    )


def list_encoders(ffmpeg: str = "ffmpeg") -> str:
    """Return the raw ``ffmpeg -encoders`` listing."""
    result = subprocess.run(
        [ffmpeg, "-hide_banner", "-encoders"], capture_output=True, text=True
    )
    return result.stdout


def _drain(stream, tail: collections.deque) -> None:
    for line in stream:
        tail.append(line)


def run_ffmpeg(
    args: list[str],
    duration: float,
    on_progress: Callable[[float], None] | None = None,
    ffmpeg: str = "ffmpeg",
) -> None:
    """Run ffmpeg with machine-readable progress on stdout.

    *on_progress* receives percentages in [0, 100] as the encode advances and
    exactly 100.0 once the process exits successfully. Raises EncodeError on a
    non-zero exit.
    """
    cmd = [ffmpeg, "-progress", "pipe:1", "-nostats", *args]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise FFmpegNotFoundError(f"Failed to spawn ffmpeg ({ffmpeg}): {e}") from e

    stderr_tail: collections.deque = collections.deque(maxlen=STDERR_TAIL_LINES)
    stderr_thread = threading.Thread(
        target=_drain, args=(proc.stderr, stderr_tail), daemon=True
    )
    stderr_thread.start()

    for pct in ProgressMonitor(proc.stdout, duration):
        if on_progress:
            on_progress(pct)

    returncode = proc.wait()
    stderr_thread.join()

    if returncode != 0:
        raise EncodeError(returncode, "".join(stderr_tail))

    if on_progress:
        on_progress(100.0)

