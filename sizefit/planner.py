"""Bitrate and scale planning for size-targeted encodes."""

from sizefit.models import Bitrate

AUDIO_BITRATE_KBPS = 128
MIN_VIDEO_BITRATE_KBPS = 100

MAX_HEIGHT = 1080
MAX_WIDTH = 1920


def effective_duration(
    media_duration: float,
    trim_duration: float | None = None,
    trim_start: float | None = None,
) -> float:
    """Duration the encoder will actually produce.

    An explicit trim_duration wins. A start-only trim runs to the end of the
    media, so the remainder after trim_start is used.
    """
    if trim_duration is not None:
        return trim_duration
    return media_duration - (trim_start or 0.0)


def plan_bitrate(target_bytes: int, duration: float) -> Bitrate:
    """Derive a video bitrate triple (kbps) that fits target_bytes over duration.

    The audio track is budgeted at a fixed 128 kbps; the video target never
    drops below 100 kbps. maxrate is 1.5x and bufsize 2x the target.
    """
    if duration <= 0:
        raise ValueError(f"Duration must be positive for bitrate planning, got {duration}")

    total_bps = target_bytes * 8 / duration
    video_bps = max(total_bps - AUDIO_BITRATE_KBPS * 1000, MIN_VIDEO_BITRATE_KBPS * 1000)

    target = int(video_bps / 1000)
    return Bitrate(target=target, maxrate=int(target * 1.5), bufsize=target * 2)


def _even(value: float) -> int:
    """Round to the nearest even integer, at least 2."""
    return max(2, int(round(value / 2)) * 2)


def scaled_size(width: int, height: int) -> tuple[int, int]:
    """Output resolution after the delivery scale policy."""
    if height > MAX_HEIGHT:
        return _even(width * MAX_HEIGHT / height), MAX_HEIGHT
    if width > MAX_WIDTH:
        return MAX_WIDTH, _even(height * MAX_WIDTH / width)
    return width - width % 2, height - height % 2


def scale_filter(width: int, height: int) -> str:
    """ffmpeg -vf scale expression for the size chosen by scaled_size()."""
    w, h = scaled_size(width, height)
    return f"scale={w}:{h}"
