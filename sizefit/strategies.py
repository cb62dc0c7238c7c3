"""Strategy selection and ffmpeg argument assembly per output kind."""

import os
from pathlib import Path
from typing import assert_never

from sizefit.capabilities import Capability, CapabilityCache
from sizefit.models import Bitrate, EncodePlan, OutputKind, Strategy, Tier

AUDIO_ARGS = ["-c:a", "aac", "-b:a", "128k"]

# Highest to lowest quality; each step must produce a smaller file than the
# one before it for the early-stop rule to hold. Never below 20fps for WebP.
WEBP_TIERS: tuple[Tier, ...] = (
    Tier(600, 30, 70),
    Tier(600, 24, 65),
    Tier(500, 20, 60),
    Tier(400, 20, 55),
    Tier(350, 20, 50),
    Tier(300, 20, 45),
)

GIF_TIERS: tuple[Tier, ...] = (
    Tier(480, 15),
    Tier(400, 12),
    Tier(360, 10),
    Tier(320, 10),
    Tier(240, 8),
    Tier(180, 6),
)


def _hardware_capability(kind: OutputKind) -> Capability | None:
    match kind:
        case OutputKind.MP4 | OutputKind.MOV | OutputKind.MKV:
            return Capability.HW_H264
        case OutputKind.MP4_HEVC:
            return Capability.HW_HEVC
        case OutputKind.WEBP | OutputKind.GIF:
            return None
        case _:
            assert_never(kind)


def select_strategy(kind: OutputKind, capabilities: CapabilityCache) -> Strategy:
    """Pick how a kind gets encoded given the encoders this machine has."""
    capability = _hardware_capability(kind)
    if capability is None:
        return Strategy.TIERED_QUALITY
    if capabilities.available(capability):
        return Strategy.HARDWARE_SINGLE_PASS
    return Strategy.SOFTWARE_TWO_PASS


def tiers_for(kind: OutputKind) -> tuple[Tier, ...]:
    match kind:
        case OutputKind.WEBP:
            return WEBP_TIERS
        case OutputKind.GIF:
            return GIF_TIERS
        case OutputKind.MP4 | OutputKind.MOV | OutputKind.MKV | OutputKind.MP4_HEVC:
            raise ValueError(f"{kind.value} is bitrate-capped and has no quality tiers")
        case _:
            assert_never(kind)


def trim_args(
    trim_start: float | None, trim_duration: float | None
) -> tuple[list[str], list[str]]:
    """Split trimming into (before -i, after -i) argument lists.

    The whole-second part of the start is a fast keyframe seek before the
    input; the fractional remainder is a frame-accurate seek after it.
    """
    before: list[str] = []
    after: list[str] = []
    if trim_start is not None:
        fast = int(trim_start)
        accurate = trim_start - fast
        before += ["-ss", str(fast)]
        if accurate > 0.001:
            after += ["-ss", f"{accurate:.3f}"]
    if trim_duration is not None:
        after += ["-t", f"{trim_duration:.3f}"]
    return before, after


def _input_args(
    input_path: Path, trim_start: float | None, trim_duration: float | None
) -> list[str]:
    before, after = trim_args(trim_start, trim_duration)
    return ["-y", *before, "-i", str(input_path), *after]


def _rate_args(bitrate: Bitrate) -> list[str]:
    return [
        "-b:v", f"{bitrate.target}k",
        "-maxrate", f"{bitrate.maxrate}k",
        "-bufsize", f"{bitrate.bufsize}k",
    ]


def _container_args(kind: OutputKind) -> list[str]:
    match kind:
        case OutputKind.MP4 | OutputKind.MOV:
            return ["-movflags", "+faststart"]
        case OutputKind.MP4_HEVC:
            # hvc1 tag so Apple players accept the stream
            return ["-tag:v", "hvc1", "-movflags", "+faststart"]
        case OutputKind.MKV:
            return []
        case OutputKind.WEBP | OutputKind.GIF:
            return []
        case _:
            assert_never(kind)


def single_pass_args(
    kind: OutputKind,
    input_path: Path,
    output_path: Path,
    plan: EncodePlan,
    trim_start: float | None = None,
    trim_duration: float | None = None,
) -> list[str]:
    """Hardware VBR encode in one pass."""
    if kind is OutputKind.MP4_HEVC:
        codec = ["-c:v", "hevc_nvenc", "-profile:v", "main"]
    else:
        codec = ["-c:v", "h264_nvenc", "-profile:v", "high"]

    return [
        *_input_args(input_path, trim_start, trim_duration),
        *codec,
        "-preset", "p7",
        "-tune", "hq",
        "-rc", "vbr",
        *_rate_args(plan.bitrate),
        "-vf", plan.scale_filter,
        *AUDIO_ARGS,
        *_container_args(kind),
        str(output_path),
    ]


def two_pass_args(
    kind: OutputKind,
    input_path: Path,
    output_path: Path,
    plan: EncodePlan,
    passlog: Path,
    trim_start: float | None = None,
    trim_duration: float | None = None,
) -> tuple[list[str], list[str]]:
    """Software two-pass encode: statistics pass, then the real encode.

    Statistics files are written next to *passlog* and share its name as a
    prefix.
    """
    common = _input_args(input_path, trim_start, trim_duration)

    def codec(pass_number: int) -> list[str]:
        if kind is OutputKind.MP4_HEVC:
            return [
                "-c:v", "libx265",
                "-preset", "slow",
                "-x265-params", f"pass={pass_number}:stats={passlog}",
            ]
        return [
            "-c:v", "libx264",
            "-preset", "slow",
            "-pass", str(pass_number),
            "-passlogfile", str(passlog),
        ]

    video = [*_rate_args(plan.bitrate), "-vf", plan.scale_filter]

    pass1 = [*common, *codec(1), *video, "-an", "-f", "null", os.devnull]
    pass2 = [
        *common,
        *codec(2),
        *video,
        *AUDIO_ARGS,
        *_container_args(kind),
        str(output_path),
    ]
    return pass1, pass2


def _fit_filter(tier: Tier) -> str:
    return (
        f"scale='min({tier.max_dimension},iw)':'min({tier.max_dimension},ih)'"
        ":force_original_aspect_ratio=decrease"
    )


def tier_args(
    kind: OutputKind,
    tier: Tier,
    input_path: Path,
    output_path: Path,
    trim_start: float | None = None,
    trim_duration: float | None = None,
) -> list[str]:
    """One encode attempt for an animated format at the given tier."""
    head = _input_args(input_path, trim_start, trim_duration)

    match kind:
        case OutputKind.WEBP:
            vf = (
                f"{_fit_filter(tier)},scale=trunc(iw/2)*2:trunc(ih/2)*2,fps={tier.fps}"
            )
            body = [
                "-vf", vf,
                "-vcodec", "libwebp",
                "-lossless", "0",
                "-compression_level", "4",
                "-quality", str(tier.quality if tier.quality is not None else 75),
                "-loop", "0",
                "-an",
            ]
        case OutputKind.GIF:
            vf = (
                f"fps={tier.fps},{_fit_filter(tier)}:flags=lanczos,"
                "split[s0][s1];[s0]palettegen=stats_mode=diff[p];"
                "[s1][p]paletteuse=dither=bayer:bayer_scale=5"
            )
            body = ["-vf", vf, "-loop", "0", "-an"]
        case OutputKind.MP4 | OutputKind.MOV | OutputKind.MKV | OutputKind.MP4_HEVC:
            raise ValueError(f"{kind.value} is not a tiered format")
        case _:
            assert_never(kind)

    return [*head, *body, str(output_path)]


def chapter_merge_args(video_path: Path, chapters_path: Path, output_path: Path) -> list[str]:
    """Copy every stream from input 0 and chapter metadata from input 1."""
    return [
        "-y",
        "-i", str(video_path),
        "-i", str(chapters_path),
        "-map", "0",
        "-map_metadata", "1",
        "-map_chapters", "1",
        "-c", "copy",
        str(output_path),
    ]
