"""Orchestrator for size-targeted conversion jobs."""

import contextlib
import glob
import logging
from pathlib import Path
from typing import Callable, Sequence, assert_never

from sizefit import ffutil
from sizefit.capabilities import CapabilityCache, default_cache
from sizefit.manifest import Settings, load_settings
from sizefit.models import (
    ConversionResult,
    EncodePlan,
    JobStatus,
    Marker,
    OutputKind,
    ProgressEvent,
    Strategy,
    Tier,
    TranscodeRequest,
)
from sizefit.planner import effective_duration, plan_bitrate, scale_filter
from sizefit.strategies import (
    chapter_merge_args,
    select_strategy,
    single_pass_args,
    tier_args,
    tiers_for,
    two_pass_args,
)
from sizefit.timeline import adjust_markers, build_chapters, write_chapter_file

logger = logging.getLogger(__name__)

ANALYZE_END = 5.0
MERGE_START = 95.0
TIER_SPAN = 90.0
# Accept a tier whose output is at most 110% of the target.
TIER_OVERSHOOT_NUM = 11
TIER_OVERSHOOT_DEN = 10

ProgressCallback = Callable[[ProgressEvent], None]


class _Reporter:
    """Emits ProgressEvents for one job, never letting progress go backwards."""

    def __init__(self, job_id: str, on_progress: ProgressCallback | None):
        self.job_id = job_id
        self.on_progress = on_progress
        self.last = 0.0

    def emit(self, progress: float, status: JobStatus) -> None:
        self.last = max(self.last, min(progress, 100.0))
        if self.on_progress:
            self.on_progress(ProgressEvent(id=self.job_id, progress=self.last, status=status))

    def stage(self, base: float, span: float) -> Callable[[float], None]:
        """Return a callback that maps ffmpeg's [0, 100] to [base, base+span]."""
        def cb(pct: float) -> None:
            self.emit(base + pct / 100.0 * span, JobStatus.CONVERTING)
        return cb


def _remove_quietly(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.unlink()


def _remove_sidecars(prefix: Path) -> None:
    """Delete every file whose name starts with prefix's name."""
    for path in prefix.parent.glob(glob.escape(prefix.name) + "*"):
        _remove_quietly(path)


def run_tiers(
    tiers: Sequence[Tier],
    attempt: Callable[[int, Tier], int],
    target_bytes: int,
) -> tuple[int, int]:
    """Try tiers from best to worst quality until one fits the budget.

    *attempt* encodes at a tier and returns the produced size in bytes. The
    first tier whose size is within 110% of *target_bytes* wins; if none is,
    the last tier's output is kept. Returns (tier index, size).
    """
    if not tiers:
        raise ValueError("run_tiers called with no tiers")

    limit = target_bytes * TIER_OVERSHOOT_NUM // TIER_OVERSHOOT_DEN
    size = 0
    for i, tier in enumerate(tiers):
        size = attempt(i, tier)
        logger.info(
            "Tier %d/%d (%dpx, %dfps, q=%s): %d bytes (limit %d)",
            i + 1, len(tiers), tier.max_dimension, tier.fps, tier.quality, size, limit,
        )
        if size <= limit:
            return i, size
    logger.warning("No tier fit %d bytes; keeping lowest-quality output", target_bytes)
    return len(tiers) - 1, size


def _encode_single_pass(
    request: TranscodeRequest,
    plan: EncodePlan,
    output_path: Path,
    settings: Settings,
    reporter: _Reporter,
    end: float,
) -> None:
    args = single_pass_args(
        request.kind, request.input, output_path, plan,
        request.trim_start, request.trim_duration,
    )
    ffutil.run_ffmpeg(
        args, plan.effective_duration,
        reporter.stage(ANALYZE_END, end - ANALYZE_END),
        ffmpeg=settings.ffmpeg,
    )


def _encode_two_pass(
    request: TranscodeRequest,
    plan: EncodePlan,
    output_path: Path,
    settings: Settings,
    reporter: _Reporter,
    end: float,
) -> None:
    passlog = Path(settings.work_dir) / f"sizefit-{request.id}-passlog"
    pass1, pass2 = two_pass_args(
        request.kind, request.input, output_path, plan, passlog,
        request.trim_start, request.trim_duration,
    )
    midpoint = end / 2
    try:
        ffutil.run_ffmpeg(
            pass1, plan.effective_duration,
            reporter.stage(ANALYZE_END, midpoint - ANALYZE_END),
            ffmpeg=settings.ffmpeg,
        )
        ffutil.run_ffmpeg(
            pass2, plan.effective_duration,
            reporter.stage(midpoint, end - midpoint),
            ffmpeg=settings.ffmpeg,
        )
    finally:
        _remove_sidecars(passlog)


def _encode_tiered(
    request: TranscodeRequest,
    plan: EncodePlan,
    output_path: Path,
    settings: Settings,
    reporter: _Reporter,
) -> None:
    tiers = tiers_for(request.kind)
    chunk = TIER_SPAN / len(tiers)

    def attempt(i: int, tier: Tier) -> int:
        base = ANALYZE_END + i * chunk
        reporter.emit(base, JobStatus.CONVERTING)
        _remove_quietly(output_path)
        args = tier_args(
            request.kind, tier, request.input, output_path,
            request.trim_start, request.trim_duration,
        )
        ffutil.run_ffmpeg(
            args, plan.effective_duration, reporter.stage(base, chunk),
            ffmpeg=settings.ffmpeg,
        )
        return output_path.stat().st_size

    index, size = run_tiers(tiers, attempt, request.target_bytes)
    logger.info("Job %s: accepted tier %d (%d bytes)", request.id, index + 1, size)


def _chapter_text(request: TranscodeRequest, duration: float) -> str:
    if request.kind is not OutputKind.MKV:
        if request.markers:
            logger.debug("Ignoring %d markers for %s output", len(request.markers), request.kind.value)
        return ""
    markers = adjust_markers(request.markers, request.trim_start, request.trim_duration)
    return build_chapters(markers, duration)


def convert(
    request: TranscodeRequest,
    settings: Settings | None = None,
    capabilities: CapabilityCache | None = None,
    on_progress: ProgressCallback | None = None,
) -> ConversionResult:
    """Execute a conversion job. Never raises; failures come back in the result."""
    try:
        return _run(request, settings or load_settings(), capabilities, on_progress)
    except Exception as e:
        logger.exception("Job %s failed", request.id)
        return ConversionResult(success=False, error=str(e))


def _run(
    request: TranscodeRequest,
    settings: Settings,
    capabilities: CapabilityCache | None,
    on_progress: ProgressCallback | None,
) -> ConversionResult:
    reporter = _Reporter(request.id, on_progress)
    capabilities = capabilities or default_cache(settings.ffmpeg)

    # --- Analyzing ---
    reporter.emit(0.0, JobStatus.ANALYZING)
    info = ffutil.probe(request.input, settings.ffprobe)
    duration = effective_duration(info.duration, request.trim_duration, request.trim_start)
    if duration <= 0:
        raise ffutil.ProbeError(f"Effective duration must be positive, got {duration}")

    strategy = select_strategy(request.kind, capabilities)
    plan = EncodePlan(
        strategy=strategy,
        effective_duration=duration,
        scale_filter=scale_filter(info.width, info.height),
        bitrate=(
            None if strategy is Strategy.TIERED_QUALITY
            else plan_bitrate(request.target_bytes, duration)
        ),
    )
    logger.info(
        "Job %s: %s -> %s via %s (%.2fs, bitrate=%s)",
        request.id, request.input, request.kind.value, strategy.value, duration, plan.bitrate,
    )

    output_path = request.output_path
    work_dir = Path(settings.work_dir)
    chapters = _chapter_text(request, duration)
    chapters_path: Path | None = None
    encode_path = output_path
    encode_end = 100.0
    if chapters:
        chapters_path = write_chapter_file(chapters, work_dir, request.id)
        encode_path = work_dir / f"sizefit-{request.id}-video.{request.kind.extension}"
        encode_end = MERGE_START

    # --- Converting ---
    reporter.emit(ANALYZE_END, JobStatus.CONVERTING)
    try:
        match strategy:
            case Strategy.HARDWARE_SINGLE_PASS:
                _encode_single_pass(request, plan, encode_path, settings, reporter, encode_end)
            case Strategy.SOFTWARE_TWO_PASS:
                _encode_two_pass(request, plan, encode_path, settings, reporter, encode_end)
            case Strategy.TIERED_QUALITY:
                _encode_tiered(request, plan, encode_path, settings, reporter)
            case _:
                assert_never(strategy)

        if chapters_path is not None:
            ffutil.run_ffmpeg(
                chapter_merge_args(encode_path, chapters_path, output_path),
                duration,
                reporter.stage(MERGE_START, 100.0 - MERGE_START),
                ffmpeg=settings.ffmpeg,
            )
    finally:
        # --- Finalizing ---
        if chapters_path is not None:
            _remove_quietly(chapters_path)
            _remove_quietly(encode_path)

    # --- Completed ---
    output_size = output_path.stat().st_size
    reporter.emit(100.0, JobStatus.COMPLETED)
    return ConversionResult(success=True, output_path=output_path, output_size=output_size)


def convert_file(
    job_id: str,
    input_path: str | Path,
    output_name: str,
    target_bytes: int,
    kind: str,
    trim_start: float | None = None,
    trim_duration: float | None = None,
    markers: list[Marker] | None = None,
    settings: Settings | None = None,
    capabilities: CapabilityCache | None = None,
    on_progress: ProgressCallback | None = None,
) -> ConversionResult:
    """Job-submission entry point taking a raw output-kind tag.

    Request validation failures (an unknown kind, negative trim values) are
    reported in the result before anything touches the filesystem.
    """
    try:
        request = TranscodeRequest(
            id=job_id,
            input=Path(input_path),
            output_name=output_name,
            target_bytes=target_bytes,
            kind=OutputKind.from_tag(kind),
            trim_start=trim_start,
            trim_duration=trim_duration,
            markers=list(markers or []),
        )
    except (TypeError, ValueError) as e:
        logger.error("Job %s rejected: %s", job_id, e)
        return ConversionResult(success=False, error=str(e))

    return convert(request, settings=settings, capabilities=capabilities, on_progress=on_progress)
