"""Shared test fixtures."""

import os
from pathlib import Path

import pytest

from sizefit.capabilities import CapabilityCache
from sizefit.manifest import Settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_job.json"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return Settings(work_dir=work_dir)


@pytest.fixture
def no_hardware() -> CapabilityCache:
    return CapabilityCache(probe=lambda cap: False)


@pytest.fixture
def with_hardware() -> CapabilityCache:
    return CapabilityCache(probe=lambda cap: True)


class FakeEncoder:
    """Stands in for ffutil.run_ffmpeg and writes plausible files.

    Pass-1 invocations (output to the null device) write statistics files the
    way libx264/libx265 would. Other invocations write the output file with
    the next size from *sizes* (or *default_size* once exhausted).
    """

    def __init__(self, sizes: list[int] | None = None, default_size: int = 1000):
        self.sizes = list(sizes or [])
        self.default_size = default_size
        self.calls: list[list[str]] = []
        self.chapter_text: str | None = None

    def __call__(self, args, duration, on_progress=None, ffmpeg="ffmpeg"):
        self.calls.append(list(args))
        output = args[-1]

        if output == os.devnull:
            if "-passlogfile" in args:
                prefix = args[args.index("-passlogfile") + 1]
                Path(f"{prefix}-0.log").write_text("stats")
                Path(f"{prefix}-0.log.mbtree").write_bytes(b"\0" * 16)
            if "-x265-params" in args:
                params = args[args.index("-x265-params") + 1]
                stats = params.split("stats=", 1)[1]
                Path(stats).write_text("stats")
                Path(f"{stats}.cutree").write_bytes(b"\0" * 16)
        else:
            if "-map_chapters" in args:
                inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
                self.chapter_text = Path(inputs[1]).read_text()
            size = self.sizes.pop(0) if self.sizes else self.default_size
            Path(output).write_bytes(b"\0" * size)

        if on_progress:
            on_progress(50.0)
            on_progress(100.0)
