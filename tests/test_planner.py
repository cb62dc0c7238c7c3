"""Tests for bitrate planning and the scale policy."""

import pytest

from sizefit.planner import (
    AUDIO_BITRATE_KBPS,
    MIN_VIDEO_BITRATE_KBPS,
    effective_duration,
    plan_bitrate,
    scale_filter,
    scaled_size,
)


class TestPlanBitrate:
    def test_basic(self):
        # 25 MB over 100s -> 2000 kbps total, minus 128 audio
        b = plan_bitrate(25_000_000, 100.0)
        assert b.target == 1872
        assert b.maxrate == 2808
        assert b.bufsize == 3744

    def test_floor_for_tiny_budget(self):
        b = plan_bitrate(1000, 600.0)
        assert b.target == MIN_VIDEO_BITRATE_KBPS
        assert b.maxrate == 150
        assert b.bufsize == 200

    @pytest.mark.parametrize("target_bytes", [1, 10_000, 1_000_000, 50_000_000, 2_000_000_000])
    @pytest.mark.parametrize("duration", [0.5, 10.0, 3600.0])
    def test_floor_and_budget(self, target_bytes, duration):
        b = plan_bitrate(target_bytes, duration)
        total_kbps = target_bytes * 8 / duration / 1000
        assert b.target >= MIN_VIDEO_BITRATE_KBPS
        if total_kbps > MIN_VIDEO_BITRATE_KBPS + AUDIO_BITRATE_KBPS:
            assert b.target + AUDIO_BITRATE_KBPS <= total_kbps

    def test_zero_duration_raises(self):
        with pytest.raises(ValueError, match="positive"):
            plan_bitrate(1_000_000, 0.0)


def _filter_size(expr: str) -> tuple[int, int]:
    w, h = expr.removeprefix("scale=").split(":")
    return int(w), int(h)


class TestEffectiveDuration:
    def test_uses_trim_when_present(self):
        assert effective_duration(120.0, 15.0) == 15.0

    def test_falls_back_to_media_duration(self):
        assert effective_duration(120.0, None) == 120.0

    def test_start_only_trim_uses_remainder(self):
        assert effective_duration(120.0, None, 30.0) == 90.0

    def test_duration_wins_over_start(self):
        assert effective_duration(120.0, 15.0, 30.0) == 15.0


class TestScalePolicy:
    def test_4k_capped_to_1080p(self):
        assert scaled_size(3840, 2160) == (1920, 1080)
        assert scale_filter(3840, 2160) == "scale=1920:1080"

    def test_portrait_tall_capped_by_height(self):
        assert scaled_size(1080, 1920) == (608, 1080)
        assert scale_filter(1080, 1920) == "scale=608:1080"

    def test_wide_capped_by_width(self):
        assert scaled_size(2560, 1000) == (1920, 750)
        assert scale_filter(2560, 1000) == "scale=1920:750"

    def test_odd_dimensions_made_even(self):
        assert scaled_size(641, 481) == (640, 480)
        assert scale_filter(641, 481) == "scale=640:480"

    @pytest.mark.parametrize("size", [(1920, 1080), (1280, 720), (640, 480), (2, 2)])
    def test_idempotent_on_conformant_sizes(self, size):
        assert scaled_size(*size) == size
        assert scaled_size(*scaled_size(*size)) == size

    def test_idempotent_after_downscale(self):
        once = scaled_size(3840, 2160)
        assert scaled_size(*once) == once

    @pytest.mark.parametrize(
        "size", [(3840, 2160), (1080, 1920), (2560, 1000), (641, 481), (1280, 720)]
    )
    def test_filter_idempotent(self, size):
        first = scale_filter(*size)
        assert scale_filter(*_filter_size(first)) == first
