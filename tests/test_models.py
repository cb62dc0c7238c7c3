"""Tests for shared data types."""

from pathlib import Path

import pytest

from sizefit.models import (
    ConversionResult,
    OutputKind,
    TranscodeRequest,
    UnsupportedKindError,
)


class TestOutputKind:
    @pytest.mark.parametrize(
        "tag, ext",
        [("mp4", "mp4"), ("mov", "mov"), ("mkv", "mkv"), ("mp4_hevc", "mp4"), ("webp", "webp"), ("gif", "gif")],
    )
    def test_extensions(self, tag, ext):
        assert OutputKind.from_tag(tag).extension == ext

    def test_unknown_tag_named_in_error(self):
        with pytest.raises(UnsupportedKindError, match="'video'"):
            OutputKind.from_tag("video")


class TestTranscodeRequest:
    def _make(self, **kwargs) -> TranscodeRequest:
        defaults = dict(id="j", input=Path("/media/clip.mov"), target_bytes=1000, kind=OutputKind.MP4)
        defaults.update(kwargs)
        return TranscodeRequest(**defaults)

    def test_default_output_name(self):
        assert self._make().output_path == Path("/media/clip_converted.mp4")

    def test_output_name_gets_extension(self):
        assert self._make(output_name="small").output_path == Path("/media/small.mp4")

    def test_extension_not_doubled(self):
        r = self._make(output_name="small.webp", kind=OutputKind.WEBP)
        assert r.output_path == Path("/media/small.webp")

    def test_negative_trim_start(self):
        with pytest.raises(ValueError, match="trim_start"):
            self._make(trim_start=-0.5)

    def test_zero_trim_allowed(self):
        r = self._make(trim_start=0.0, trim_duration=0.0)
        assert r.trim_duration == 0.0

    def test_non_positive_target(self):
        with pytest.raises(ValueError, match="target_bytes"):
            self._make(target_bytes=0)

    def test_output_equal_to_input_rejected(self):
        with pytest.raises(ValueError, match="overwrite the input"):
            self._make(input=Path("/media/clip.gif"), output_name="clip", kind=OutputKind.GIF)

    def test_numeric_strings_coerced(self):
        r = self._make(target_bytes="2048", trim_start="1.5")
        assert r.target_bytes == 2048
        assert r.trim_start == 1.5

    def test_non_numeric_trim_rejected(self):
        with pytest.raises(ValueError, match="trim_duration must be a number"):
            self._make(trim_duration="ten")


class TestConversionResult:
    def test_to_dict(self):
        r = ConversionResult(success=True, output_path=Path("/out/a.gif"), output_size=42)
        assert r.to_dict() == {
            "success": True,
            "outputPath": "/out/a.gif",
            "outputSize": 42,
            "error": None,
        }

    def test_failure_to_dict(self):
        assert ConversionResult(success=False, error="boom").to_dict()["outputPath"] is None
