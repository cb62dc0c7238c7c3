"""Encoder capability detection, probed lazily and cached per kind."""

import enum
import logging
import subprocess
import threading
from typing import Callable

from sizefit import ffutil

logger = logging.getLogger(__name__)


class Capability(enum.Enum):
    """Hardware encoders, valued by their ffmpeg encoder name."""

    HW_H264 = "h264_nvenc"
    HW_HEVC = "hevc_nvenc"


def probe_encoder(capability: Capability, ffmpeg: str = "ffmpeg") -> bool:
    """Return True if ffmpeg lists the capability's encoder.

    A binary that cannot be launched counts as "not available".
    """
    try:
        listing = ffutil.list_encoders(ffmpeg)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Could not list ffmpeg encoders: %s", e)
        return False
    return capability.value in listing


class CapabilityCache:
    """Write-once-per-kind map of capability -> availability.

    Values are never invalidated: a GPU that disappears mid-session keeps
    reporting as available.
    """

    def __init__(self, probe: Callable[[Capability], bool] | None = None):
        self._probe = probe or probe_encoder
        self._values: dict[Capability, bool] = {}
        self._lock = threading.Lock()

    def available(self, capability: Capability) -> bool:
        with self._lock:
            if capability not in self._values:
                self._values[capability] = bool(self._probe(capability))
                logger.info(
                    "Capability %s available: %s", capability.value, self._values[capability]
                )
            return self._values[capability]


_default_caches: dict[str, CapabilityCache] = {}
_default_lock = threading.Lock()


def default_cache(ffmpeg: str = "ffmpeg") -> CapabilityCache:
    """Process-wide cache for one ffmpeg binary, created on first use."""
    with _default_lock:
        if ffmpeg not in _default_caches:
            _default_caches[ffmpeg] = CapabilityCache(lambda cap: probe_encoder(cap, ffmpeg))
        return _default_caches[ffmpeg]
