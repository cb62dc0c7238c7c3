"""Progress monitoring for ffmpeg's ``-progress pipe:1`` output stream."""

import logging
import queue
import re
import threading
from typing import IO, Iterator

logger = logging.getLogger(__name__)

_OUT_TIME_RE = re.compile(r"^out_time_us=(-?\d+)\s*$")

_DONE = object()


def parse_progress_line(line: str, duration: float) -> float | None:
    """Convert an ``out_time_us=`` line into a percentage in [0, 100].

    Lines carrying any other key, or ``N/A`` values, return None.
    """
    match = _OUT_TIME_RE.match(line.strip())
    if match is None or duration <= 0:
        return None
    seconds = int(match.group(1)) / 1_000_000
    return min(max(seconds / duration * 100.0, 0.0), 100.0)


class ProgressMonitor:
    """Reads a progress stream on a background thread and yields percentages.

    The reader pushes values onto a queue so it never waits on whoever
    consumes them. Iteration ends when the stream is exhausted; a monitor
    can be iterated only once.
    """

    def __init__(self, stream: IO[str], duration: float):
        self._stream = stream
        self._duration = duration
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._read, daemon=True)
        self._consumed = False
        self._thread.start()

    def _read(self) -> None:
        try:
            for line in self._stream:
                pct = parse_progress_line(line, self._duration)
                if pct is not None:
                    self._queue.put(pct)
        except ValueError:
            # stream closed underneath us
            logger.debug("progress stream closed early")
        finally:
            self._queue.put(_DONE)

    def __iter__(self) -> Iterator[float]:
        if self._consumed:
            raise RuntimeError("ProgressMonitor can only be iterated once")
        self._consumed = True
        while True:
            item = self._queue.get()
            if item is _DONE:
                break
            yield item
        self._thread.join()
