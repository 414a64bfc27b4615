"""Progress notifications for long transfers."""

import threading
from typing import BinaryIO

from .channel import ControlChannel
from .constants import PROGRESS_THRESHOLD


class ProgressReporter:
    """
    Emits ``PROGRESS <bytes>`` lines as data flows through wrapped streams.

    A line is written whenever the running total has grown by more than
    ``threshold`` bytes since the last line. Reported totals never decrease:
    if a transfer restarts its stream (``restart``), counting starts again
    from zero but nothing is emitted until the previous high-water mark is
    passed.
    """

    def __init__(self, channel: ControlChannel, threshold: int = PROGRESS_THRESHOLD):
        self.channel = channel
        self.threshold = threshold
        self.total = 0
        self.last_reported = 0
        self._lock = threading.Lock()

    def advance(self, n: int) -> None:
        """Account for ``n`` more bytes transferred."""
        if n <= 0:
            return
        with self._lock:
            self.total += n
            if self.total - self.last_reported <= self.threshold:
                return
            self.last_reported = self.total
            self.channel.write_line(f"PROGRESS {self.total}")

    def restart(self, position: int = 0) -> None:
        """Resume counting at ``position``, keeping the reported high-water mark."""
        with self._lock:
            self.total = position

    def reader(self, stream: BinaryIO) -> "ProgressReader":
        return ProgressReader(stream, self)

    def writer(self, stream: BinaryIO) -> "ProgressWriter":
        return ProgressWriter(stream, self)


class ProgressReader:
    """
    Read-side wrapper; bytes pass through unchanged.

    Usable wherever a readable file object is expected, including as a
    context manager. Closing the wrapper leaves the wrapped stream open so
    it can be reopened by seeking.
    """

    def __init__(self, stream: BinaryIO, reporter: ProgressReporter):
        self._stream = stream
        self._reporter = reporter

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        self._reporter.advance(len(data))
        return data

    def seek(self, offset: int, whence: int = 0) -> int:
        position = self._stream.seek(offset, whence)
        self._reporter.restart(position)
        return position

    def tell(self) -> int:
        return self._stream.tell()

    def seekable(self) -> bool:
        return self._stream.seekable()

    def readable(self) -> bool:
        return True

    def flush(self) -> None:
        pass

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def close(self) -> None:
        # The wrapped stream belongs to the caller
        pass

    def __enter__(self) -> "ProgressReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ProgressWriter:
    """Write-side wrapper; bytes pass through unchanged."""

    def __init__(self, stream: BinaryIO, reporter: ProgressReporter):
        self._stream = stream
        self._reporter = reporter

    def write(self, data: bytes) -> int:
        written = self._stream.write(data)
        self._reporter.advance(len(data) if written is None else written)
        return written

    def flush(self) -> None:
        self._stream.flush()
