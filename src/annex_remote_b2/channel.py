"""Line-oriented control channel spoken with git-annex.

Requests arrive one per line on an input byte stream; responses are written
one per line to an output byte stream and flushed immediately, so a reply is
never held back across request boundaries.
"""

import logging
import threading
from typing import BinaryIO, Optional

from .errors import ChannelClosedError

logger = logging.getLogger(__name__)


class ControlChannel:
    """
    Newline-framed request/response channel.

    Writes are serialized with a lock because progress notifications can be
    emitted from transfer worker threads while the dispatcher owns the
    channel.

    If ``debug_sink`` is given, every byte read and written is copied to it.
    The copy is purely diagnostic and never changes what is exchanged.
    """

    def __init__(
        self,
        input_stream: BinaryIO,
        output_stream: BinaryIO,
        debug_sink: Optional[BinaryIO] = None,
    ):
        self._in = input_stream
        self._out = output_stream
        self._debug = debug_sink
        self._lock = threading.Lock()

    def read_line(self) -> Optional[str]:
        """
        Read the next request line.

        Returns:
            The line without its trailing newline, or None at end of input

        Raises:
            OSError: If the input stream itself is unreadable
        """
        raw = self._in.readline()
        if not raw:
            return None
        self._tee(raw)
        line = raw.decode("utf-8", errors="surrogateescape")
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def write_line(self, line: str) -> None:
        """Write one response line and flush it."""
        data = (line + "\n").encode("utf-8", errors="surrogateescape")
        with self._lock:
            self._out.write(data)
            self._out.flush()
            self._tee(data)

    def send(self, *parts: str) -> None:
        """Write a response built from space-separated parts, skipping empty ones."""
        self.write_line(" ".join(p for p in parts if p))

    def ask(self, request: str, waiting_for: str) -> str:
        """
        Send a request to git-annex and block for its one-line reply.

        Raises:
            ChannelClosedError: If input ends before the reply arrives
        """
        self.write_line(request)
        reply = self.read_line()
        if reply is None:
            raise ChannelClosedError(waiting_for)
        return reply

    def _tee(self, data: bytes) -> None:
        if self._debug is None:
            return
        try:
            self._debug.write(data)
            self._debug.flush()
        except OSError as e:
            logger.debug("Debug sink write failed, disabling it: %s", e)
            self._debug = None
