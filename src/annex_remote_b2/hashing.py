"""Content hashing used to decide whether an upload can be skipped.

The remote store records a SHA-1 per object, so local files are hashed with
SHA-1 to compare against it and to let the store verify uploads.
"""

import hashlib
from concurrent.futures import Future, ThreadPoolExecutor
from typing import BinaryIO

from .constants import CHUNK_SIZE
from .storage_models import UploadIntent


def hash_stream(fh: BinaryIO) -> UploadIntent:
    """Hash ``fh`` from its current position to EOF, then rewind it.

    Args:
        fh: Seekable binary file handle

    Returns:
        UploadIntent with hex SHA-1 and byte length
    """
    sha1 = hashlib.sha1()
    length = 0
    for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
        sha1.update(chunk)
        length += len(chunk)
    fh.seek(0)
    return UploadIntent(content_sha1=sha1.hexdigest(), content_length=length)


class ContentVerifier:
    """Runs ``hash_stream`` in the background.

    The returned future is the completion signal: its result (or the
    exception raised while hashing) is only read at ``result()``.
    The handle must not be used by the caller until the future is done.
    """

    def __init__(self, executor: ThreadPoolExecutor):
        self.executor = executor

    def start(self, fh: BinaryIO) -> "Future[UploadIntent]":
        return self.executor.submit(hash_stream, fh)
