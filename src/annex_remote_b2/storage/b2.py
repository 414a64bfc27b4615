"""Backblaze B2 object storage implementation."""

import logging
from contextlib import contextmanager
from typing import BinaryIO, Optional

from ..constants import CHUNK_SIZE, PRIVATE_BUCKET_TYPE
from ..errors import StorageError
from ..storage_models import ListedObject, ObjectInfo

logger = logging.getLogger(__name__)


class B2Account:
    """
    Authorized B2 account.

    Authorization happens once, in the constructor.
    """

    def __init__(self, account_id: str, app_key: str, realm: str = "production"):
        """
        Authorize against B2.

        Args:
            account_id: Account id or application key id
            app_key: Application key
            realm: B2 realm ("production" unless testing against staging)

        Raises:
            StorageError: If authorization fails
        """
        try:
            from b2sdk.v2 import B2Api, InMemoryAccountInfo
        except ImportError:
            raise ImportError(
                "b2sdk required for Backblaze B2 storage. "
                "Install with: pip install b2sdk"
            )

        self.api = B2Api(InMemoryAccountInfo())
        with _storage_errors("authorize"):
            self.api.authorize_account(realm, account_id, app_key)

    def open_bucket(self, name: str) -> Optional["B2ObjectStore"]:
        """
        Look up a bucket by name.

        Returns:
            B2ObjectStore, or None if no such bucket exists
        """
        from b2sdk.v2.exception import NonExistentBucket

        with _storage_errors(f"open bucket {name!r}"):
            try:
                bucket = self.api.get_bucket_by_name(name)
            except NonExistentBucket:
                return None
        return B2ObjectStore(self.api, bucket)

    def create_bucket(self, name: str) -> "B2ObjectStore":
        """Create a private bucket."""
        with _storage_errors(f"create bucket {name!r}"):
            bucket = self.api.create_bucket(name, PRIVATE_BUCKET_TYPE)
        return B2ObjectStore(self.api, bucket)


class B2ObjectStore:
    """
    One B2 bucket.

    Every error raised while talking to b2sdk, including ones that are not
    B2Error, is re-raised as StorageError with the failing operation in
    the message.
    """

    def __init__(self, api, bucket):
        self.api = api
        self.bucket = bucket

    def list_by_exact_name(self, name: str) -> Optional[ListedObject]:
        # First name >= name, one entry
        with _storage_errors("list filenames"):
            response = self.api.session.list_file_names(self.bucket.id_, name, 1)

        files = response.get("files") or []
        if not files:
            return None
        first = files[0]
        return ListedObject(name=first["fileName"], object_id=first["fileId"])

    def get_info(self, object_id: str) -> Optional[ObjectInfo]:
        from b2sdk.v2.exception import FileNotPresent

        with _storage_errors(f"get file info for {object_id}"):
            try:
                version = self.api.get_file_info(object_id)
            except FileNotPresent:
                return None

        if version is None:
            return None
        return ObjectInfo(
            object_id=version.id_,
            name=version.file_name,
            content_sha1=version.content_sha1,
            size=version.size,
        )

    def upload(self, name: str, stream: BinaryIO, sha1_hex: str, length: int) -> ObjectInfo:
        from b2sdk.v2 import UploadSourceStream

        def reopen():
            # b2sdk may reopen the source to retry
            stream.seek(0)
            return stream

        with _storage_errors("upload file"):
            source = UploadSourceStream(reopen, stream_length=length, stream_sha1=sha1_hex)
            version = self.bucket.upload(source, name)

        logger.debug("Uploaded %s as %s", name, version.id_)
        return ObjectInfo(
            object_id=version.id_,
            name=version.file_name,
            content_sha1=version.content_sha1,
            size=version.size,
        )

    def download(self, name: str) -> BinaryIO:
        with _storage_errors("download file"):
            downloaded = self.bucket.download_file_by_name(name)
            return _DownloadStream(name, downloaded.response)

    def delete_version(self, name: str, object_id: str) -> None:
        with _storage_errors("delete file version"):
            self.bucket.delete_file_version(object_id, name)


@contextmanager
def _storage_errors(action: str):
    """Re-raise anything escaping the block as StorageError."""
    try:
        yield
    except StorageError:
        raise
    except Exception as e:
        raise StorageError(f"Couldn't {action}: {e}") from e


class _DownloadStream:
    """Response body as a readable stream; read errors surface as StorageError."""

    def __init__(self, name: str, response, chunk_size: int = CHUNK_SIZE):
        self.name = name
        self.response = response
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._buffer = b""

    def read(self, size: int = -1) -> bytes:
        try:
            while size < 0 or len(self._buffer) < size:
                chunk = next(self._chunks, None)
                if chunk is None:
                    break
                self._buffer += chunk
        except Exception as e:
            raise StorageError(f"Couldn't download {self.name}: {e}") from e

        if size < 0:
            data, self._buffer = self._buffer, b""
        else:
            data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def close(self) -> None:
        self.response.close()
