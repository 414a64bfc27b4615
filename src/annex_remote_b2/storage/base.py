"""Base protocols for object storage implementations."""

from typing import BinaryIO, Optional, Protocol

from ..storage_models import ListedObject, ObjectInfo


class ObjectStore(Protocol):
    """
    Protocol for a bucket in the remote object store.

    Objects are addressed by full remote name (prefix already applied).
    Implementations raise ``StorageError`` for remote failures.
    """

    def list_by_exact_name(self, name: str) -> Optional[ListedObject]:
        """
        List at most one object, starting at ``name``.

        The entry returned may be the lexicographically next name when
        ``name`` itself is absent; callers must compare names.

        Args:
            name: Remote object name to start listing at

        Returns:
            First listed object or None if the listing is empty
        """
        ...

    def get_info(self, object_id: str) -> Optional[ObjectInfo]:
        """
        Fetch metadata for one object version.

        Returns:
            ObjectInfo, or None if the version no longer exists
        """
        ...

    def upload(self, name: str, stream: BinaryIO, sha1_hex: str, length: int) -> ObjectInfo:
        """
        Upload ``length`` bytes read from ``stream`` as ``name``.

        The precomputed hash lets the store verify integrity without
        re-hashing locally. ``stream`` must support ``seek`` so the upload
        can be restarted.
        """
        ...

    def download(self, name: str) -> BinaryIO:
        """
        Open the latest version of ``name`` for reading.

        The caller closes the returned stream.
        """
        ...

    def delete_version(self, name: str, object_id: str) -> None:
        """Delete one specific version of ``name``."""
        ...


class BucketProvider(Protocol):
    """Protocol for an authorized account that hands out buckets."""

    def open_bucket(self, name: str) -> Optional[ObjectStore]:
        """Return the named bucket, or None if it does not exist."""
        ...

    def create_bucket(self, name: str) -> ObjectStore:
        """Create a private bucket and return it."""
        ...
