"""In-memory object storage implementation for testing."""

import bisect
import hashlib
import io
import uuid
from typing import BinaryIO, Dict, List, Optional, Tuple

from ..constants import CHUNK_SIZE
from ..errors import StorageError
from ..storage_models import ListedObject, ObjectInfo


class InMemoryObjectStore:
    """
    Dictionary-backed bucket for unit tests (avoids network access).

    Listing follows B2 semantics: it starts at the requested name and may
    return the lexicographically next one. Every call is recorded in
    ``calls`` as ``(operation, name_or_id)``.
    """

    def __init__(self):
        self.objects: Dict[str, Tuple[str, bytes, str]] = {}  # name -> (id, data, sha1)
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: Dict[str, Exception] = {}

    def put_object(self, name: str, data: bytes, sha1_hex: Optional[str] = None) -> str:
        """Seed an object directly, bypassing the call journal."""
        object_id = uuid.uuid4().hex
        self.objects[name] = (object_id, data, sha1_hex or hashlib.sha1(data).hexdigest())
        return object_id

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def _record(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def list_by_exact_name(self, name: str) -> Optional[ListedObject]:
        self._record("list", name)
        names = sorted(self.objects)
        i = bisect.bisect_left(names, name)
        if i == len(names):
            return None
        found = names[i]
        return ListedObject(name=found, object_id=self.objects[found][0])

    def get_info(self, object_id: str) -> Optional[ObjectInfo]:
        self._record("get_info", object_id)
        for name, (oid, data, sha1) in self.objects.items():
            if oid == object_id:
                return ObjectInfo(object_id=oid, name=name, content_sha1=sha1, size=len(data))
        return None

    def upload(self, name: str, stream: BinaryIO, sha1_hex: str, length: int) -> ObjectInfo:
        self._record("upload", name)
        stream.seek(0)
        buf = io.BytesIO()
        for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
            buf.write(chunk)
        data = buf.getvalue()

        if len(data) != length:
            raise StorageError(f"Length mismatch for {name}: declared {length}, sent {len(data)}")
        actual = hashlib.sha1(data).hexdigest()
        if actual != sha1_hex.lower():
            raise StorageError(f"Checksum mismatch for {name}: declared {sha1_hex}, sent {actual}")

        object_id = uuid.uuid4().hex
        self.objects[name] = (object_id, data, actual)
        return ObjectInfo(object_id=object_id, name=name, content_sha1=actual, size=length)

    def download(self, name: str) -> BinaryIO:
        self._record("download", name)
        if name not in self.objects:
            raise StorageError(f"Couldn't download file: {name} not found")
        return io.BytesIO(self.objects[name][1])

    def delete_version(self, name: str, object_id: str) -> None:
        self._record("delete", name)
        current = self.objects.get(name)
        if current is None or current[0] != object_id:
            raise StorageError(f"Couldn't delete file version: {name}@{object_id} not found")
        del self.objects[name]


class InMemoryAccount:
    """Account holding in-memory buckets; counts authorizations and opens."""

    def __init__(self, buckets: Optional[Dict[str, InMemoryObjectStore]] = None):
        self.buckets: Dict[str, InMemoryObjectStore] = dict(buckets or {})
        self.opened: List[str] = []
        self.created: List[str] = []

    def open_bucket(self, name: str) -> Optional[InMemoryObjectStore]:
        self.opened.append(name)
        return self.buckets.get(name)

    def create_bucket(self, name: str) -> InMemoryObjectStore:
        self.created.append(name)
        store = InMemoryObjectStore()
        self.buckets[name] = store
        return store
