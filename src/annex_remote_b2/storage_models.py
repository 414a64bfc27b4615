"""Data models exchanged with the remote object store.

These describe what the store tells us about objects (listing entries and
per-version metadata) and what we hand it for an upload.
"""

from typing import Optional

from pydantic import BaseModel, field_validator

UNVERIFIED_PREFIX = "unverified:"


def normalize_sha1(value: Optional[str]) -> Optional[str]:
    """
    Canonicalize a hex SHA-1 reported by the store.

    - Lowercased
    - ``unverified:`` prefix (client-supplied hash) stripped
    - ``none`` / empty (large files without a whole-file hash) -> None
    """
    if not value:
        return None
    value = value.strip().lower()
    if value.startswith(UNVERIFIED_PREFIX):
        value = value[len(UNVERIFIED_PREFIX):]
    if value in ("", "none"):
        return None
    return value


class ListedObject(BaseModel):
    """First entry returned by a name listing starting at a given name."""
    name: str                 # Full remote object name
    object_id: str            # Provider file/version id


class ObjectInfo(BaseModel):
    """Metadata of one stored object version."""
    object_id: str
    name: str
    content_sha1: Optional[str] = None   # Lowercase hex, None if unknown
    size: Optional[int] = None

    @field_validator("content_sha1")
    @classmethod
    def validate_sha1(cls, v: Optional[str]) -> Optional[str]:
        return normalize_sha1(v)

    def matches(self, sha1_hex: str) -> bool:
        """True if this version's stored hash equals ``sha1_hex``."""
        return self.content_sha1 is not None and self.content_sha1 == sha1_hex.lower()


class UploadIntent(BaseModel):
    """Hash and length of a local file, produced once per store call."""
    content_sha1: str
    content_length: int
