"""Storage package for the remote object store."""

from .base import BucketProvider, ObjectStore
from .factory import connect_b2, open_object_store

__all__ = ["BucketProvider", "ObjectStore", "connect_b2", "open_object_store"]
