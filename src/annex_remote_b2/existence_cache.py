"""Single-slot cache of the last existence lookup."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import EXISTENCE_CACHE_TTL
from .storage.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExistenceEntry:
    """Result of one presence lookup."""
    queried_name: str
    found: bool
    object_id: str
    observed_at: float


class ExistenceCache:
    """
    Remembers the most recent presence lookup for a short time.

    Only one entry is kept (last query wins). It is reused only for the same
    name and while younger than ``ttl`` seconds. Callers must ``invalidate``
    after uploading or deleting through the same store.

    Changes made by other processes are only noticed once the entry expires.
    """

    def __init__(
        self,
        store: ObjectStore,
        ttl: float = EXISTENCE_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl = ttl
        self.clock = clock
        self._entry: Optional[ExistenceEntry] = None

    def lookup(self, name: str) -> ExistenceEntry:
        """
        Return presence of ``name``, from the slot when still valid.

        Raises:
            StorageError: If a fresh listing fails (the slot is left as is)
        """
        now = self.clock()
        entry = self._entry
        if entry is not None and entry.queried_name == name and now - entry.observed_at < self.ttl:
            logger.debug("Existence cache hit for %s (found=%s)", name, entry.found)
            return entry

        listed = self.store.list_by_exact_name(name)
        # Listing starts at name and may return the next one
        if listed is not None and listed.name == name:
            entry = ExistenceEntry(name, True, listed.object_id, now)
        else:
            entry = ExistenceEntry(name, False, "", now)
        self._entry = entry
        return entry

    def invalidate(self) -> None:
        """Forget the cached entry."""
        self._entry = None
