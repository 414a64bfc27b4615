"""git-annex external special remote for Backblaze B2."""

from .constants import REMOTE_VERSION as __version__
from .remote import SpecialRemote

__all__ = ["SpecialRemote", "__version__"]
