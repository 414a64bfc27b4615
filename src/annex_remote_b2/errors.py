"""Custom exceptions for git-annex-remote-b2.

This module defines typed exceptions so that every failure can be reported
back to git-annex as the matching ``*-FAILURE`` line with a readable message.
"""


class RemoteError(RuntimeError):
    """Base class for all remote-related errors."""
    pass


# Configuration Errors
class ConfigError(RemoteError):
    """Base class for configuration errors."""
    pass


class MissingConfigError(ConfigError):
    """A required configuration value was not supplied."""

    def __init__(self, field: str, hint: str):
        self.field = field
        super().__init__(f"You must set {field} to {hint}")


class BucketMissingError(ConfigError):
    """The configured bucket does not exist and may not be created."""

    def __init__(self, bucket: str):
        self.bucket = bucket
        super().__init__(
            f"Bucket {bucket!r} no longer exists. "
            f"Re-run 'git annex initremote' to create it."
        )


# Storage Errors
class StorageError(RemoteError):
    """Remote object store operation failed."""
    pass


class NotConfiguredError(StorageError):
    """A storage operation was requested before setup completed."""

    def __init__(self):
        super().__init__(
            "Remote is not prepared. INITREMOTE or PREPARE must succeed first."
        )


# Local Errors
class LocalIOError(RemoteError):
    """Reading or writing a local file failed."""

    def __init__(self, action: str, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Couldn't {action} {path}: {cause}")


# Protocol Errors
class ProtocolError(RemoteError):
    """A control line could not be understood."""
    pass


class ChannelClosedError(ProtocolError):
    """Control channel ended while a reply was still expected."""

    def __init__(self, waiting_for: str):
        self.waiting_for = waiting_for
        super().__init__(f"Control channel closed while waiting for {waiting_for}")
