"""Factory for connecting to the configured bucket."""

import logging

from ..config import RemoteConfig
from ..errors import BucketMissingError
from .b2 import B2Account
from .base import BucketProvider, ObjectStore

logger = logging.getLogger(__name__)


def connect_b2(config: RemoteConfig, realm: str = "production") -> BucketProvider:
    """
    Authorize a B2 account from resolved configuration.

    Args:
        config: Resolved remote configuration
        realm: B2 realm

    Returns:
        Authorized account

    Raises:
        StorageError: If authorization fails
    """
    return B2Account(config.account_id, config.app_key, realm=realm)


def open_object_store(account: BucketProvider, bucket: str, may_create: bool) -> ObjectStore:
    """
    Open ``bucket``, creating it as a private bucket when allowed.

    Args:
        account: Authorized account
        bucket: Bucket name
        may_create: True on INITREMOTE, False on PREPARE

    Returns:
        ObjectStore bound to the bucket

    Raises:
        BucketMissingError: If the bucket is absent and may not be created
        StorageError: If the lookup or creation fails
    """
    store = account.open_bucket(bucket)
    if store is not None:
        return store

    if not may_create:
        raise BucketMissingError(bucket)

    logger.info("Creating private B2 bucket %r", bucket)
    return account.create_bucket(bucket)
