# truststore.py
import logging
from typing import List

from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from .database import TrustedKey
from .errors import StorageError

logger = logging.getLogger(__name__)


class TrustStore:
    """Durable, deduplicated set of trusted public keys."""

    async def add_trusted_key(self, public_key_b64: str) -> bool:
        """Store a key. Returns False if it was already trusted."""
        try:
            async with in_transaction():
                _, created = await TrustedKey.get_or_create(public_key=public_key_b64)
        except BaseORMException as e:
            raise StorageError(f"Could not store trusted key: {e}") from e
        if created:
            logger.info("Trusted new public key (%d chars)", len(public_key_b64))
        return created

    async def list_trusted_keys(self) -> List[str]:
        """All trusted keys, oldest first. This is the verification scan order."""
        try:
            # The key string is the primary key, so rowid is the only record of insertion order
            rows = await TrustedKey.raw(f"SELECT * FROM {TrustedKey._meta.db_table} ORDER BY rowid")
            return [row.public_key for row in rows]
        except BaseORMException as e:
            raise StorageError(f"Could not read trusted keys: {e}") from e

    async def count(self) -> int:
        try:
            return await TrustedKey.all().count()
        except BaseORMException as e:
            raise StorageError(f"Could not count trusted keys: {e}") from e
