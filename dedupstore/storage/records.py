"""
File Records

Maps an upload's file ID to the content hash of its blob and the filename
the client uploaded it under.

Key layout (each with the record TTL, 30 days by default):
- file:{file_id}:hash      -> content hash (hex)
- file:{file_id}:filename  -> original filename

Records are indexed by file ID only. Finding every record that points at a
given hash requires a full keyspace scan.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import RECORD_TTL_SECONDS
from .database import KeyValueStore, SCAN_BATCH_SIZE

logger = logging.getLogger(__name__)

RECORD_FIELDS = ('hash', 'filename')

HASH_KEY_PATTERN = 'file:*:hash'
FILENAME_KEY_PATTERN = 'file:*:filename'


def record_key(file_id: str, field: str) -> str:
    """Build the durable key of one record field."""
    return f"file:{file_id}:{field}"


def file_id_from_key(key: str) -> str:
    """Extract the file ID from a record key."""
    return key.split(':')[1]


@dataclass
class FileRecord:
    """A resolved file record."""
    file_id: str
    content_hash: str
    filename: Optional[str]
    expires_in: Optional[float] = None  # seconds


class FileRecordStore:
    """
    Durable, expiring file ID -> (content hash, filename) mapping.
    """

    def __init__(self, store: KeyValueStore, ttl: int = RECORD_TTL_SECONDS,
                 scan_batch_size: int = SCAN_BATCH_SIZE):
        self.store = store
        self.ttl = ttl
        self.scan_batch_size = scan_batch_size

    async def put(self, file_id: str, content_hash: str, filename: str):
        """Write both record entries, each with the record TTL."""
        await self.store.set(record_key(file_id, 'hash'), content_hash, ttl=self.ttl)
        await self.store.set(record_key(file_id, 'filename'), filename, ttl=self.ttl)
        logger.info(f"File info saved for file ID {file_id}")

    async def get(self, file_id: str, field: str) -> Optional[str]:
        """
        Read one record field.

        Args:
            field: 'hash' or 'filename'
        """
        if field not in RECORD_FIELDS:
            raise ValueError(f"Unknown record field: {field}")

        return await self.store.get(record_key(file_id, field))

    async def get_record(self, file_id: str) -> Optional[FileRecord]:
        """Read a full record, or None if the file ID is unknown or expired."""
        content_hash = await self.get(file_id, 'hash')
        if content_hash is None:
            return None

        filename = await self.get(file_id, 'filename')
        expires_in = await self.store.ttl(record_key(file_id, 'hash'))
        return FileRecord(
            file_id=file_id,
            content_hash=content_hash,
            filename=filename,
            expires_in=expires_in,
        )

    async def delete_by_file_id(self, file_id: str) -> bool:
        """Delete both entries of a record. Returns False if none existed."""
        deleted = await self.store.delete(
            record_key(file_id, 'hash'),
            record_key(file_id, 'filename'),
        )
        return deleted > 0

    async def delete_all_with_hash(self, content_hash: str) -> int:
        """
        Delete every record pointing at a content hash.

        Scans all hash keys batch by batch, resuming from each returned cursor
        until the scan reports completion. Safe to repeat.

        Returns:
            Number of records deleted
        """
        deleted = 0
        cursor = 0

        while True:
            cursor, keys = await self.store.scan(
                cursor, match=HASH_KEY_PATTERN, count=self.scan_batch_size
            )

            for key in keys:
                if await self.store.get(key) != content_hash:
                    continue

                file_id = file_id_from_key(key)
                if await self.delete_by_file_id(file_id):
                    deleted += 1
                    logger.info(f"Deleted file info for file ID {file_id} (shared hash)")

            if cursor == 0:
                break

        return deleted

    async def delete_all(self) -> int:
        """
        Delete every file record.

        Returns:
            Number of records deleted (counted by hash keys)
        """
        deleted = await self.store.delete_by_pattern(
            HASH_KEY_PATTERN, count=self.scan_batch_size
        )
        await self.store.delete_by_pattern(
            FILENAME_KEY_PATTERN, count=self.scan_batch_size
        )
        return deleted

    async def count(self) -> int:
        """Number of live file records."""
        return await self.store.count_keys(HASH_KEY_PATTERN)
