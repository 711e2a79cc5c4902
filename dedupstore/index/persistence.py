"""
Filter Persistence

The dedup filter lives in memory but must survive restarts. Its snapshot is
stored as JSON in the durable key-value store, next to the file records,
under a key without expiry.

Contract:
- load() returns the snapshot dict, or None if none was ever saved
- save(index) overwrites the snapshot
- load_or_create() builds and immediately saves a fresh filter when no
  snapshot exists, so after startup a valid snapshot always exists

Failures raise PersistenceError; a snapshot that silently failed to save
would leave the in-memory filter out of sync with durable state.
"""

import json
import logging
from typing import Dict, Optional

from ..errors import PersistenceError
from ..storage.database import KeyValueStore
from .bloom import CountingBloomFilter

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = 'bloom_filter'


class FilterPersistence:
    """Loads and saves the counting bloom filter snapshot."""

    def __init__(self, store: KeyValueStore, key: str = SNAPSHOT_KEY):
        self.store = store
        self.key = key

    async def load(self) -> Optional[Dict]:
        """
        Load the serialized filter state.

        Returns:
            Snapshot dict, or None if no snapshot exists
        """
        raw = await self.store.get(self.key)
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Filter snapshot under {self.key} is not valid JSON: {e}")
            raise PersistenceError("Corrupted filter snapshot") from e

    async def save(self, index: CountingBloomFilter):
        """Persist a snapshot of the filter."""
        await self.store.set(self.key, index.to_json())
        logger.info(f"Bloom filter saved ({len(index)} elements)")

    async def load_or_create(self, capacity: int,
                             error_rate: float) -> CountingBloomFilter:
        """
        Load the filter, creating and saving an empty one if none exists.

        Args:
            capacity: Expected element count for a fresh filter
            error_rate: Target false-positive rate for a fresh filter
        """
        data = await self.load()

        if data is None:
            index = CountingBloomFilter.create(capacity, error_rate)
            await self.save(index)
            logger.info(
                f"Created bloom filter: {index.size} counters, "
                f"{index.hash_count} hashes"
            )
            return index

        try:
            index = CountingBloomFilter.from_dict(data)
        except ValueError as e:
            logger.error(f"Cannot restore bloom filter from snapshot: {e}")
            raise PersistenceError("Invalid filter snapshot") from e

        logger.info(f"Loaded bloom filter with {len(index)} elements")
        return index
