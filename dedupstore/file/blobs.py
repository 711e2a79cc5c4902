"""
Local Blob Storage

Design Decision: Storage Strategy
=================================

Options Considered:
1. Single flat directory with hash-named files
   - Simple, names are predictable, easy to wipe
   - Lookup needs a directory listing when the extension is unknown

2. Two-level directory (first 2 chars of hash)
   - Standard approach, prevents too many files per dir
   - More moving parts for a single-node staging area

3. Explicit hash -> path index in the durable store
   - O(1) lookup
   - One more piece of state to keep consistent with the disk

Decision: Single flat directory, lookup by hash prefix
- Blob name is {content_hash}{extension}, e.g. 2cf24d...9824.txt
- Callers only know the hash, so find() scans the listing for a name
  starting with it
- Fine at single-node blob counts; an explicit index is the upgrade path

Storage Layout:
```
dedup_data/
├── uploads/          # Blobs: <sha256><ext>
├── temp/             # Partial writes (renamed into uploads/)
└── dedup.db          # File records + filter snapshot
```
"""

import logging
import uuid
from pathlib import Path
from typing import Optional, AsyncIterator
from dataclasses import dataclass

import aiofiles
import aiofiles.os

from ..errors import NotFoundError

logger = logging.getLogger(__name__)

# Read size for streaming blobs out: 256KB
READ_CHUNK_SIZE = 256 * 1024


@dataclass
class BlobStats:
    """Statistics about stored blobs."""
    total_blobs: int
    total_bytes: int


def blob_name(content_hash: str, extension: str) -> str:
    """Build the on-disk name of a blob: {hash}{extension}."""
    return f"{content_hash}{extension}"


class LocalBlobStore:
    """
    Filesystem storage for payload bytes keyed by content hash.

    Provides:
    - Atomic blob writes
    - Lookup by hash prefix
    - Streaming and whole-blob reads
    - Single and bulk deletion
    """

    def __init__(self, blob_dir: Path, temp_dir: Path):
        """
        Initialize blob storage.

        Args:
            blob_dir: Flat directory holding every blob
            temp_dir: Scratch directory for in-flight writes (must not be blob_dir)
        """
        self.blob_dir = Path(blob_dir)
        self.temp_dir = Path(temp_dir)

        self._ensure_directories()

    def _ensure_directories(self):
        """Create storage directories if they don't exist."""
        for dir_path in [self.blob_dir, self.temp_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    # === Blob Operations ===

    async def write(self, content_hash: str, extension: str, data: bytes) -> Path:
        """
        Store a blob.

        Writes to a temp file first and renames it into place, so a reader
        never sees a partial blob. Writing the same content twice is harmless:
        the last rename wins with identical bytes.

        Returns:
            Final path of the blob
        """
        blob_path = self.blob_dir / blob_name(content_hash, extension)
        temp_path = self.temp_dir / f"{content_hash}.{uuid.uuid4().hex}.tmp"

        async with aiofiles.open(temp_path, 'wb') as f:
            await f.write(data)

        await aiofiles.os.replace(temp_path, blob_path)

        logger.debug(f"Blob written: {blob_path.name} ({len(data)} bytes)")
        return blob_path

    async def find(self, content_hash: str) -> Optional[Path]:
        """
        Locate a blob by its content hash.

        Scans the directory for a file whose name starts with the hash.

        Returns:
            Path of the blob, or None if not stored
        """
        if not content_hash:
            return None

        for blob_path in self.blob_dir.iterdir():
            if blob_path.is_file() and blob_path.name.startswith(content_hash):
                return blob_path

        return None

    async def read(self, content_hash: str,
                   chunk_size: int = READ_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """
        Open a blob as an async stream of chunks.

        The blob is located eagerly so a missing blob fails here rather than
        on first iteration.

        Raises:
            NotFoundError: if no blob matches the hash
        """
        blob_path = await self.find(content_hash)
        if blob_path is None:
            raise NotFoundError(f"No blob stored for hash {content_hash[:16]}...")

        return self.stream(blob_path, chunk_size)

    async def stream(self, blob_path: Path,
                     chunk_size: int = READ_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield a blob file in chunks."""
        async with aiofiles.open(blob_path, 'rb') as f:
            while True:
                data = await f.read(chunk_size)
                if not data:
                    break
                yield data

    async def read_bytes(self, content_hash: str) -> bytes:
        """
        Read a whole blob into memory.

        Raises:
            NotFoundError: if no blob matches the hash
        """
        blob_path = await self.find(content_hash)
        if blob_path is None:
            raise NotFoundError(f"No blob stored for hash {content_hash[:16]}...")

        return await self.read_file(blob_path)

    async def read_file(self, blob_path: Path) -> bytes:
        """Read a blob file already located with find()."""
        async with aiofiles.open(blob_path, 'rb') as f:
            return await f.read()

    async def delete(self, content_hash: str) -> bool:
        """Delete the blob for a hash. Returns False if none was stored."""
        blob_path = await self.find(content_hash)

        if blob_path is None:
            return False

        await aiofiles.os.remove(blob_path)
        logger.debug(f"Blob deleted: {blob_path.name}")
        return True

    async def clear(self) -> int:
        """
        Remove every blob in the storage directory.

        Returns:
            Number of blobs removed
        """
        removed = 0

        for blob_path in list(self.blob_dir.iterdir()):
            if blob_path.is_file():
                await aiofiles.os.remove(blob_path)
                removed += 1

        return removed

    # === Statistics ===

    async def get_stats(self) -> BlobStats:
        """Get storage statistics."""
        total_blobs = 0
        total_bytes = 0

        for blob_path in self.blob_dir.iterdir():
            if blob_path.is_file():
                total_blobs += 1
                total_bytes += blob_path.stat().st_size

        return BlobStats(total_blobs=total_blobs, total_bytes=total_bytes)
