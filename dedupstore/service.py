"""
File Service - Main Controller

Orchestrates all components into upload / download / delete operations:
- ContentHasher for content digests
- CountingBloomFilter as the fast dedup signal
- FilterPersistence for the filter snapshot
- FileRecordStore for file ID -> (hash, filename)
- LocalBlobStore for the bytes
- RemoteArchive for the staging-area delivery path

The filter is shared mutable state owned by one FileService instance. There
is no locking: two concurrent uploads of the same new content can both see
"absent", both write the (identical) blob and both save the snapshot. That
is redundant but safe.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, AsyncIterator
from urllib.parse import quote, unquote

from .config import Config
from .errors import (
    FileServiceError,
    ValidationError,
    UnsupportedDeliveryError,
    NotFoundError,
    PersistenceError,
    RemoteArchiveError,
)
from .file import ContentHasher, LocalBlobStore, is_content_hash
from .index import CountingBloomFilter, FilterPersistence
from .storage import KeyValueStore, FileRecord, FileRecordStore
from .archive import (
    RemoteArchive,
    S3Archive,
    ArchivedFile,
    make_archive_key,
    format_size,
)

logger = logging.getLogger(__name__)

# Delivery paths
WAY_LOCAL = 'local'
WAY_STAGING_AREA = 'staging-area'
WAY_GOOGLE_CLOUD = 'google-cloud'  # reserved third-party path


@dataclass
class UploadResult:
    """Outcome of an upload."""
    file_id: str
    filename: str
    already_existed: bool

    def to_dict(self) -> dict:
        return {
            'fileId': self.file_id,
            'filename': self.filename,
            'alreadyExisted': self.already_existed,
        }


@dataclass
class LocalDownload:
    """A blob served from local disk."""
    file_id: str
    filename: Optional[str]
    path: Path
    stream: AsyncIterator[bytes]
    expires_in: Optional[float] = None  # seconds until the record expires


@dataclass
class StagedDownload:
    """A blob pushed to the remote archive."""
    file_id: str
    filename: Optional[str]
    location: str

    def to_dict(self) -> dict:
        return {
            'fileId': self.file_id,
            'filename': self.filename,
            'location': self.location,
        }


@dataclass
class DeleteResult:
    """Outcome of deleting one file ID."""
    file_id: str
    content_hash: str
    records_removed: int


@dataclass
class PurgeResult:
    """Outcome of deleting everything."""
    blobs_removed: int
    records_removed: int


@contextmanager
def _log_failure(operation: str):
    """Log a failing operation with context, then propagate."""
    try:
        yield
    except FileServiceError as e:
        logger.error(f"{operation} failed: {e}")
        raise
    except OSError as e:
        logger.error(f"{operation} failed: {e}", exc_info=True)
        raise PersistenceError(f"{operation} failed: {e}") from e


class FileService:
    """
    Content-addressable file store with probabilistic deduplication.

    Usage:
        async with FileService(config) as service:
            result = await service.upload(data, "report.pdf")
            download = await service.download(result.file_id, "local")
    """

    def __init__(self, config: Config = None,
                 archive: Optional[RemoteArchive] = None):
        """
        Initialize the service.

        Args:
            config: Service configuration (uses defaults if not provided)
            archive: Remote archive for staging-area downloads; built from
                config.archive_bucket when omitted and a bucket is set
        """
        self.config = config or Config()
        self.config.validate()

        self.store = KeyValueStore(self.config.db_path)
        self.records = FileRecordStore(
            self.store,
            ttl=self.config.record_ttl,
            scan_batch_size=self.config.scan_batch_size,
        )
        self.persistence = FilterPersistence(self.store)
        self.blobs = LocalBlobStore(self.config.blob_dir, self.config.temp_dir)
        self.hasher = ContentHasher()

        if archive is None and self.config.archive_bucket:
            archive = S3Archive(self.config.archive_bucket, self.config.archive_region)
        self.archive = archive

        self.index: Optional[CountingBloomFilter] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """
        Start the service.

        Opens the durable store and loads the dedup filter, creating and
        persisting an empty one on first run.
        """
        if self._running:
            return

        await self.store.connect()
        try:
            self.index = await self.persistence.load_or_create(
                self.config.bloom_capacity,
                self.config.bloom_error_rate,
            )
        except Exception:
            await self.store.close()
            raise
        self._running = True

        logger.info("File service started")
        logger.info(f"  Blob Dir: {self.config.blob_dir}")
        logger.info(f"  Database: {self.config.db_path}")

    async def stop(self):
        """Stop the service."""
        if not self._running:
            return

        self._running = False
        await self.store.close()

        logger.info("File service stopped")

    async def __aenter__(self) -> 'FileService':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    def _require_running(self):
        if not self._running:
            raise FileServiceError("File service is not started")

    async def _resolve_record(self, file_id: str) -> FileRecord:
        if not file_id:
            raise ValidationError("File ID is required")

        record = await self.records.get_record(file_id)
        if record is None:
            raise NotFoundError(f"File not found: {file_id}")
        return record

    async def _locate_blob(self, file_id: str, content_hash: str) -> Path:
        # Blobs are matched by name prefix, so only a full digest is safe
        if not is_content_hash(content_hash):
            raise NotFoundError(f"File not found: {file_id}")

        blob_path = await self.blobs.find(content_hash)
        if blob_path is None:
            raise NotFoundError(f"File not found: {file_id}")
        return blob_path

    # === File Operations ===

    async def upload(self, payload: bytes, filename: str) -> UploadResult:
        """
        Store an uploaded file.

        Steps run strictly in order:
        1. Generate the file ID and hash the payload
        2. Save the file record (even if the content is a duplicate)
        3. Ask the filter whether the content is already stored
        4. If not: write the blob, add it to the filter, save the snapshot

        The record is written first so every returned file ID resolves. A
        crash before the blob write leaves a record without a blob; it
        expires with the record TTL.

        Args:
            payload: Raw file bytes (must not be empty)
            filename: Original filename, possibly percent-encoded

        Returns:
            UploadResult with the new file ID
        """
        self._require_running()

        with _log_failure(f"Upload of {filename!r}"):
            if not payload:
                raise ValidationError("No file was uploaded.")
            if not filename:
                raise ValidationError("Filename is required.")

            file_id = str(uuid.uuid4())
            original_filename = unquote(filename)
            content_hash = self.hasher.hash(payload)

            await self.records.put(file_id, content_hash, original_filename)

            if self.index.has(payload):
                logger.info(
                    f"File {original_filename} ({content_hash[:16]}...) "
                    f"already exists in the store"
                )
                return UploadResult(file_id, original_filename, already_existed=True)

            blob_path = await self.blobs.write(
                content_hash, Path(original_filename).suffix, payload
            )
            self.index.add(payload)
            logger.info(f"File ID: {file_id} successfully saved as {blob_path.name}")

            await self.persistence.save(self.index)

            return UploadResult(file_id, original_filename, already_existed=False)

    async def download(self, file_id: str, way: str,
                       archive_type: Optional[str] = None,
                       owner_id: Optional[str] = None):
        """
        Deliver a stored file.

        Args:
            file_id: File ID returned by upload
            way: Delivery path - 'local' or 'staging-area'
            archive_type: 'user' or 'room' (staging-area only)
            owner_id: User or room ID (staging-area only)

        Returns:
            LocalDownload for 'local', StagedDownload for 'staging-area'

        Raises:
            ValidationError: missing parameters or unknown delivery path
            NotFoundError: unknown file ID or missing blob
            RemoteArchiveError: archive upload failed or no archive configured
        """
        self._require_running()

        with _log_failure(f"Download of {file_id} via {way}"):
            record = await self._resolve_record(file_id)
            blob_path = await self._locate_blob(file_id, record.content_hash)

            if way == WAY_LOCAL:
                return await self._local_download(record, blob_path)

            if way == WAY_STAGING_AREA:
                if not archive_type or not owner_id:
                    raise ValidationError(
                        "Type and id query parameters are required "
                        "for staging-area download."
                    )
                return await self._staging_area_download(
                    record, blob_path, archive_type, owner_id
                )

            if way == WAY_GOOGLE_CLOUD:
                raise UnsupportedDeliveryError(f"Delivery via {way} is not available yet.")

            raise ValidationError(f"Invalid download way: {way}")

    async def _local_download(self, record: FileRecord, blob_path: Path) -> LocalDownload:
        stream = await self.blobs.read(record.content_hash, self.config.read_chunk_size)

        return LocalDownload(
            file_id=record.file_id,
            filename=record.filename,
            path=blob_path,
            stream=stream,
            expires_in=record.expires_in,
        )

    async def _staging_area_download(self, record: FileRecord, blob_path: Path,
                                     archive_type: str,
                                     owner_id: str) -> StagedDownload:
        key = make_archive_key(archive_type, owner_id, blob_path.name)
        if self.archive is None:
            raise RemoteArchiveError("No remote archive is configured")

        filename = record.filename or blob_path.name
        body = await self.blobs.read_file(blob_path)
        metadata = {'originalName': quote(filename, safe="-_.!~*'()")}

        location = await self.archive.put(key, body, metadata)
        logger.info(f"File ID: {record.file_id} staged to {location}")

        return StagedDownload(
            file_id=record.file_id,
            filename=record.filename,
            location=location,
        )

    async def delete(self, file_id: str) -> DeleteResult:
        """
        Delete a file and every record sharing its content.

        Steps run strictly in order:
        1. Resolve the hash and locate the blob
        2. Remove the content from the filter (only if the blob still matches
           its hash) and the blob from disk
        3. Save the filter snapshot
        4. Delete this file's record
        5. Delete every other record pointing at the same hash, since the
           single blob they shared is gone

        Raises:
            NotFoundError: unknown file ID or missing blob
        """
        self._require_running()

        with _log_failure(f"Delete of {file_id}"):
            content_hash = (await self._resolve_record(file_id)).content_hash
            await self._locate_blob(file_id, content_hash)

            payload = await self.blobs.read_bytes(content_hash)
            if self.hasher.hash(payload) == content_hash:
                self.index.remove(payload)
            else:
                # Removing other bytes would decrement counters of unrelated content
                logger.warning(
                    f"Blob for {content_hash[:16]}... no longer matches its hash; "
                    f"leaving the filter unchanged"
                )
            await self.blobs.delete(content_hash)
            logger.info(f"File ID: {file_id} deleted successfully.")

            await self.persistence.save(self.index)

            removed = 1 if await self.records.delete_by_file_id(file_id) else 0
            logger.info(f"File info deleted for file ID {file_id}")

            removed += await self.records.delete_all_with_hash(content_hash)

            return DeleteResult(
                file_id=file_id,
                content_hash=content_hash,
                records_removed=removed,
            )

    async def delete_all(self) -> PurgeResult:
        """
        Delete every blob and record and reset the filter.

        The filter is rebuilt empty from configuration and saved before the
        records are removed.
        """
        self._require_running()

        with _log_failure("Delete of all files"):
            blobs_removed = await self.blobs.clear()

            self.index = CountingBloomFilter.create(
                self.config.bloom_capacity,
                self.config.bloom_error_rate,
            )
            await self.persistence.save(self.index)

            records_removed = await self.records.delete_all()
            logger.info(
                f"All files deleted: {blobs_removed} blobs, {records_removed} records"
            )

            return PurgeResult(blobs_removed=blobs_removed, records_removed=records_removed)

    # === Remote Archive ===

    async def list_archived(self, user_id: str) -> List[ArchivedFile]:
        """
        List the files a user has in the remote archive.

        Raises:
            ValidationError: if user_id is missing
            RemoteArchiveError: listing failed, an object lacks its
                original-name metadata, or no archive is configured
        """
        with _log_failure(f"Listing archive of user {user_id}"):
            if not user_id:
                raise ValidationError("User ID is required to fetch the file list")
            if self.archive is None:
                raise RemoteArchiveError("No remote archive is configured")

            prefix = f"user/{user_id}/"
            objects = await self.archive.list(prefix)

            files = []
            for obj in objects:
                metadata = await self.archive.head(obj.key)
                original_name = metadata.get('originalname')
                if not original_name:
                    raise RemoteArchiveError(f"Metadata missing for file: {obj.key}")

                files.append(ArchivedFile(
                    original_name=unquote(original_name),
                    filename=obj.key.split('/')[-1],
                    size=format_size(obj.size),
                    last_modified=obj.last_modified,
                ))

            logger.info(f"Fetched {len(files)} archived files for user: {user_id}")
            return files

    # === Statistics ===

    async def get_stats(self) -> dict:
        """Get blob, record and filter statistics."""
        self._require_running()

        blob_stats = await self.blobs.get_stats()
        return {
            'running': self._running,
            'blobs': blob_stats.total_blobs,
            'bytes': blob_stats.total_bytes,
            'records': await self.records.count(),
            'index': {
                'elements': len(self.index),
                'size': self.index.size,
                'hash_count': self.index.hash_count,
                'capacity': self.index.capacity,
                'error_rate': self.index.error_rate,
                'estimated_rate': self.index.rate(),
            },
        }
