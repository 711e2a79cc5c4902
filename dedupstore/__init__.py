"""
dedupstore - Content-addressable file store with probabilistic deduplication

Incoming files are hashed, checked against a counting bloom filter, stored at
most once under a content-derived name, and delivered from local disk or via
a staging area mirrored to a remote archive.
"""

from .config import Config, load_config
from .errors import (
    FileServiceError,
    ValidationError,
    UnsupportedDeliveryError,
    NotFoundError,
    PersistenceError,
    RemoteArchiveError,
)
from .service import (
    FileService,
    UploadResult,
    LocalDownload,
    StagedDownload,
    DeleteResult,
    PurgeResult,
)

__version__ = '1.0.0'

__all__ = [
    'Config',
    'load_config',
    'FileServiceError',
    'ValidationError',
    'UnsupportedDeliveryError',
    'NotFoundError',
    'PersistenceError',
    'RemoteArchiveError',
    'FileService',
    'UploadResult',
    'LocalDownload',
    'StagedDownload',
    'DeleteResult',
    'PurgeResult',
]
