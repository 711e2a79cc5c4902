"""
Archive Module - Remote Object Store

Contract for the staging-area delivery path and its S3 adapter.
"""

from .base import (
    RemoteArchive,
    ArchiveObject,
    ArchivedFile,
    make_archive_key,
    format_size,
)
from .s3 import S3Archive

__all__ = [
    'RemoteArchive',
    'ArchiveObject',
    'ArchivedFile',
    'make_archive_key',
    'format_size',
    'S3Archive',
]
