"""
File Module - Hashing and Blob Storage

Content digests and the flat, hash-named blob directory.
"""

from .hasher import ContentHasher, is_content_hash
from .blobs import LocalBlobStore, BlobStats, blob_name

__all__ = [
    'ContentHasher',
    'is_content_hash',
    'LocalBlobStore',
    'BlobStats',
    'blob_name',
]
