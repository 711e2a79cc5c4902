"""
Remote Archive Interface

The staging-area delivery path pushes a locally held blob to an object store
on demand. The object store client is an external collaborator; this module
only fixes the narrow contract the file service relies on.

Key scheme: {type}/{id}/{filename}, where type is 'user' or 'room'.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from ..errors import ValidationError

ARCHIVE_TYPES = ('user', 'room')


def make_archive_key(archive_type: str, owner_id: str, filename: str) -> str:
    """
    Build the object key for an archived file.

    Raises:
        ValidationError: if archive_type is not 'user' or 'room'
    """
    if archive_type not in ARCHIVE_TYPES:
        raise ValidationError(f"Invalid archive type: {archive_type}")

    return f"{archive_type}/{owner_id}/{filename}"


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    size = float(bytes_count)
    for unit in ['Bytes', 'KB', 'MB', 'GB']:
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} TB"


@dataclass
class ArchiveObject:
    """One object listed from the archive."""
    key: str
    size: int
    last_modified: Optional[datetime] = None


@dataclass
class ArchivedFile:
    """An archived file as presented to users."""
    original_name: str
    filename: str
    size: str  # human-readable
    last_modified: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            'originalName': self.original_name,
            'filename': self.filename,
            'size': self.size,
            'lastModified': self.last_modified.isoformat() if self.last_modified else None,
        }


class RemoteArchive(ABC):
    """Object store used by the staging-area delivery path."""

    @abstractmethod
    async def put(self, key: str, body: bytes, metadata: Dict[str, str]) -> str:
        """
        Upload an object.

        Returns:
            Public location of the stored object
        """

    @abstractmethod
    async def list(self, prefix: str) -> List[ArchiveObject]:
        """List objects whose key starts with prefix."""

    @abstractmethod
    async def head(self, key: str) -> Dict[str, str]:
        """Return the user metadata of an object (lower-cased keys)."""
