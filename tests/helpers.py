"""Test doubles and helpers shared across test modules."""

from typing import Dict, List

from dedupstore.archive import RemoteArchive, ArchiveObject


class FakeArchive(RemoteArchive):
    """In-memory RemoteArchive recording every object put into it."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}

    async def put(self, key: str, body: bytes, metadata: Dict[str, str]) -> str:
        self.objects[key] = body
        self.metadata[key] = {k.lower(): v for k, v in metadata.items()}
        return f"https://fake-bucket.example/{key}"

    async def list(self, prefix: str) -> List[ArchiveObject]:
        return [
            ArchiveObject(key=key, size=len(body))
            for key, body in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    async def head(self, key: str) -> Dict[str, str]:
        return self.metadata[key]


async def collect(stream) -> bytes:
    """Drain an async byte stream."""
    return b"".join([chunk async for chunk in stream])
