"""Tests for LocalBlobStore."""

import pytest

from dedupstore.errors import NotFoundError
from dedupstore.file import LocalBlobStore, ContentHasher

from tests.helpers import collect


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", tmp_path / "temp")


HELLO = b"hello world"
HELLO_HASH = ContentHasher().hash(HELLO)


class TestLocalBlobStore:

    async def test_write_names_blob_by_hash_and_extension(self, blobs):
        path = await blobs.write(HELLO_HASH, ".txt", HELLO)

        assert path.name == f"{HELLO_HASH}.txt"
        assert path.read_bytes() == HELLO

    async def test_write_leaves_no_temp_files(self, blobs):
        await blobs.write(HELLO_HASH, ".txt", HELLO)
        assert list(blobs.temp_dir.iterdir()) == []

    async def test_write_without_extension(self, blobs):
        path = await blobs.write(HELLO_HASH, "", HELLO)
        assert path.name == HELLO_HASH

    async def test_rewrite_keeps_single_blob(self, blobs):
        await blobs.write(HELLO_HASH, ".txt", HELLO)
        await blobs.write(HELLO_HASH, ".txt", HELLO)

        assert len(list(blobs.blob_dir.iterdir())) == 1

    async def test_find_by_hash_prefix(self, blobs):
        await blobs.write(HELLO_HASH, ".md", HELLO)

        found = await blobs.find(HELLO_HASH)

        assert found is not None
        assert found.name == f"{HELLO_HASH}.md"
        assert await blobs.find("0" * 64) is None
        assert await blobs.find("") is None

    async def test_read_streams_in_chunks(self, blobs):
        await blobs.write(HELLO_HASH, ".txt", HELLO)

        stream = await blobs.read(HELLO_HASH, chunk_size=4)
        chunks = [chunk async for chunk in stream]

        assert chunks == [b"hell", b"o wo", b"rld"]

    async def test_read_missing_raises(self, blobs):
        with pytest.raises(NotFoundError):
            await blobs.read("0" * 64)

    async def test_read_bytes(self, blobs):
        await blobs.write(HELLO_HASH, ".txt", HELLO)
        assert await blobs.read_bytes(HELLO_HASH) == HELLO
        with pytest.raises(NotFoundError):
            await blobs.read_bytes("0" * 64)

    async def test_delete(self, blobs):
        await blobs.write(HELLO_HASH, ".txt", HELLO)

        assert await blobs.delete(HELLO_HASH) is True
        assert await blobs.find(HELLO_HASH) is None
        assert await blobs.delete(HELLO_HASH) is False

    async def test_clear_and_stats(self, blobs):
        hasher = ContentHasher()
        for payload in (b"a", b"bb", b"ccc"):
            await blobs.write(hasher.hash(payload), ".bin", payload)

        stats = await blobs.get_stats()
        assert stats.total_blobs == 3
        assert stats.total_bytes == 6

        assert await blobs.clear() == 3
        assert list(blobs.blob_dir.iterdir()) == []

    async def test_stream_of_located_blob(self, blobs):
        path = await blobs.write(HELLO_HASH, ".txt", HELLO)
        assert await collect(blobs.stream(path)) == HELLO
