"""Tests for FileRecordStore."""

import pytest

from dedupstore.config import RECORD_TTL_SECONDS
from dedupstore.storage import FileRecordStore


@pytest.fixture
def records(store):
    return FileRecordStore(store, scan_batch_size=3)


class TestFileRecordStore:

    async def test_put_writes_both_keys(self, records, store):
        await records.put("f1", "abc123", "hello.txt")

        assert await store.get("file:f1:hash") == "abc123"
        assert await store.get("file:f1:filename") == "hello.txt"

    async def test_put_applies_thirty_day_ttl(self, records, store):
        await records.put("f1", "abc123", "hello.txt")

        for key in ("file:f1:hash", "file:f1:filename"):
            remaining = await store.ttl(key)
            assert RECORD_TTL_SECONDS - 60 < remaining <= RECORD_TTL_SECONDS

    async def test_get_fields(self, records):
        await records.put("f1", "abc123", "hello.txt")

        assert await records.get("f1", "hash") == "abc123"
        assert await records.get("f1", "filename") == "hello.txt"
        assert await records.get("missing", "hash") is None

    async def test_get_rejects_unknown_field(self, records):
        with pytest.raises(ValueError):
            await records.get("f1", "size")

    async def test_get_record(self, records):
        await records.put("f1", "abc123", "hello.txt")

        record = await records.get_record("f1")

        assert record.file_id == "f1"
        assert record.content_hash == "abc123"
        assert record.filename == "hello.txt"
        assert 0 < record.expires_in <= records.ttl
        assert await records.get_record("missing") is None

    async def test_expired_record_is_unresolvable(self, store):
        records = FileRecordStore(store, ttl=0)
        await records.put("f1", "abc123", "hello.txt")

        assert await records.get_record("f1") is None

    async def test_delete_by_file_id(self, records):
        await records.put("f1", "abc123", "hello.txt")

        assert await records.delete_by_file_id("f1") is True
        assert await records.get("f1", "hash") is None
        assert await records.get("f1", "filename") is None
        assert await records.delete_by_file_id("f1") is False

    async def test_delete_all_with_hash_spans_batches(self, records):
        for i in range(7):
            await records.put(f"shared-{i}", "samehash", f"copy{i}.txt")
        for i in range(4):
            await records.put(f"other-{i}", f"hash-{i}", "other.txt")

        assert await records.delete_all_with_hash("samehash") == 7

        for i in range(7):
            assert await records.get_record(f"shared-{i}") is None
        for i in range(4):
            assert await records.get(f"other-{i}", "hash") == f"hash-{i}"

    async def test_delete_all_with_hash_is_idempotent(self, records):
        await records.put("f1", "samehash", "a.txt")
        await records.delete_all_with_hash("samehash")

        assert await records.delete_all_with_hash("samehash") == 0

    async def test_delete_all(self, records, store):
        for i in range(5):
            await records.put(f"f{i}", f"h{i}", "x.txt")
        await store.set("bloom_filter", "{}")

        assert await records.delete_all() == 5
        assert await records.count() == 0
        assert await store.count_keys("file:*") == 0
        assert await store.get("bloom_filter") == "{}"
