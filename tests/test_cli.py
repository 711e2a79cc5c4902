"""Tests for the command-line interface."""

import asyncio
import re

import pytest
from click.testing import CliRunner

from dedupstore.cli import cli
from dedupstore.index.persistence import SNAPSHOT_KEY
from dedupstore.storage import KeyValueStore


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    data_dir = tmp_path / "cli_data"

    def run(*args, **kwargs):
        return runner.invoke(cli, ["--data-dir", str(data_dir), *args], **kwargs)

    return run


@pytest.fixture
def sample(tmp_path):
    path = tmp_path / "hello.txt"
    path.write_bytes(b"ABC")
    return path


def file_id_of(output: str) -> str:
    match = re.search(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", output)
    assert match, output
    return match.group(0)


class TestUpload:

    def test_upload_and_deduplicate(self, invoke, sample):
        first = invoke("upload", str(sample))
        second = invoke("upload", str(sample))

        assert first.exit_code == 0, first.output
        assert "new blob" in first.output
        assert "deduplicated" in second.output

    def test_missing_file(self, invoke, tmp_path):
        result = invoke("upload", str(tmp_path / "nope.txt"))

        assert result.exit_code != 0


class TestDownload:

    def test_download_to_path(self, invoke, sample, tmp_path):
        file_id = file_id_of(invoke("upload", str(sample), "--name", "copy.txt").output)
        out = tmp_path / "out.txt"

        result = invoke("download", file_id, "-o", str(out))

        assert result.exit_code == 0, result.output
        assert out.read_bytes() == b"ABC"

    def test_download_unknown(self, invoke):
        result = invoke("download", "no-such-id", "-o", "x")

        assert result.exit_code == 1
        assert "NotFoundError" in result.output


class TestDelete:

    def test_delete(self, invoke, sample):
        file_id = file_id_of(invoke("upload", str(sample)).output)

        result = invoke("delete", file_id)

        assert result.exit_code == 0, result.output
        assert "1 records removed" in result.output

    def test_delete_unknown(self, invoke):
        result = invoke("delete", "no-such-id")

        assert result.exit_code == 1
        assert "NotFoundError" in result.output

    def test_purge(self, invoke, sample):
        invoke("upload", str(sample))

        result = invoke("purge", "--yes")

        assert result.exit_code == 0, result.output
        assert "Removed 1 blobs and 1 records" in result.output

    def test_purge_needs_confirmation(self, invoke, sample):
        invoke("upload", str(sample))

        result = invoke("purge", input="n\n")

        assert result.exit_code == 1


class TestStats:

    def test_stats(self, invoke, sample):
        invoke("upload", str(sample))

        result = invoke("stats")

        assert result.exit_code == 0, result.output
        assert "Blobs" in result.output
        assert "Bloom Filter" in result.output

    def test_stage_without_archive(self, invoke, sample):
        file_id = file_id_of(invoke("upload", str(sample)).output)

        result = invoke("stage", file_id, "--type", "user", "--id", "1")

        assert result.exit_code == 1
        assert "RemoteArchiveError" in result.output


class TestStartupFailures:

    def test_invalid_config_is_usage_error(self, invoke, monkeypatch):
        monkeypatch.setenv("DEDUP_SCAN_BATCH_SIZE", "0")

        result = invoke("stats")

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_corrupted_snapshot_exits(self, invoke, sample, tmp_path):
        invoke("upload", str(sample))

        async def corrupt():
            store = KeyValueStore(tmp_path / "cli_data" / "dedup.db")
            await store.connect()
            await store.set(SNAPSHOT_KEY, "garbage")
            await store.close()

        asyncio.run(corrupt())

        result = invoke("stats")

        assert result.exit_code == 1
        assert "PersistenceError" in result.output
