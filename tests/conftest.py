"""Shared pytest fixtures for dedupstore tests."""

import os
from pathlib import Path

import pytest

from dedupstore.config import Config
from dedupstore.service import FileService
from dedupstore.storage import KeyValueStore

from tests.helpers import FakeArchive


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path: Path):
    """Keep DEDUP_* variables of the host out of tests."""
    for name in list(os.environ):
        if name.startswith("DEDUP_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config rooted in a temporary directory with a small filter."""
    return Config(
        data_dir=tmp_path / "data",
        bloom_capacity=100,
        bloom_error_rate=0.01,
        scan_batch_size=3,
        read_chunk_size=4,
    )


@pytest.fixture
def archive() -> FakeArchive:
    return FakeArchive()


@pytest.fixture
async def store(tmp_path: Path):
    """A connected key-value store."""
    kv = KeyValueStore(tmp_path / "kv.db")
    await kv.connect()
    yield kv
    await kv.close()


@pytest.fixture
async def service(config: Config, archive: FakeArchive):
    """A started FileService with an in-memory archive."""
    async with FileService(config, archive=archive) as svc:
        yield svc
