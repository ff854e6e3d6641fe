"""Shared test fixtures and utilities."""

from datetime import timedelta

import pytest

import contentaddr.store as store_module
from contentaddr.storage.fs import FilesystemContainer
from contentaddr.store import Store

from tests.storage_utils import FAST_RETRY, RecordingCancelToken


@pytest.fixture
def recording_token():
    return RecordingCancelToken()


@pytest.fixture
def persistent(tmp_path):
    return FilesystemContainer(tmp_path / "persistent")


@pytest.fixture
def staging(tmp_path):
    return FilesystemContainer(tmp_path / "staging")


@pytest.fixture
def upload(staging):
    """Factory fixture writing content to a staging blob, as a client would."""
    def _upload(name: str, content: bytes) -> str:
        path = staging.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return name
    return _upload


@pytest.fixture
def scheduled_deletes(monkeypatch):
    """Record staging deletions instead of starting timers."""
    calls = []

    def _record(blob, delay):
        calls.append((blob.name, delay))

    monkeypatch.setattr(store_module, "schedule_delete", _record)
    return calls


@pytest.fixture
def commits():
    """Observer recording every commit notification."""
    calls = []

    def _on_commit(elapsed, realm, hash, size, existed):
        calls.append({
            "elapsed": elapsed,
            "realm": realm,
            "hash": hash,
            "size": size,
            "existed": existed,
        })

    _on_commit.calls = calls
    return _on_commit


@pytest.fixture
def store(persistent, staging, commits, scheduled_deletes):
    """Store over filesystem containers, with recorded commits and cleanups."""
    return Store(
        "acme",
        persistent,
        staging,
        commits,
        retry_policy=FAST_RETRY,
        copy_poll_initial_seconds=0.001,
        copy_poll_max_seconds=0.001,
        cleanup_delay_seconds=timedelta(minutes=10).total_seconds(),
    )
