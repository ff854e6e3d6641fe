"""Tests for staged commits and read access by hash."""

import hashlib
import re
import threading
import time
import urllib.parse
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

import contentaddr.store as store_module
from contentaddr.cancellation import CancelToken
from contentaddr.errors import (
    CommitBlobError,
    CopyFailedError,
    NoSuchBlobError,
    OperationCancelledError,
)
from contentaddr.store import ReadOnlyStore, Store, schedule_delete

from tests.storage_utils import FAST_RETRY

CONTENT = b"a,b,c\n1,2,3\n"
CONTENT_MD5 = hashlib.md5(CONTENT).hexdigest()


class TestCommit:
    """Test commit_temporary_blob()."""

    def test_commit_returns_readable_reference(self, store, upload):
        upload("2024-01-15/acme/one", CONTENT)

        ref = store.commit_temporary_blob("2024-01-15/acme/one")

        assert ref.realm == "acme"
        assert ref.hash == CONTENT_MD5
        assert ref.name == f"acme/{CONTENT_MD5}"
        assert ref.exists()
        assert ref.get_size() == len(CONTENT)
        with ref.open() as stream:
            assert stream.read() == CONTENT

    def test_committed_blob_found_by_hash(self, store, upload):
        upload("tmp/one", CONTENT)
        store.commit_temporary_blob("tmp/one")

        assert store.exists(CONTENT_MD5)
        assert store.get_size(CONTENT_MD5) == len(CONTENT)
        with store.open(CONTENT_MD5) as stream:
            assert stream.read() == CONTENT

    def test_identical_content_is_deduplicated(self, store, upload, commits, monkeypatch):
        copies = []
        real_copy = store_module.copy_to_persistent

        def spy(*args, **kwargs):
            copies.append(args[1].name)
            return real_copy(*args, **kwargs)

        monkeypatch.setattr(store_module, "copy_to_persistent", spy)
        upload("tmp/one", CONTENT)
        upload("tmp/two", CONTENT)

        first = store.commit_temporary_blob("tmp/one")
        second = store.commit_temporary_blob("tmp/two")

        assert first == second
        assert first.name == second.name
        assert [c["existed"] for c in commits.calls] == [False, True]
        assert copies == [first.name]

    def test_observer_receives_commit_details(self, store, upload, commits):
        upload("tmp/one", CONTENT)
        store.commit_temporary_blob("tmp/one")

        [call] = commits.calls
        assert call["realm"] == "acme"
        assert call["hash"] == CONTENT_MD5
        assert call["size"] == len(CONTENT)
        assert call["existed"] is False
        assert isinstance(call["elapsed"], timedelta)

    def test_observer_is_optional(self, persistent, staging, upload, scheduled_deletes):
        upload("tmp/one", CONTENT)
        store = Store("acme", persistent, staging, retry_policy=FAST_RETRY)
        assert store.commit_temporary_blob("tmp/one").hash == CONTENT_MD5

    @pytest.mark.parametrize("buffer_size", [1, 5, 4 * 1024 * 1024])
    def test_hash_independent_of_buffer_size(
        self, persistent, staging, upload, scheduled_deletes, buffer_size
    ):
        data = bytes(range(256)) * 40
        upload("tmp/big", data)
        store = Store(
            "acme", persistent, staging, retry_policy=FAST_RETRY, hash_buffer_bytes=buffer_size
        )

        assert store.commit_temporary_blob("tmp/big").hash == hashlib.md5(data).hexdigest()

    def test_empty_blob(self, store, upload):
        upload("tmp/empty", b"")
        ref = store.commit_temporary_blob("tmp/empty")
        assert ref.hash == "d41d8cd98f00b204e9800998ecf8427e"
        assert ref.get_size() == 0

    def test_realms_are_isolated(self, persistent, staging, upload, scheduled_deletes):
        upload("tmp/one", CONTENT)
        upload("tmp/two", CONTENT)
        acme = Store("acme", persistent, staging, retry_policy=FAST_RETRY)
        other = Store("other", persistent, staging, retry_policy=FAST_RETRY)

        a = acme.commit_temporary_blob("tmp/one")
        b = other.commit_temporary_blob("tmp/two")

        assert a.hash == b.hash
        assert a.name != b.name

    def test_missing_source(self, store, scheduled_deletes, commits):
        with pytest.raises(CommitBlobError) as exc_info:
            store.commit_temporary_blob("2024-01-15/acme/never-uploaded")

        assert exc_info.value.name == "2024-01-15/acme/never-uploaded"
        assert exc_info.value.realm == "acme"
        assert "2024-01-15/acme/never-uploaded" in str(exc_info.value)
        assert scheduled_deletes == []
        assert commits.calls == []

    def test_cancelled_commit(self, store, upload):
        upload("tmp/one", CONTENT)
        token = CancelToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            store.commit_temporary_blob("tmp/one", token)


class TestStagingCleanup:
    """Test the delayed deletion of staging blobs."""

    def test_cleanup_scheduled_with_grace_delay(self, store, upload, scheduled_deletes):
        upload("tmp/one", CONTENT)
        store.commit_temporary_blob("tmp/one")
        assert scheduled_deletes == [("tmp/one", timedelta(minutes=10))]

    def test_cleanup_scheduled_on_dedup(self, store, upload, scheduled_deletes):
        upload("tmp/one", CONTENT)
        upload("tmp/two", CONTENT)
        store.commit_temporary_blob("tmp/one")
        store.commit_temporary_blob("tmp/two")
        assert [name for name, _ in scheduled_deletes] == ["tmp/one", "tmp/two"]

    def test_cleanup_scheduled_when_copy_fails(self, store, upload, scheduled_deletes, monkeypatch):
        monkeypatch.setattr(
            store_module,
            "copy_to_persistent",
            Mock(side_effect=CopyFailedError("acme/x", "failed")),
        )
        upload("tmp/one", CONTENT)

        with pytest.raises(CopyFailedError):
            store.commit_temporary_blob("tmp/one")
        assert [name for name, _ in scheduled_deletes] == ["tmp/one"]

    def test_commit_does_not_wait_for_cleanup(self, persistent, staging, upload, monkeypatch):
        pending = []

        def tracking_schedule(blob, delay):
            entry = schedule_delete(blob, delay)
            pending.append(entry)
            return entry

        monkeypatch.setattr(store_module, "schedule_delete", tracking_schedule)
        upload("tmp/one", CONTENT)
        store = Store("acme", persistent, staging, retry_policy=FAST_RETRY)

        started = time.monotonic()
        try:
            store.commit_temporary_blob("tmp/one")
            assert time.monotonic() - started < 60
            assert staging.get_blob("tmp/one").exists()
            assert pending and not pending[0].done
        finally:
            for entry in pending:
                entry.cancel()

    def test_many_commits_share_one_cleanup_thread(self, persistent, staging, upload, monkeypatch):
        pending = []

        def tracking_schedule(blob, delay):
            entry = schedule_delete(blob, delay)
            pending.append(entry)
            return entry

        monkeypatch.setattr(store_module, "schedule_delete", tracking_schedule)
        store = Store("acme", persistent, staging, retry_policy=FAST_RETRY)

        threads_before = threading.active_count()
        try:
            for i in range(50):
                upload(f"tmp/{i}", CONTENT + str(i).encode())
                store.commit_temporary_blob(f"tmp/{i}")

            assert len(pending) == 50
            # At most the shared cleanup worker, started lazily
            assert threading.active_count() - threads_before <= 1
        finally:
            for entry in pending:
                entry.cancel()


class TestUploadUrl:
    """Test signed upload URLs into staging."""

    def test_write_delete_private(self, store, staging):
        now = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

        url = store.get_signed_upload_url("2024-01-15/acme/abc", timedelta(hours=2), now=now)

        query = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))
        assert query["sp"] == "wd"
        assert query["se"] == "2024-01-15T12:30:00Z"
        assert query["rscc"] == "private"
        assert "st" not in query
        assert staging.verify_signed_url(url)

    def test_non_utc_now_converted(self, store):
        now = datetime(2024, 1, 15, 12, 30, tzinfo=timezone(timedelta(hours=2)))

        url = store.get_signed_upload_url("tmp/a", timedelta(hours=1), now=now)

        query = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))
        assert query["se"] == "2024-01-15T11:30:00Z"

    def test_name_need_not_exist(self, store, staging):
        store.get_signed_upload_url("tmp/nothing-yet", timedelta(minutes=5))
        assert not staging.get_blob("tmp/nothing-yet").exists()

    def test_policy_passed_to_backend(self, persistent):
        staging = Mock()
        store = Store("acme", persistent, staging)
        now = datetime(2024, 1, 15, tzinfo=timezone.utc)

        store.get_signed_upload_url("tmp/a", timedelta(minutes=5), now=now)

        staging.get_blob.assert_called_once_with("tmp/a")
        policy = staging.get_blob.return_value.generate_signed_url.call_args.args[0]
        assert policy.start is None
        assert policy.expiry == now + timedelta(minutes=5)
        assert policy.headers.cache_control == "private"


class TestReadOnlyStore:
    """Test naming and read access by hash."""

    def test_temporary_name_format(self, store):
        now = datetime(2024, 1, 15, 23, 59, tzinfo=timezone.utc)
        name = store.new_temporary_name(now)
        assert re.fullmatch(r"2024-01-15/acme/[0-9a-f-]{36}", name)
        assert name != store.new_temporary_name(now)

    def test_temporary_name_uses_utc_date(self, store):
        now = datetime(2024, 1, 16, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert store.new_temporary_name(now).startswith("2024-01-15/acme/")

    def test_blob_name(self, persistent):
        assert ReadOnlyStore("acme", persistent).blob_name(CONTENT_MD5) == f"acme/{CONTENT_MD5}"

    def test_missing_hash(self, persistent):
        store = ReadOnlyStore("acme", persistent, retry_policy=FAST_RETRY)
        assert not store.exists(CONTENT_MD5)
        with pytest.raises(NoSuchBlobError):
            store.get_size(CONTENT_MD5)

    def test_invalid_hash(self, persistent):
        with pytest.raises(ValueError):
            ReadOnlyStore("acme", persistent).get("not-a-hash")

    @pytest.mark.parametrize("realm", ["", "a/b", ".", ".."])
    def test_invalid_realm(self, persistent, realm):
        with pytest.raises(ValueError):
            ReadOnlyStore(realm, persistent)
