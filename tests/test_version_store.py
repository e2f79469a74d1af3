"""
Tests for the version store: version list, viewing state and apply guard.
"""

import threading

import pytest

from conftest import make_png

from CS_Libs.errors import ConcurrentApplyRejected, OriginalVersionProtected, StorageError
from CS_Libs.VersionStoreLib.asset_storage import LocalAssetStorage
from CS_Libs.VersionStoreLib.version_store import VersionStore


class FlakyStorage(LocalAssetStorage):
    """Local storage whose version listing fails a set number of times."""

    def __init__(self, base_dir, failures=0):
        super().__init__(base_dir)
        self.failures = failures
        self.fetch_calls = 0

    def fetch_versions(self, asset_id):
        self.fetch_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("listing unavailable")
        return super().fetch_versions(asset_id)


class TestVersionList:
    """Test listing and the synthetic Original."""

    def test_new_asset_has_only_original(self, store, asset):
        """Should list only the Original for a fresh asset."""
        entries = store.version_entries(asset.asset_id)

        assert len(entries) == 1
        assert entries[0].is_original
        assert entries[0].url == asset.source_url
        assert store.list_versions(asset.asset_id) == []
        assert store.latest(asset.asset_id).version_num == 0

    def test_add_version_appends(self, store, asset):
        """Should append versions in ascending order."""
        first = store.add_version(asset.asset_id, make_png(), {"kind": "crop"})
        second = store.add_version(asset.asset_id, make_png(), {"kind": "paint"})

        assert (first, second) == (1, 2)
        assert [v.version_num for v in store.version_entries(asset.asset_id)] == [0, 1, 2]
        assert store.latest(asset.asset_id).metadata == {"kind": "paint"}

    def test_latest_url_is_displayable(self, store, asset):
        """Should resolve the latest version to a loadable URL."""
        store.add_version(asset.asset_id, make_png())
        assert store.latest_url(asset.asset_id).endswith("v1.png")

    def test_original_cannot_be_deleted(self, store, asset):
        """Should protect version 0."""
        with pytest.raises(OriginalVersionProtected):
            store.delete_version(asset.asset_id, 0)
        assert store.version_entries(asset.asset_id)[0].is_original


class TestViewing:
    """Test which version the editor loads."""

    def test_defaults_to_latest(self, store, asset):
        """Should follow the latest version when nothing is selected."""
        store.add_version(asset.asset_id, make_png())
        assert store.viewing_version(asset.asset_id) is None
        assert store.viewed_version(asset.asset_id).version_num == 1

    def test_view_original(self, store, asset):
        """Should load the Original when version 0 is viewed."""
        store.add_version(asset.asset_id, make_png())
        store.view_version(asset.asset_id, 0)
        assert store.base_reference(asset.asset_id) == asset.source_url

    def test_view_unknown_version_falls_back_to_latest(self, store, asset):
        """Should follow latest and report False for a version that does not exist."""
        store.add_version(asset.asset_id, make_png())

        assert store.view_version(asset.asset_id, 5) is False
        assert store.viewing_version(asset.asset_id) is None
        assert store.viewed_version(asset.asset_id).version_num == 1

    def test_view_version_deleted_behind_cache(self, store, storage, asset):
        """Should re-read storage and fall back when another writer deleted the version."""
        store.add_version(asset.asset_id, make_png())
        store.add_version(asset.asset_id, make_png())
        storage.delete_version(asset.asset_id, 1)

        assert store.view_version(asset.asset_id, 1) is False
        assert store.viewing_version(asset.asset_id) is None
        assert [v.version_num for v in store.list_versions(asset.asset_id, refresh=False)] == [2]

    def test_view_version_added_behind_cache(self, store, storage, asset):
        """Should find a version another writer added since the last refresh."""
        store.list_versions(asset.asset_id)
        storage.upload_raster(asset.asset_id, make_png())

        assert store.view_version(asset.asset_id, 1) is True
        assert store.viewing_version(asset.asset_id) == 1

    def test_deleting_viewed_version_returns_to_latest(self, store, asset):
        """Should reset viewing to latest when the viewed version is deleted."""
        for _ in range(3):
            store.add_version(asset.asset_id, make_png())
        store.view_version(asset.asset_id, 2)

        store.delete_version(asset.asset_id, 2)

        assert store.viewing_version(asset.asset_id) is None
        assert [v.version_num for v in store.list_versions(asset.asset_id)] == [1, 3]

    def test_deleting_other_version_keeps_viewing(self, store, asset):
        """Should leave the selection alone when another version is deleted."""
        store.add_version(asset.asset_id, make_png())
        store.add_version(asset.asset_id, make_png())
        store.view_version(asset.asset_id, 1)

        store.delete_version(asset.asset_id, 2)

        assert store.viewing_version(asset.asset_id) == 1

    def test_edit_while_viewing_old_version_appends_to_head(self, store, asset):
        """Should append edits made on an older version after the newest one."""
        store.add_version(asset.asset_id, make_png())
        store.add_version(asset.asset_id, make_png())
        store.view_version(asset.asset_id, 1)

        num = store.add_version(asset.asset_id, make_png())

        assert num == 3
        assert store.viewing_version(asset.asset_id) is None
        assert store.viewed_version(asset.asset_id).version_num == 3


class TestRefresh:
    """Test storage failures while re-reading the version list."""

    def test_retries_once(self, tmp_path):
        """Should recover when the second attempt succeeds."""
        storage = FlakyStorage(tmp_path)
        asset = storage.create_asset(make_png(), "image/png")
        store = VersionStore(storage)
        try:
            store.add_version(asset.asset_id, make_png())
            storage.failures = 1
            storage.fetch_calls = 0

            versions = store.refresh(asset.asset_id)

            assert [v.version_num for v in versions] == [1]
            assert storage.fetch_calls == 2
        finally:
            store.shutdown()

    def test_gives_up_after_two_attempts(self, tmp_path):
        """Should raise the storage error when both attempts fail."""
        storage = FlakyStorage(tmp_path, failures=2)
        asset = storage.create_asset(make_png(), "image/png")
        store = VersionStore(storage)
        try:
            with pytest.raises(StorageError):
                store.refresh(asset.asset_id)
        finally:
            store.shutdown()

    def test_delete_keeps_stale_list_on_refresh_failure(self, tmp_path):
        """Should drop the deleted entry from the cached list when refresh fails."""
        storage = FlakyStorage(tmp_path)
        asset = storage.create_asset(make_png(), "image/png")
        store = VersionStore(storage)
        try:
            store.add_version(asset.asset_id, make_png())
            store.add_version(asset.asset_id, make_png())
            storage.failures = 2

            store.delete_version(asset.asset_id, 2)

            cached = store.list_versions(asset.asset_id, refresh=False)
            assert [v.version_num for v in cached] == [1]
        finally:
            store.shutdown()

    def test_add_keeps_new_version_on_refresh_failure(self, tmp_path):
        """Should add the new version to the cached list when refresh fails."""
        storage = FlakyStorage(tmp_path)
        asset = storage.create_asset(make_png(), "image/png")
        store = VersionStore(storage)
        try:
            store.add_version(asset.asset_id, make_png())
            storage.failures = 2

            num = store.add_version(asset.asset_id, make_png())

            cached = store.list_versions(asset.asset_id, refresh=False)
            assert num == 2
            assert [v.version_num for v in cached] == [1, 2]
        finally:
            store.shutdown()


class TestApplyGuard:
    """Test that only one apply per asset runs at a time."""

    def test_second_guard_rejected(self, store, asset):
        """Should reject a nested apply on the same asset."""
        with store.apply_guard(asset.asset_id):
            assert store.is_applying(asset.asset_id)
            with pytest.raises(ConcurrentApplyRejected):
                with store.apply_guard(asset.asset_id):
                    pass
        assert not store.is_applying(asset.asset_id)

    def test_guard_released_on_error(self, store, asset):
        """Should release the slot when the apply raises."""
        with pytest.raises(RuntimeError):
            with store.apply_guard(asset.asset_id):
                raise RuntimeError("render crashed")
        with store.apply_guard(asset.asset_id):
            pass

    def test_other_assets_not_blocked(self, store, storage, asset):
        """Should allow applies on different assets at once."""
        other = storage.create_asset(make_png(), "image/png")
        with store.apply_guard(asset.asset_id):
            with store.apply_guard(other.asset_id):
                assert store.is_applying(other.asset_id)

    def test_submit_apply_rejects_while_in_flight(self, store, asset):
        """Should reject a second background apply until the first resolves."""
        started = threading.Event()
        release = threading.Event()

        def slow_render():
            started.set()
            release.wait(timeout=5)
            return make_png()

        future = store.submit_apply(asset.asset_id, slow_render, {"kind": "adjustments"})
        assert started.wait(timeout=5)

        with pytest.raises(ConcurrentApplyRejected):
            store.submit_apply(asset.asset_id, make_png)
        with pytest.raises(ConcurrentApplyRejected):
            with store.apply_guard(asset.asset_id):
                pass

        release.set()
        assert future.result(timeout=5) == 1

        second = store.submit_apply(asset.asset_id, make_png)
        assert second.result(timeout=5) == 2

    def test_failed_background_apply_releases_slot(self, store, asset):
        """Should free the slot when a background render raises."""
        def broken_render():
            raise ValueError("bad pixels")

        future = store.submit_apply(asset.asset_id, broken_render)
        with pytest.raises(ValueError):
            future.result(timeout=5)

        assert not store.is_applying(asset.asset_id)
        assert store.list_versions(asset.asset_id) == []
