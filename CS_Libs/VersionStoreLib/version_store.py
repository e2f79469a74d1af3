"""
Version Store for Canvas Studio.

Keeps the per-asset version list, the version currently being viewed and
the one-apply-at-a-time guard. Storage stays the source of truth: every
mutation is followed by a re-read of the version list.

Version 0 is the synthetic Original. Persisted versions start at 1, grow
monotonically and are never renumbered or reused. History is linear: an
edit made while viewing an older version is appended after the head.

Example:
    >>> store = VersionStore(LocalAssetStorage(Path.home()))
    >>> with store.apply_guard(asset_id):
    ...     num = store.add_version(asset_id, png_bytes, {"kind": "crop"})
    >>> store.view_version(asset_id, 0)       # look at the Original
    >>> store.delete_version(asset_id, num)

Classes:
    VersionStore: Version list, viewing state and apply guard
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from CS_Libs.constants import ORIGINAL_VERSION_NUM, OUTPUT_CONTENT_TYPE, VERSION_REFRESH_ATTEMPTS
from CS_Libs.errors import ConcurrentApplyRejected, OriginalVersionProtected, StorageError
from CS_Libs.VersionStoreLib.asset_storage import AssetStorage
from CS_Libs.VersionStoreLib.version_models import Version, latest_version

logger = logging.getLogger(__name__)


class VersionStore:
    """
    Version history front end over an AssetStorage.

    Args:
        storage: Storage backend
        max_workers: Worker threads for submit_apply
    """

    def __init__(self, storage: AssetStorage, max_workers: int = 2) -> None:
        self.storage = storage
        self._versions: Dict[str, List[Version]] = {}
        self._viewing: Dict[str, Optional[int]] = {}
        self._apply_locks: Dict[str, threading.Lock] = {}
        self._state_lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="studio-apply")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def refresh(self, asset_id: str) -> List[Version]:
        """
        Re-read the version list from storage.

        Retries once on StorageError before giving up.

        Raises:
            StorageError: If every attempt failed
        """
        last_error: Optional[StorageError] = None
        for attempt in range(1, VERSION_REFRESH_ATTEMPTS + 1):
            try:
                versions = sorted(self.storage.fetch_versions(asset_id), key=lambda v: v.version_num)
            except StorageError as e:
                last_error = e
                logger.warning(f"Version refresh for {asset_id} failed (attempt {attempt}): {e}")
                continue
            with self._state_lock:
                self._versions[asset_id] = versions
            return list(versions)
        raise last_error

    def list_versions(self, asset_id: str, refresh: bool = True) -> List[Version]:
        """Persisted versions ascending by version_num."""
        if refresh or asset_id not in self._versions:
            return self.refresh(asset_id)
        with self._state_lock:
            return list(self._versions[asset_id])

    def version_entries(self, asset_id: str, refresh: bool = False) -> List[Version]:
        """Original first, then every persisted version."""
        asset = self.storage.get_asset(asset_id)
        return [asset.original_version()] + self.list_versions(asset_id, refresh=refresh)

    def latest(self, asset_id: str, refresh: bool = False) -> Version:
        newest = latest_version(self.list_versions(asset_id, refresh=refresh))
        if newest is None:
            return self.storage.get_asset(asset_id).original_version()
        return newest

    def latest_url(self, asset_id: str) -> str:
        return self.storage.resolve_display_url(self.latest(asset_id).url)

    # ------------------------------------------------------------------
    # Viewing
    # ------------------------------------------------------------------

    def view_version(self, asset_id: str, version_num: Optional[int]) -> bool:
        """
        Choose which version the viewer shows. ``None`` follows the latest.

        The version list is re-read from storage first. If the version is
        gone, the viewer falls back to the latest version and False is
        returned.

        Raises:
            StorageError: If the version list cannot be re-read
        """
        if version_num is not None and not self._has_version(asset_id, version_num):
            logger.warning(f"Version {version_num} of {asset_id} no longer exists; showing latest")
            version_num = None
            found = False
        else:
            found = True
        with self._state_lock:
            self._viewing[asset_id] = version_num
        logger.debug(f"Viewing version {version_num} of {asset_id}")
        return found

    def _has_version(self, asset_id: str, version_num: int) -> bool:
        if version_num == ORIGINAL_VERSION_NUM:
            return True
        return any(v.version_num == version_num for v in self.list_versions(asset_id, refresh=True))

    def viewing_version(self, asset_id: str) -> Optional[int]:
        with self._state_lock:
            return self._viewing.get(asset_id)

    def viewed_version(self, asset_id: str) -> Version:
        """The version the editing engines should load."""
        viewing = self.viewing_version(asset_id)
        if viewing is None:
            return self.latest(asset_id)
        for version in self.version_entries(asset_id):
            if version.version_num == viewing:
                return version
        # viewed version vanished from storage; fall back to head
        with self._state_lock:
            self._viewing[asset_id] = None
        return self.latest(asset_id)

    def base_reference(self, asset_id: str) -> str:
        return self.viewed_version(asset_id).url

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_version(
        self,
        asset_id: str,
        raster_bytes: bytes,
        metadata: Optional[Dict[str, Any]] = None,
        content_type: str = OUTPUT_CONTENT_TYPE,
    ) -> int:
        """
        Store a rendered raster as the next version and return its number.

        The viewer is switched back to following the latest version.
        """
        version = self.storage.upload_raster(asset_id, raster_bytes, content_type, metadata)
        self._after_register(asset_id, version)
        return version.version_num

    def delete_version(self, asset_id: str, version_num: int) -> None:
        """
        Delete a persisted version.

        Deleting the viewed version sends the viewer back to latest. If the
        list cannot be re-read after two attempts, the cached list minus the
        deleted entry is kept.

        Raises:
            OriginalVersionProtected: For version_num <= 0
            StorageError: If storage refused the delete
        """
        if version_num <= ORIGINAL_VERSION_NUM:
            raise OriginalVersionProtected()

        self.storage.delete_version(asset_id, version_num)

        with self._state_lock:
            if self._viewing.get(asset_id) == version_num:
                self._viewing[asset_id] = None

        try:
            self.refresh(asset_id)
        except StorageError:
            logger.warning(f"Keeping stale version list for {asset_id} after delete")
            with self._state_lock:
                self._versions[asset_id] = [
                    v for v in self._versions.get(asset_id, []) if v.version_num != version_num
                ]

    def _after_register(self, asset_id: str, version: Version) -> None:
        with self._state_lock:
            self._viewing[asset_id] = None
        try:
            self.refresh(asset_id)
        except StorageError:
            logger.warning(f"Version {version.version_num} registered but list refresh failed")
            with self._state_lock:
                cached = [v for v in self._versions.get(asset_id, []) if v.version_num != version.version_num]
                self._versions[asset_id] = sorted(cached + [version], key=lambda v: v.version_num)

    # ------------------------------------------------------------------
    # Apply guard
    # ------------------------------------------------------------------

    def _apply_lock(self, asset_id: str) -> threading.Lock:
        with self._state_lock:
            return self._apply_locks.setdefault(asset_id, threading.Lock())

    def is_applying(self, asset_id: str) -> bool:
        return self._apply_lock(asset_id).locked()

    @contextmanager
    def apply_guard(self, asset_id: str) -> Iterator[None]:
        """
        Hold the asset's apply slot for the duration of the block.

        Raises:
            ConcurrentApplyRejected: If another apply on the asset is in flight
        """
        lock = self._apply_lock(asset_id)
        if not lock.acquire(blocking=False):
            raise ConcurrentApplyRejected()
        try:
            yield
        finally:
            lock.release()

    def submit_apply(
        self,
        asset_id: str,
        render: Callable[[], bytes],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Future[int]":
        """
        Render and register a version on a worker thread.

        The apply slot is taken before returning, so a second submit for the
        same asset is rejected immediately rather than queued.

        Raises:
            ConcurrentApplyRejected: If another apply on the asset is in flight
        """
        lock = self._apply_lock(asset_id)
        if not lock.acquire(blocking=False):
            raise ConcurrentApplyRejected()

        def run() -> int:
            try:
                return self.add_version(asset_id, render(), metadata)
            finally:
                lock.release()

        try:
            return self._executor.submit(run)
        except RuntimeError:
            lock.release()
            raise

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
