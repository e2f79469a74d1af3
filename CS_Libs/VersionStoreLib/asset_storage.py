"""
Asset storage interface and the local filesystem implementation.

VersionStore talks to storage only through AssetStorage, so a remote
object-store backend can replace LocalAssetStorage without touching the
engines.

Local layout (one directory per asset under ``<base>/StudioAssets``):

    <asset_id>/
        asset.json      schema_version, asset fields, next_version, versions[]
        blobs/
            original.png
            v1.png
            v2.png

    _library/blobs/   logos and other reusable images, never listed as assets

Stored rasters are addressed as ``studio://<asset_id>/blobs/<file>``.
``next_version`` is a high-water mark: deleting the newest version never
lets its number be handed out again.

Classes:
    AssetStorage: Abstract storage interface
    LocalAssetStorage: JSON index + blob files on the local filesystem
"""

import json
import logging
import shutil
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from CS_Libs.constants import (
    ASSET_INDEX_FILE,
    BLOBS_DIR_NAME,
    DEFAULT_BLOB_EXTENSION,
    FIELD_ASSET_ID,
    FIELD_CREATED_AT,
    FIELD_KIND,
    FIELD_MIME_TYPE,
    FIELD_NEXT_VERSION,
    FIELD_SCHEMA_VERSION,
    FIELD_SOURCE_URL,
    FIELD_URL,
    FIELD_VERSION_NUM,
    FIELD_VERSIONS,
    LIBRARY_DIR_NAME,
    LOCAL_URL_SCHEME,
    MIME_EXTENSIONS,
    ORIGINAL_VERSION_NUM,
    OUTPUT_CONTENT_TYPE,
    SCHEMA_VERSION,
    STORAGE_DIR_NAME,
)
from CS_Libs.EditingLib.image_codec import validate_mime
from CS_Libs.errors import OriginalVersionProtected, StorageError, UnsupportedMediaType
from CS_Libs.VersionStoreLib.version_models import Asset, Version, now_iso

logger = logging.getLogger(__name__)


class AssetStorage(ABC):
    """Persistence for assets and their versions."""

    @abstractmethod
    def upload_raster(
        self,
        asset_id: str,
        data: bytes,
        content_type: str = OUTPUT_CONTENT_TYPE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Version:
        """Store raster bytes and register them as the next version."""

    @abstractmethod
    def fetch_versions(self, asset_id: str) -> List[Version]:
        """All persisted versions, ascending by version_num."""

    @abstractmethod
    def delete_version(self, asset_id: str, version_num: int) -> None:
        """Delete one persisted version."""

    @abstractmethod
    def resolve_display_url(self, ref: str) -> str:
        """URL a viewer can load for a storage reference."""

    @abstractmethod
    def fetch_raster(self, ref: str) -> bytes:
        """Raw bytes for a storage reference."""

    @abstractmethod
    def get_asset(self, asset_id: str) -> Asset:
        """Asset record."""


class LocalAssetStorage(AssetStorage):
    """
    Filesystem-backed storage.

    Index updates are serialized with a lock so that applies running on
    worker threads never interleave read-modify-write cycles.
    """

    def __init__(self, base_dir: Path) -> None:
        self.root = Path(base_dir) / STORAGE_DIR_NAME
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def create_asset(self, data: bytes, mime_type: str) -> Asset:
        """
        Store an uploaded file as a new asset's Original.

        Raises:
            UnsupportedMediaType: If the MIME type is not an image or supported video
            ValueError: If data is empty
        """
        kind = validate_mime(mime_type)
        if not data:
            raise ValueError("Cannot create an asset from empty data")

        asset_id = uuid.uuid4().hex
        asset_dir = self.root / asset_id
        blobs_dir = asset_dir / BLOBS_DIR_NAME
        blobs_dir.mkdir(parents=True, exist_ok=False)

        filename = f"original{self._extension(mime_type)}"
        self._write_blob(blobs_dir / filename, data)
        asset = Asset(
            asset_id=asset_id,
            kind=kind,
            source_url=self._url(asset_id, filename),
            mime_type=mime_type.lower(),
        )

        index = asset.to_dict()
        index[FIELD_SCHEMA_VERSION] = SCHEMA_VERSION
        index[FIELD_NEXT_VERSION] = ORIGINAL_VERSION_NUM + 1
        index[FIELD_VERSIONS] = []
        with self._lock:
            self._save_index(asset_id, index)

        logger.info(f"Created {kind} asset {asset_id}")
        return asset

    def get_asset(self, asset_id: str) -> Asset:
        return Asset.from_dict(self._load_index(asset_id))

    def list_assets(self) -> List[Asset]:
        assets = []
        for index_path in sorted(self.root.glob(f"*/{ASSET_INDEX_FILE}")):
            try:
                assets.append(self.get_asset(index_path.parent.name))
            except StorageError as e:
                logger.warning(f"Skipping unreadable asset {index_path.parent.name}: {e}")
        return sorted(assets, key=lambda a: a.created_at)

    def remove_asset(self, asset_id: str) -> None:
        """Delete an asset together with every version and blob."""
        asset_dir = self._asset_dir(asset_id)
        with self._lock:
            try:
                shutil.rmtree(asset_dir)
            except OSError as e:
                raise StorageError(f"Could not remove asset {asset_id}: {e}") from e
        logger.info(f"Removed asset {asset_id}")

    def add_library_image(self, data: bytes, mime_type: str) -> str:
        """
        Store a reusable image (logos, stickers) outside the asset list.

        Returns:
            A ``studio://_library/blobs/<file>`` reference for fetch_raster

        Raises:
            UnsupportedMediaType: If the MIME type is not an image
            ValueError: If data is empty
        """
        if validate_mime(mime_type) != "image":
            raise UnsupportedMediaType(f"Library items must be images, got {mime_type!r}")
        if not data:
            raise ValueError("Cannot store an empty library image")

        blobs_dir = self.root / LIBRARY_DIR_NAME / BLOBS_DIR_NAME
        filename = f"{uuid.uuid4().hex}{self._extension(mime_type)}"
        with self._lock:
            blobs_dir.mkdir(parents=True, exist_ok=True)
            self._write_blob(blobs_dir / filename, data)
        logger.info(f"Added library image {filename}")
        return self._url(LIBRARY_DIR_NAME, filename)

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def upload_raster(
        self,
        asset_id: str,
        data: bytes,
        content_type: str = OUTPUT_CONTENT_TYPE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Version:
        validate_mime(content_type)
        if not data:
            raise ValueError("Cannot store an empty raster")

        with self._lock:
            index = self._load_index(asset_id)
            version_num = int(index[FIELD_NEXT_VERSION])
            filename = f"v{version_num}{self._extension(content_type)}"
            self._write_blob(self._asset_dir(asset_id) / BLOBS_DIR_NAME / filename, data)
            return self._append_version(asset_id, index, self._url(asset_id, filename), metadata)

    def fetch_versions(self, asset_id: str) -> List[Version]:
        index = self._load_index(asset_id)
        try:
            versions = [Version.from_dict(entry) for entry in index.get(FIELD_VERSIONS, [])]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Version index for {asset_id} is corrupted: {e}") from e
        return sorted(versions, key=lambda v: v.version_num)

    def delete_version(self, asset_id: str, version_num: int) -> None:
        """
        Delete a persisted version and its blob.

        Raises:
            OriginalVersionProtected: For version_num <= 0
            StorageError: If the version does not exist or the index cannot be written
        """
        if version_num <= ORIGINAL_VERSION_NUM:
            raise OriginalVersionProtected()

        with self._lock:
            index = self._load_index(asset_id)
            entries = index.get(FIELD_VERSIONS, [])
            remaining = [e for e in entries if int(e[FIELD_VERSION_NUM]) != version_num]
            if len(remaining) == len(entries):
                raise StorageError(f"Version {version_num} of asset {asset_id} not found")
            removed = next(e for e in entries if int(e[FIELD_VERSION_NUM]) == version_num)

            index[FIELD_VERSIONS] = remaining
            self._save_index(asset_id, index)

        blob_path = self._local_path(removed.get(FIELD_URL, ""))
        if blob_path is not None and blob_path.is_file():
            blob_path.unlink()
        logger.info(f"Deleted version {version_num} of asset {asset_id}")

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def resolve_display_url(self, ref: str) -> str:
        path = self._local_path(ref)
        if path is None:
            return ref
        return path.resolve().as_uri()

    def fetch_raster(self, ref: str) -> bytes:
        path = self._local_path(ref)
        if path is None:
            path = Path(ref)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read raster {ref}: {e}")
            raise StorageError(f"Could not read {ref}: {e}") from e

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _append_version(
        self, asset_id: str, index: Dict[str, Any], url: str, metadata: Optional[Dict[str, Any]]
    ) -> Version:
        version = Version(
            version_num=int(index[FIELD_NEXT_VERSION]),
            url=url,
            created_at=now_iso(),
            metadata=dict(metadata or {}),
        )
        index.setdefault(FIELD_VERSIONS, []).append(version.to_dict())
        index[FIELD_NEXT_VERSION] = version.version_num + 1
        self._save_index(asset_id, index)
        logger.info(f"Registered version {version.version_num} of asset {asset_id}")
        return version

    def _asset_dir(self, asset_id: str) -> Path:
        if not asset_id or "/" in asset_id or "\\" in asset_id or asset_id.startswith("."):
            raise ValueError(f"Invalid asset id: {asset_id!r}")
        return self.root / asset_id

    def _load_index(self, asset_id: str) -> Dict[str, Any]:
        index_path = self._asset_dir(asset_id) / ASSET_INDEX_FILE
        if not index_path.exists():
            raise KeyError(f"No asset with id '{asset_id}'")
        try:
            payload = json.loads(index_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to read index for asset {asset_id}: {e}")
            raise StorageError(f"Could not read asset {asset_id}: {e}") from e

        if not isinstance(payload, dict):
            raise StorageError(f"Asset index for {asset_id} is not an object")

        payload.setdefault(FIELD_ASSET_ID, asset_id)
        payload.setdefault(FIELD_KIND, "image")
        payload.setdefault(FIELD_SOURCE_URL, "")
        payload.setdefault(FIELD_MIME_TYPE, OUTPUT_CONTENT_TYPE)
        payload.setdefault(FIELD_CREATED_AT, now_iso())
        versions = payload.get(FIELD_VERSIONS)
        if not isinstance(versions, list):
            payload[FIELD_VERSIONS] = []
        highest = max((int(v.get(FIELD_VERSION_NUM, 0)) for v in payload[FIELD_VERSIONS]), default=0)
        payload[FIELD_NEXT_VERSION] = max(int(payload.get(FIELD_NEXT_VERSION, 1)), highest + 1)
        return payload

    def _save_index(self, asset_id: str, payload: Dict[str, Any]) -> None:
        payload[FIELD_SCHEMA_VERSION] = SCHEMA_VERSION
        index_path = self._asset_dir(asset_id) / ASSET_INDEX_FILE
        temp_path = index_path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            temp_path.replace(index_path)
        except OSError as e:
            raise StorageError(f"Could not write asset {asset_id}: {e}") from e

    def _write_blob(self, path: Path, data: bytes) -> None:
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write {path.name}: {e}") from e

    def _url(self, asset_id: str, filename: str) -> str:
        return f"{LOCAL_URL_SCHEME}{asset_id}/{BLOBS_DIR_NAME}/{filename}"

    def _local_path(self, ref: str) -> Optional[Path]:
        if not ref.startswith(LOCAL_URL_SCHEME):
            return None
        relative = ref[len(LOCAL_URL_SCHEME):]
        path = (self.root / relative).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Reference escapes storage root: {ref}")
        return path

    @staticmethod
    def _extension(mime_type: str) -> str:
        return MIME_EXTENSIONS.get(mime_type.lower(), DEFAULT_BLOB_EXTENSION)

