"""
Asset and version records.

An asset's Original (version 0) is never stored as a version row; it is
synthesized from the asset's source_url so it can never be deleted or
overwritten.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from CS_Libs.constants import (
    FIELD_ASSET_ID,
    FIELD_CREATED_AT,
    FIELD_KIND,
    FIELD_METADATA,
    FIELD_MIME_TYPE,
    FIELD_SOURCE_URL,
    FIELD_URL,
    FIELD_VERSION_NUM,
    ORIGINAL_VERSION_NUM,
)

AssetKind = Literal["image", "video"]


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass(frozen=True)
class Version:
    """One persisted edit of an asset.

    Attributes:
        version_num: 1-based, strictly increasing per asset, never reused
        url: Storage reference of the raster
        created_at: ISO timestamp
        metadata: Which engine produced the version and with what parameters
    """
    version_num: int
    url: str
    created_at: str = field(default_factory=now_iso)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_original(self) -> bool:
        return self.version_num == ORIGINAL_VERSION_NUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            FIELD_VERSION_NUM: self.version_num,
            FIELD_URL: self.url,
            FIELD_CREATED_AT: self.created_at,
            FIELD_METADATA: dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Version":
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        filtered[FIELD_VERSION_NUM] = int(filtered[FIELD_VERSION_NUM])
        filtered[FIELD_METADATA] = dict(filtered.get(FIELD_METADATA) or {})
        return cls(**filtered)


@dataclass(frozen=True)
class Asset:
    asset_id: str
    kind: AssetKind
    source_url: str
    mime_type: str = "image/png"
    created_at: str = field(default_factory=now_iso)

    def original_version(self) -> Version:
        return Version(ORIGINAL_VERSION_NUM, self.source_url, self.created_at, {"kind": "original"})

    def to_dict(self) -> Dict[str, Any]:
        return {
            FIELD_ASSET_ID: self.asset_id,
            FIELD_KIND: self.kind,
            FIELD_SOURCE_URL: self.source_url,
            FIELD_MIME_TYPE: self.mime_type,
            FIELD_CREATED_AT: self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


def latest_version(versions: List[Version]) -> Optional[Version]:
    """Highest-numbered version, or None when only the Original exists."""
    if not versions:
        return None
    return max(versions, key=lambda v: v.version_num)
