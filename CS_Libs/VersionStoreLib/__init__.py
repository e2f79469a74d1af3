"""
VersionStoreLib - Asset storage and version history

This module handles persistence of assets and their versions,
the per-asset apply guard, and the AI region edit flow.
"""

from CS_Libs.VersionStoreLib.ai_edit import AiEditService, JobStatus, run_region_edit
from CS_Libs.VersionStoreLib.asset_storage import AssetStorage, LocalAssetStorage
from CS_Libs.VersionStoreLib.version_models import Asset, Version
from CS_Libs.VersionStoreLib.version_store import VersionStore

__all__ = [
    "AiEditService",
    "JobStatus",
    "run_region_edit",
    "AssetStorage",
    "LocalAssetStorage",
    "Asset",
    "Version",
    "VersionStore",
]
