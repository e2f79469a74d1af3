"""
Editor session: the working state of one asset being edited.

A session owns whichever tool is open (overlays, paint, crop/rotate or
adjustments) and is the error boundary for the engines. Every apply runs
inside the asset's apply guard, registers a new version, and leaves the
viewer on the latest version. StudioError raised anywhere along the way is
logged and kept as a dismissible message instead of propagating to the UI.

Example:
    >>> session = EditorSession(store, asset_id)
    >>> crop = session.open_crop()
    >>> crop.rotate_right()
    >>> crop.set_crop(0, 0, 400, 300)
    >>> session.apply_crop()
    3
    >>> session.apply_crop() is None       # tool already closed
    True
    >>> session.error_message
    'Open the crop tool first'
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from CS_Libs.EditingLib.adjustments import AdjustmentSettings, FilterEffect, render_adjusted
from CS_Libs.EditingLib.crop_rotate_engine import CropRotateEngine
from CS_Libs.EditingLib.image_codec import decode_image
from CS_Libs.EditingLib.mask_paint_engine import MaskPaintEngine, PaintTool
from CS_Libs.EditingLib.overlay_engine import OverlayEngine
from CS_Libs.errors import ApplyFailed, StudioError
from CS_Libs.GeometryLib.coordinate_space import Size
from CS_Libs.VersionStoreLib.ai_edit import AiEditService, run_region_edit
from CS_Libs.VersionStoreLib.version_store import VersionStore

logger = logging.getLogger(__name__)

TOOL_OVERLAYS = "overlays"
TOOL_PAINT = "paint"
TOOL_CROP = "crop"
TOOL_ADJUSTMENTS = "adjustments"


class EditorSession:
    """
    Editing state for one asset.

    Attributes:
        active_tool: Name of the open tool, or None
        overlays: Overlay engine while the overlay tool is open
        paint: Paint engine while the paint tool is open
        crop: Crop/rotate engine while the crop tool is open
        error_message: Last user-facing error, cleared by dismiss_error
    """

    def __init__(self, store: VersionStore, asset_id: str) -> None:
        self.store = store
        self.storage = store.storage
        self.asset_id = asset_id
        self.active_tool: Optional[str] = None
        self.overlays: Optional[OverlayEngine] = None
        self.paint: Optional[MaskPaintEngine] = None
        self.crop: Optional[CropRotateEngine] = None
        self.error_message: Optional[str] = None
        self._base_bytes: Optional[bytes] = None

    # ------------------------------------------------------------------
    # Viewing
    # ------------------------------------------------------------------

    def base_bytes(self) -> bytes:
        """Raster of the version currently being viewed."""
        return self.storage.fetch_raster(self.store.base_reference(self.asset_id))

    def view_version(self, version_num: Optional[int]) -> bool:
        """Switch the viewed version; any open tool is discarded."""
        self.cancel_tool()
        found = self._guarded(lambda: self.store.view_version(self.asset_id, version_num), guard=False)
        if found is False:
            self.error_message = f"Version {version_num} is no longer available"
        return bool(found)

    def delete_version(self, version_num: int) -> bool:
        result = self._guarded(lambda: self.store.delete_version(self.asset_id, version_num) or True, guard=False)
        return result is not None

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def open_overlays(self) -> OverlayEngine:
        self.cancel_tool()
        self.overlays = OverlayEngine()
        self.active_tool = TOOL_OVERLAYS
        return self.overlays

    def open_paint(
        self,
        tool: PaintTool,
        box_size: Size,
        mask_mode: bool = False,
        **options: Any,
    ) -> Optional[MaskPaintEngine]:
        """Open the paint tool over the viewed version at the on-screen box size."""
        self.cancel_tool()

        def build() -> MaskPaintEngine:
            return MaskPaintEngine(self.base_bytes(), box_size, tool=tool, mask_mode=mask_mode, **options)

        self.paint = self._guarded(build, guard=False)
        if self.paint is not None:
            self.active_tool = TOOL_PAINT
        return self.paint

    def open_crop(self) -> Optional[CropRotateEngine]:
        self.cancel_tool()

        def build() -> CropRotateEngine:
            self._base_bytes = self.base_bytes()
            image = decode_image(self._base_bytes, "source image")
            return CropRotateEngine(Size(*image.size))

        self.crop = self._guarded(build, guard=False)
        if self.crop is not None:
            self.active_tool = TOOL_CROP
        return self.crop

    def open_adjustments(self) -> bool:
        self.cancel_tool()

        def load() -> bytes:
            data = self.base_bytes()
            decode_image(data, "source image")
            return data

        self._base_bytes = self._guarded(load, guard=False)
        if self._base_bytes is None:
            return False
        self.active_tool = TOOL_ADJUSTMENTS
        return True

    def cancel_tool(self) -> None:
        """Close the open tool and drop its working state."""
        if self.active_tool is not None:
            logger.debug(f"Closing {self.active_tool} tool for {self.asset_id}")
        self.active_tool = None
        self.overlays = None
        self.paint = None
        self.crop = None
        self._base_bytes = None

    def dismiss_error(self) -> None:
        self.error_message = None

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply_overlays(self, element_id: Optional[str] = None) -> Optional[int]:
        """
        Flatten overlays into a new version.

        With element_id only that overlay is flattened and the rest stay
        live; otherwise all overlays are flattened and the tool closes.
        """
        def run() -> int:
            engine = self._require(self.overlays, TOOL_OVERLAYS)
            base = self.base_bytes()
            if element_id is not None:
                applied = [engine.get_overlay(element_id)]
                data = engine.flatten_element(element_id, base, resolve_asset=self.storage.fetch_raster)
            else:
                applied = engine.overlays
                data = engine.flatten_all(base, resolve_asset=self.storage.fetch_raster)
            num = self.store.add_version(
                self.asset_id, data, {"kind": "overlays", "overlays": [o.to_dict() for o in applied]}
            )
            engine.commit_applied(o.overlay_id for o in applied)
            if element_id is None:
                self.cancel_tool()
            return num

        return self._guarded(run)

    def apply_paint(self) -> Optional[int]:
        def run() -> int:
            engine = self._require(self.paint, TOOL_PAINT)
            if engine.mask_mode:
                raise ApplyFailed("Mask mode edits go through a region edit")
            data = engine.apply()
            num = self.store.add_version(
                self.asset_id,
                data,
                {"kind": "paint", "tool": engine.tool.value, "strokes": len(engine.strokes)},
            )
            self.cancel_tool()
            return num

        return self._guarded(run)

    def apply_crop(self) -> Optional[int]:
        def run() -> int:
            engine = self._require(self.crop, TOOL_CROP)
            data = engine.apply(self._base_bytes)
            crop = engine.crop
            num = self.store.add_version(
                self.asset_id,
                data,
                {
                    "kind": "crop",
                    "rotation": engine.rotation,
                    "crop": {"x": crop.x, "y": crop.y, "w": crop.w, "h": crop.h},
                },
            )
            self.cancel_tool()
            return num

        return self._guarded(run)

    def apply_adjustments(
        self,
        settings: Optional[AdjustmentSettings] = None,
        effects: Iterable[FilterEffect] = (),
    ) -> Optional[int]:
        effects = list(effects)

        def run() -> int:
            self._require(self._base_bytes, TOOL_ADJUSTMENTS)
            data = render_adjusted(self._base_bytes, settings, effects)
            metadata: Dict[str, Any] = {"kind": "adjustments", "effects": [e.to_dict() for e in effects]}
            if settings is not None:
                metadata["settings"] = settings.to_dict()
            num = self.store.add_version(self.asset_id, data, metadata)
            self.cancel_tool()
            return num

        return self._guarded(run)

    def submit_region_edit(self, prompt: str, service: AiEditService, **poll_options: Any) -> Optional[int]:
        """Send the painted mask and a prompt to the AI edit service."""
        def run() -> int:
            engine = self._require(self.paint, TOOL_PAINT)
            if not engine.mask_mode:
                raise ApplyFailed("Open the paint tool in mask mode first")
            mask = engine.export_mask()
            num = run_region_edit(self.store, self.asset_id, mask, prompt, service, **poll_options)
            self.cancel_tool()
            return num

        return self._guarded(run)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, engine: Any, tool: str) -> Any:
        if engine is None or self.active_tool != tool:
            raise ApplyFailed(f"Open the {tool} tool first")
        return engine

    def _guarded(self, action: Callable[[], Any], guard: bool = True) -> Any:
        try:
            if guard:
                with self.store.apply_guard(self.asset_id):
                    return action()
            return action()
        except StudioError as e:
            logger.warning(f"{type(e).__name__} on asset {self.asset_id}: {e}")
            self.error_message = str(e)
            return None
