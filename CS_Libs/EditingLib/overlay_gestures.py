"""
Pointer gesture state machine for overlay editing.

Transitions are pure: each handler takes the current GestureState and
returns the next one (plus, on move, the field patch to hand to
OverlayEngine.update_overlay). Pointer coordinates are box pixels.

    idle --down on body--> dragging --up--> idle
    idle --down on resize handle--> resizing --up--> idle
    idle --down on rotate handle--> rotating --up--> idle
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Literal, Optional, Tuple

from CS_Libs.EditingLib.overlay_engine import OverlayElement, TextOverlay, hit_test_overlays
from CS_Libs.GeometryLib.coordinate_space import (
    NormalizedRect,
    Point,
    Size,
    drag_position,
    normalize_angle,
    pointer_angle,
    resize_free,
    resize_symmetric,
    to_pixels,
)

GestureMode = Literal["idle", "dragging", "resizing", "rotating"]

HANDLE_MODES = {"body": "dragging", "resize": "resizing", "rotate": "rotating"}


@dataclass(frozen=True)
class GestureState:
    mode: GestureMode = "idle"
    overlay_id: Optional[str] = None
    start_pointer: Optional[Point] = None
    start_rect: Optional[NormalizedRect] = None
    start_angle: float = 0.0
    free_resize: bool = False

    @property
    def active(self) -> bool:
        return self.mode != "idle"


IDLE = GestureState()


def on_down(state: GestureState, overlays: Iterable[OverlayElement], pointer: Point, box: Size) -> GestureState:
    """
    Start a gesture on whatever overlay is under the pointer.

    Clicks on the remove/apply handles, or on empty canvas, leave the
    machine idle; the caller acts on those through OverlayEngine.hit_test.
    """
    overlays = list(overlays)
    hit = hit_test_overlays(overlays, pointer, box)
    if hit is None or hit.handle not in HANDLE_MODES:
        return IDLE

    overlay = next(o for o in overlays if o.overlay_id == hit.overlay_id)
    center = to_pixels(overlay.rect, box).center
    return GestureState(
        mode=HANDLE_MODES[hit.handle],
        overlay_id=overlay.overlay_id,
        start_pointer=pointer,
        start_rect=overlay.rect,
        start_angle=pointer_angle(center, pointer),
        free_resize=isinstance(overlay, TextOverlay),
    )


def on_move(state: GestureState, pointer: Point, box: Size) -> Tuple[GestureState, Optional[Dict[str, Any]]]:
    """
    Compute the overlay patch for a pointer move.

    Returns:
        (state, patch) where patch is None while idle
    """
    if not state.active:
        return state, None

    rect = state.start_rect
    dx = pointer.x - state.start_pointer.x
    dy = pointer.y - state.start_pointer.y

    if state.mode == "dragging":
        center = drag_position(Point(rect.x, rect.y), dx, dy, box)
        return state, {"x": center.x, "y": center.y}

    if state.mode == "resizing":
        resize = resize_free if state.free_resize else resize_symmetric
        size = resize(Size(rect.w, rect.h), dx, dy, box)
        return state, {"w": size.w, "h": size.h}

    if state.mode == "rotating":
        center = to_pixels(rect, box).center
        angle = pointer_angle(center, pointer)
        return state, {"rotation": normalize_angle(rect.rotation + angle - state.start_angle)}

    raise ValueError(f"Unknown gesture mode: {state.mode}")


def on_up(state: GestureState) -> GestureState:
    return IDLE
