"""
Headless layout editor.

An explicit state machine (Idle, Dragging, Resizing) that mutates a
normalized LayoutModel from pointer input on a scaled preview. The editor
UI forwards pointer events in preview pixels and reads back geometry.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from ..constants import (
    SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL, SLOTS, OPTIONAL_SLOTS,
    PREVIEW_WIDTH, MIN_REGION_PX, DEFAULT_TOGGLE_BOX_PX, HANDLE_SIZE_PX, NORMALIZED_MAX,
)
from ..layout.models import ENCODING_NORMALIZED, LayoutModel, Region
from ..layout.presets import apply_preset, canvas_for_aspect_ratio, rescale_layout

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Rect = Tuple[float, float, float, float]

CORNERS = ("nw", "ne", "sw", "se")

# Where a toggled-on panel appears (percent of canvas) and its stacking order
TOGGLE_DEFAULTS = {
    SLOT_TEXT_PANEL: (5.0, 78.0, 2),
    SLOT_DIAGRAM_PANEL: (10.0, 10.0, 3),
}


class EditorBusyError(RuntimeError):
    """Operation requires an idle editor but a drag or resize is in progress."""


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    slot: str
    pointer_id: int
    anchor_pointer: Point
    anchor_region_pos: Point  # percent


@dataclass(frozen=True)
class Resizing:
    slot: str
    corner: str
    pointer_id: int
    anchor_pointer: Point
    anchor_rect: Rect  # canvas pixels


EditorState = Union[Idle, Dragging, Resizing]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _check_corner(corner: str) -> str:
    if corner not in CORNERS:
        raise ValueError(f"Invalid corner '{corner}', expected one of {CORNERS}")
    return corner


class LayoutEditorController:
    """
    Single-writer edit session over one layout.

    A normalized layout is edited in place; a legacy absolute one is
    converted to a normalized copy first. Presets and aspect ratio changes
    replace the working layout, so read it back through ``layout`` or take
    a ``snapshot()``.
    """

    def __init__(self, layout: LayoutModel, preview_width: int = PREVIEW_WIDTH,
                 min_region_px: float = MIN_REGION_PX, handle_size: int = HANDLE_SIZE_PX):
        if layout.encoding != ENCODING_NORMALIZED:
            layout = layout.to_normalized()
        self._layout = layout
        self.preview_width = preview_width
        self.min_region_px = min_region_px
        self.handle_size = handle_size
        self._state: EditorState = Idle()
        self._selected: Optional[str] = None

    # State ----------------------------------------------------------------

    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return isinstance(self._state, Idle)

    @property
    def selected(self) -> Optional[str]:
        return self._selected

    @property
    def layout(self) -> LayoutModel:
        """The live layout; use snapshot() to hand it off."""
        return self._layout

    @property
    def preview_scale(self) -> float:
        return self.preview_width / self._layout.canvas.width

    @property
    def preview_size(self) -> Tuple[int, int]:
        return self.preview_width, int(round(self._layout.canvas.height * self.preview_scale))

    def _require_idle(self, operation: str) -> None:
        if not self.is_idle:
            raise EditorBusyError(f"Cannot {operation} while {type(self._state).__name__.lower()}")

    # Geometry helpers -----------------------------------------------------

    def _pixel_rect(self, region: Region) -> Rect:
        cw, ch = self._layout.canvas.size
        return (region.x / NORMALIZED_MAX * cw, region.y / NORMALIZED_MAX * ch,
                region.width / NORMALIZED_MAX * cw, region.height / NORMALIZED_MAX * ch)

    def _store_pixel_rect(self, slot: str, rect: Rect) -> None:
        cw, ch = self._layout.canvas.size
        region = self._layout.elements[slot]
        x, y, w, h = rect
        region.x = x / cw * NORMALIZED_MAX
        region.y = y / ch * NORMALIZED_MAX
        region.width = w / cw * NORMALIZED_MAX
        region.height = h / ch * NORMALIZED_MAX

    def _mark_custom(self) -> None:
        self._layout.type = "custom"

    def preview_rect(self, slot: str) -> Optional[Rect]:
        """Region bounds in preview pixels, or None when the slot is disabled."""
        region = self._layout.elements.get(slot)
        if region is None:
            return None
        s = self.preview_scale
        x, y, w, h = self._pixel_rect(region)
        return (x * s, y * s, w * s, h * s)

    def handle_rects(self, slot: str) -> Dict[str, Rect]:
        """Corner handle boxes (preview pixels) centered on the region corners."""
        rect = self.preview_rect(slot)
        if rect is None:
            return {}
        x, y, w, h = rect
        half = self.handle_size / 2
        points = {"nw": (x, y), "ne": (x + w, y), "sw": (x, y + h), "se": (x + w, y + h)}
        return {c: (px - half, py - half, float(self.handle_size), float(self.handle_size))
                for c, (px, py) in points.items()}

    def hit_test(self, pos: Point):
        """
        Find what lies under a preview point.

        Returns:
            ("handle", slot, corner), ("region", slot) or None
        """
        px, py = pos
        if self._selected and self._selected in self._layout.elements:
            for corner, (hx, hy, hw, hh) in self.handle_rects(self._selected).items():
                if hx <= px <= hx + hw and hy <= py <= hy + hh:
                    return ("handle", self._selected, corner)

        order = {slot: i for i, slot in enumerate(SLOTS)}
        stacked = sorted(self._layout.elements.items(),
                         key=lambda item: (item[1].z_index, order.get(item[0], 0)), reverse=True)
        for slot, _ in stacked:
            x, y, w, h = self.preview_rect(slot)
            if x <= px <= x + w and y <= py <= y + h:
                return ("region", slot)
        return None

    # Selection ------------------------------------------------------------

    def select(self, slot: Optional[str]) -> None:
        if slot is not None and slot not in self._layout.elements:
            raise ValueError(f"Cannot select disabled slot '{slot}'")
        self._selected = slot

    def select_none(self) -> None:
        """Clear the selection without touching geometry."""
        self._selected = None

    # Pointer input --------------------------------------------------------

    def press(self, pos: Point, pointer_id: int = 0) -> bool:
        """
        Pointer down anywhere on the preview.

        Handles of the selected region win over regions; regions are tested
        top-most first. A press on empty space clears the selection.

        Returns:
            True if a drag or resize session started
        """
        if not self.is_idle:
            return False
        hit = self.hit_test(pos)
        if hit is None:
            self.select_none()
            return False
        if hit[0] == "handle":
            return self.press_handle(hit[1], hit[2], pos, pointer_id)
        return self.press_region(hit[1], pos, pointer_id)

    def press_region(self, slot: str, pos: Point, pointer_id: int = 0) -> bool:
        """Select a region and start dragging it."""
        if not self.is_idle or slot not in self._layout.elements:
            return False
        region = self._layout.elements[slot]
        self._selected = slot
        self._state = Dragging(slot, pointer_id, tuple(pos), (region.x, region.y))
        logger.debug(f"Drag start {slot} at {pos}")
        return True

    def press_handle(self, slot: str, corner: str, pos: Point, pointer_id: int = 0) -> bool:
        """Start resizing the selected region from one of its corners."""
        _check_corner(corner)
        if not self.is_idle or slot != self._selected or slot not in self._layout.elements:
            return False
        self._state = Resizing(slot, corner, pointer_id, tuple(pos),
                               self._pixel_rect(self._layout.elements[slot]))
        logger.debug(f"Resize start {slot} corner {corner} at {pos}")
        return True

    def pointer_move(self, pos: Point, pointer_id: int = 0) -> bool:
        """
        Apply pointer motion to the active session.

        Returns:
            True if geometry was updated
        """
        state = self._state
        if isinstance(state, Idle) or state.pointer_id != pointer_id:
            return False
        if state.slot not in self._layout.elements:
            return False

        s = self.preview_scale
        dx = (pos[0] - state.anchor_pointer[0]) / s
        dy = (pos[1] - state.anchor_pointer[1]) / s

        if isinstance(state, Dragging):
            self._drag_to(state, dx, dy)
        else:
            self._resize_to(state, dx, dy)
        self._mark_custom()
        return True

    def _drag_to(self, state: Dragging, dx: float, dy: float) -> None:
        region = self._layout.elements[state.slot]
        cw, ch = self._layout.canvas.size
        ax, ay = state.anchor_region_pos
        region.x = _clamp(ax + dx / cw * NORMALIZED_MAX, 0.0, NORMALIZED_MAX - region.width)
        region.y = _clamp(ay + dy / ch * NORMALIZED_MAX, 0.0, NORMALIZED_MAX - region.height)

    def _resize_to(self, state: Resizing, dx: float, dy: float) -> None:
        cw, ch = self._layout.canvas.size
        sx, sy, sw, sh = state.anchor_rect
        min_w = min(self.min_region_px, cw)
        min_h = min(self.min_region_px, ch)

        if "w" in state.corner:
            right = sx + sw
            left = max(0.0, sx + dx)
            w = max(min_w, right - left)
            x = right - w
        else:
            new_right = min(float(cw), sx + sw + dx)
            w = max(min_w, new_right - sx)
            x = sx

        if "n" in state.corner:
            bottom = sy + sh
            top = max(0.0, sy + dy)
            h = max(min_h, bottom - top)
            y = bottom - h
        else:
            new_bottom = min(float(ch), sy + sh + dy)
            h = max(min_h, new_bottom - sy)
            y = sy

        w, h = min(w, cw), min(h, ch)
        x = _clamp(x, 0.0, cw - w)
        y = _clamp(y, 0.0, ch - h)
        self._store_pixel_rect(state.slot, (x, y, w, h))

    def release(self, pointer_id: int = 0) -> bool:
        """
        End the active session; the geometry already applied stays.

        Returns:
            True if a session belonging to this pointer was ended
        """
        state = self._state
        if isinstance(state, Idle) or state.pointer_id != pointer_id:
            return False
        logger.debug(f"{type(state).__name__} of {state.slot} committed")
        self._state = Idle()
        return True

    # Idle-only edits ------------------------------------------------------

    def apply_preset(self, name: str) -> LayoutModel:
        """
        Replace the layout with a preset on the current canvas.

        Raises:
            EditorBusyError: If a drag or resize is in progress
            ValueError: If the preset is unknown
        """
        self._require_idle("apply a preset")
        self._layout = apply_preset(name, self._layout.canvas)
        if self._selected not in self._layout.elements:
            self._selected = None
        return self._layout

    def set_aspect_ratio(self, label: str) -> LayoutModel:
        """
        Switch to the standard canvas for an aspect ratio, keeping regions proportional.

        Raises:
            EditorBusyError: If a drag or resize is in progress
            ValueError: If the label is malformed
        """
        self._require_idle("change the aspect ratio")
        self._layout = rescale_layout(self._layout, canvas_for_aspect_ratio(label))
        return self._layout

    def toggle_element(self, slot: str, enabled: Optional[bool] = None) -> bool:
        """
        Enable or disable an optional panel.

        Enabling creates a small default box and selects it; disabling
        removes the slot and clears the selection if it was selected.

        Returns:
            Whether the slot is enabled afterwards

        Raises:
            ValueError: For the image slot or unknown slots
            EditorBusyError: If a drag or resize is in progress
        """
        if slot not in OPTIONAL_SLOTS:
            raise ValueError(f"Only optional panels can be toggled, got '{slot}'")
        self._require_idle("toggle a panel")

        present = slot in self._layout.elements
        if enabled is None:
            enabled = not present
        if enabled == present:
            return present

        if not enabled:
            del self._layout.elements[slot]
            if self._selected == slot:
                self._selected = None
            self._mark_custom()
            return False

        cw, ch = self._layout.canvas.size
        w = min(NORMALIZED_MAX, DEFAULT_TOGGLE_BOX_PX / cw * NORMALIZED_MAX)
        h = min(NORMALIZED_MAX, DEFAULT_TOGGLE_BOX_PX / ch * NORMALIZED_MAX)
        x, y, z = TOGGLE_DEFAULTS[slot]
        self._layout.elements[slot] = Region(
            x=_clamp(x, 0.0, NORMALIZED_MAX - w),
            y=_clamp(y, 0.0, NORMALIZED_MAX - h),
            width=w,
            height=h,
            z_index=z,
        )
        self._selected = slot
        self._mark_custom()
        return True

    def update_region(self, slot: str, **fields) -> Region:
        """
        Numeric edit of a region (percent units; z_index as integer).

        Sizes are clamped to the minimum region size and the canvas, then
        positions are clamped so the region stays on the canvas.

        Raises:
            ValueError: For disabled slots or unknown fields
            EditorBusyError: If a drag or resize is in progress
        """
        self._require_idle("edit a region")
        region = self._layout.elements.get(slot)
        if region is None:
            raise ValueError(f"Slot '{slot}' is disabled")
        unknown = set(fields) - {"x", "y", "width", "height", "z_index"}
        if unknown:
            raise ValueError(f"Unknown region fields: {sorted(unknown)}")

        cw, ch = self._layout.canvas.size
        min_w = min(NORMALIZED_MAX, self.min_region_px / cw * NORMALIZED_MAX)
        min_h = min(NORMALIZED_MAX, self.min_region_px / ch * NORMALIZED_MAX)

        width = _clamp(float(fields.get("width", region.width)), min_w, NORMALIZED_MAX)
        height = _clamp(float(fields.get("height", region.height)), min_h, NORMALIZED_MAX)
        region.width, region.height = width, height
        region.x = _clamp(float(fields.get("x", region.x)), 0.0, NORMALIZED_MAX - width)
        region.y = _clamp(float(fields.get("y", region.y)), 0.0, NORMALIZED_MAX - height)
        if "z_index" in fields:
            region.z_index = int(fields["z_index"])
        self._mark_custom()
        return region

    # Hand-off -------------------------------------------------------------

    def snapshot(self) -> LayoutModel:
        """Deep copy of the current layout (usable as an undo point)."""
        return self._layout.copy()

    def confirm(self) -> LayoutModel:
        """
        Final layout for the caller to persist.

        Raises:
            EditorBusyError: If a drag or resize is in progress
        """
        self._require_idle("confirm the layout")
        logger.info(f"Layout confirmed ({self._layout.type}, slots: {', '.join(self._layout.elements)})")
        return self._layout.copy()
