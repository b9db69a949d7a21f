"""
Data models for the scene layout.

Defines the canvas, the z-ordered regions and the layout that groups them.
Regions are stored in normalized percentage units (0-100 of the canvas);
the absolute-pixel encoding only exists so legacy data can be converted once.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Literal, Any

from ..constants import SLOTS, SLOT_IMAGE, LAYOUT_TYPES, NORMALIZED_MAX

# Type aliases for clarity
Size = Tuple[int, int]  # (width, height) in pixels
Rect = Tuple[float, float, float, float]  # (x, y, width, height)

LayoutType = Literal["overlay", "comic-sidebyside", "comic-vertical", "custom"]

ENCODING_NORMALIZED = "normalized"
ENCODING_ABSOLUTE = "absolute"


@dataclass
class Canvas:
    """Output surface size; the aspect label is advisory display metadata."""

    width: int
    height: int
    aspect_ratio: str = ""

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ValueError(f"Canvas dimensions must be positive, got {self.width}x{self.height}")
        self.width = int(self.width)
        self.height = int(self.height)

    @property
    def size(self) -> Size:
        return (self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {"width": self.width, "height": self.height, "aspectRatio": self.aspect_ratio}


@dataclass
class Region:
    """One rectangular, z-ordered slot of a layout."""

    x: float
    y: float
    width: float
    height: float
    z_index: int = 1

    @property
    def rect(self) -> Rect:
        return (self.x, self.y, self.width, self.height)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        """Point-in-rectangle test (edges inclusive)."""
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "zIndex": self.z_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Region":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            z_index=int(data.get("zIndex", data.get("z_index", 1))),
        )


@dataclass
class LayoutModel:
    """Canvas plus named regions; slot absence means the slot is disabled."""

    canvas: Canvas
    elements: Dict[str, Region] = field(default_factory=dict)
    type: LayoutType = "custom"
    encoding: str = ENCODING_NORMALIZED

    def region(self, slot: str) -> Optional[Region]:
        return self.elements.get(slot)

    def has(self, slot: str) -> bool:
        return slot in self.elements

    @property
    def image(self) -> Optional[Region]:
        return self.elements.get(SLOT_IMAGE)

    def copy(self) -> "LayoutModel":
        """Deep copy, used when handing a layout off by value."""
        return copy.deepcopy(self)

    def to_normalized(self) -> "LayoutModel":
        """
        Return a normalized copy of this layout.

        Absolute-pixel regions are divided by the layout's own canvas size;
        normalized layouts are simply copied.
        """
        result = self.copy()
        if self.encoding == ENCODING_NORMALIZED:
            return result

        cw, ch = self.canvas.width, self.canvas.height
        result.elements = {
            slot: Region(
                x=r.x / cw * NORMALIZED_MAX,
                y=r.y / ch * NORMALIZED_MAX,
                width=r.width / cw * NORMALIZED_MAX,
                height=r.height / ch * NORMALIZED_MAX,
                z_index=r.z_index,
            )
            for slot, r in self.elements.items()
        }
        result.encoding = ENCODING_NORMALIZED
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict with the persisted camelCase keys."""
        elements = {slot: self.elements[slot].to_dict() for slot in SLOTS if slot in self.elements}
        data = {
            "type": self.type,
            "canvas": self.canvas.to_dict(),
            "elements": elements,
        }
        if self.encoding != ENCODING_NORMALIZED:
            data["units"] = "px"
        return data


def _looks_like_pixels(canvas: Canvas, elements: Dict[str, Region]) -> bool:
    """Untagged legacy data: some edge past 100 and a full-canvas image in pixels."""
    image = elements.get(SLOT_IMAGE)
    if image is None:
        return False
    out_of_range = any(
        max(r.x + r.width, r.y + r.height) > NORMALIZED_MAX + 1e-6 for r in elements.values()
    )
    return out_of_range and (
        abs(image.x) < 1 and abs(image.y) < 1
        and abs(image.width - canvas.width) < 1 and abs(image.height - canvas.height) < 1
    )


def layout_from_dict(data: Dict[str, Any]) -> LayoutModel:
    """
    Build a LayoutModel from persisted data (any key ordering).

    Legacy layouts are tagged absolute when they say ``"units": "px"`` or
    when their image region spans the canvas in pixels; they are converted
    to normalized units here, once. Anything else is taken as normalized and
    left for validation to report.

    Raises:
        ValueError: If required keys are missing or malformed
    """
    try:
        canvas_data = data["canvas"]
        canvas = Canvas(
            width=int(canvas_data["width"]),
            height=int(canvas_data["height"]),
            aspect_ratio=str(canvas_data.get("aspectRatio", canvas_data.get("aspect_ratio", ""))),
        )
        elements = {
            slot: Region.from_dict(region)
            for slot, region in (data.get("elements") or {}).items()
            if slot in SLOTS and region is not None
        }
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed layout data: {e}") from e

    layout_type = data.get("type", "custom")
    if layout_type not in LAYOUT_TYPES:
        layout_type = "custom"

    absolute = data.get("units") == "px" or _looks_like_pixels(canvas, elements)
    model = LayoutModel(
        canvas=canvas,
        elements=elements,
        type=layout_type,
        encoding=ENCODING_ABSOLUTE if absolute else ENCODING_NORMALIZED,
    )
    return model.to_normalized()
