"""
Scene compositing.

Flattens a base image and optional panel rasters onto the layout canvas,
painting regions in z-order.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from PIL import Image

from .constants import COMPOSITE_BACKGROUND, SLOTS, SLOT_IMAGE, NORMALIZED_MAX
from .image_utils import RasterLike, contain_size, decode_raster, ensure_rgba, fit_width_size
from .layout.models import Canvas, LayoutModel, Region, ENCODING_NORMALIZED

logger = logging.getLogger(__name__)

PixelBox = Tuple[int, int, int, int]  # (x, y, width, height)


class CompositionWarning(UserWarning):
    """A layer was skipped while compositing."""


@dataclass
class CompositionResult:
    image: Image.Image
    warnings: List[str] = field(default_factory=list)
    painted: List[str] = field(default_factory=list)


def region_to_pixels(region: Region, canvas: Canvas) -> PixelBox:
    """Normalized region to integer pixel box on the canvas."""
    return (
        int(round(region.x / NORMALIZED_MAX * canvas.width)),
        int(round(region.y / NORMALIZED_MAX * canvas.height)),
        int(round(region.width / NORMALIZED_MAX * canvas.width)),
        int(round(region.height / NORMALIZED_MAX * canvas.height)),
    )


def fit_layer(slot: str, raster: Image.Image, box: PixelBox) -> Tuple[Image.Image, Tuple[int, int]]:
    """
    Scale a raster for its slot.

    The image slot is contained in the box and centered; panel slots take
    the box width and keep their aspect ratio, anchored at the box origin.

    Returns:
        (scaled raster, paste position)
    """
    x, y, w, h = box
    if slot == SLOT_IMAGE:
        fw, fh = contain_size(raster.size, (w, h))
        pos = (x + (w - fw) // 2, y + (h - fh) // 2)
    else:
        fw, fh = fit_width_size(raster.size, w)
        pos = (x, y)

    if (fw, fh) != raster.size:
        raster = raster.resize((fw, fh), Image.Resampling.LANCZOS)
    return raster, pos


def _skip(slot: str, reason: str, messages: List[str]) -> None:
    message = f"Skipping {slot} layer: {reason}"
    messages.append(message)
    logger.warning(message)
    warnings.warn(message, CompositionWarning, stacklevel=3)


def compose_detailed(canvas: Canvas, layers: Mapping[str, Optional[RasterLike]],
                     layout: LayoutModel) -> CompositionResult:
    """
    Composite layers onto a white canvas following the layout.

    Missing regions or rasters are skipped silently; undecodable or empty
    rasters are skipped with a CompositionWarning.
    """
    if layout.encoding != ENCODING_NORMALIZED:
        layout = layout.to_normalized()

    surface = Image.new("RGBA", canvas.size, COMPOSITE_BACKGROUND)
    messages: List[str] = []
    painted: List[str] = []

    present = []
    for order, slot in enumerate(SLOTS):
        region = layout.elements.get(slot)
        raster = layers.get(slot)
        if region is None or raster is None:
            continue
        present.append((region.z_index, order, slot, region, raster))

    for _, _, slot, region, raster in sorted(present, key=lambda item: (item[0], item[1])):
        try:
            img = decode_raster(raster)
        except ValueError as e:
            _skip(slot, str(e), messages)
            continue

        box = region_to_pixels(region, canvas)
        if box[2] <= 0 or box[3] <= 0:
            _skip(slot, f"region rounds to an empty box {box[2]}x{box[3]}", messages)
            continue

        fitted, pos = fit_layer(slot, ensure_rgba(img), box)
        dest, source = _clip_dest(pos)
        surface.alpha_composite(fitted, dest, source)
        painted.append(slot)
        logger.debug(f"Painted {slot} at {pos} size {fitted.size} (z={region.z_index})")

    return CompositionResult(image=surface.convert("RGB"), warnings=messages, painted=painted)


def _clip_dest(pos):
    # alpha_composite needs a non-negative destination
    x, y = pos
    return (max(0, x), max(0, y)), (max(0, -x), max(0, -y))


def compose(canvas: Canvas, layers: Mapping[str, Optional[RasterLike]], layout: LayoutModel) -> Image.Image:
    """Composite and return just the flattened RGB image."""
    return compose_detailed(canvas, layers, layout).image
