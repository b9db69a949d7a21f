"""
Layout presets and canvas sizing.

Presets are authored in pixels against one reference canvas and converted to
normalized units for whatever canvas the book uses.
"""

import logging
from typing import Dict, Tuple, Union

from ..constants import (
    SLOT_IMAGE, SLOT_TEXT_PANEL, SLOT_DIAGRAM_PANEL,
    PORTRAIT_BASE_WIDTH, LANDSCAPE_BASE_WIDTH, NORMALIZED_MAX,
)
from .models import Canvas, Region, LayoutModel, ENCODING_ABSOLUTE, ENCODING_NORMALIZED

logger = logging.getLogger(__name__)


PRESET_LAYOUTS: Dict[str, LayoutModel] = {
    "overlay": LayoutModel(
        type="overlay",
        canvas=Canvas(1920, 1080, "16:9"),
        encoding=ENCODING_ABSOLUTE,
        elements={
            SLOT_IMAGE: Region(0, 0, 1920, 1080, 1),
            SLOT_TEXT_PANEL: Region(100, 850, 1720, 180, 2),
            SLOT_DIAGRAM_PANEL: Region(100, 50, 1200, 400, 3),
        },
    ),
    "comic-sidebyside": LayoutModel(
        type="comic-sidebyside",
        canvas=Canvas(1920, 1080, "16:9"),
        encoding=ENCODING_ABSOLUTE,
        elements={
            SLOT_IMAGE: Region(0, 0, 960, 1080, 1),
            SLOT_TEXT_PANEL: Region(980, 540, 920, 520, 2),
            SLOT_DIAGRAM_PANEL: Region(980, 20, 920, 500, 3),
        },
    ),
    "comic-vertical": LayoutModel(
        type="comic-vertical",
        canvas=Canvas(1080, 1920, "9:16"),
        encoding=ENCODING_ABSOLUTE,
        elements={
            SLOT_IMAGE: Region(0, 0, 1080, 960, 1),
            SLOT_TEXT_PANEL: Region(20, 1440, 1040, 460, 2),
            SLOT_DIAGRAM_PANEL: Region(20, 980, 1040, 440, 3),
        },
    ),
}


def parse_aspect_ratio(label: str) -> Tuple[int, int]:
    """
    Parse a ``"W:H"`` aspect label.

    Raises:
        ValueError: If the label is malformed or non-positive
    """
    try:
        w_str, h_str = label.split(":")
        w, h = int(w_str), int(h_str)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid aspect ratio '{label}', expected 'W:H'") from e
    if w <= 0 or h <= 0:
        raise ValueError(f"Invalid aspect ratio '{label}', both terms must be positive")
    return w, h


def canvas_for_aspect_ratio(label: str) -> Canvas:
    """
    Standard canvas dimensions for an aspect ratio.

    Portrait ratios use a 1080px width, landscape and square a 1920px width;
    the height follows from the ratio, rounded.
    """
    w_ratio, h_ratio = parse_aspect_ratio(label)
    width = PORTRAIT_BASE_WIDTH if w_ratio < h_ratio else LANDSCAPE_BASE_WIDTH
    height = int(round(width * h_ratio / w_ratio))
    return Canvas(width, height, label)


def create_default(canvas_aspect_ratio: Union[str, Canvas]) -> LayoutModel:
    """
    Default overlay layout: full-bleed image, text band at the bottom,
    diagram panel in the upper left.
    """
    if isinstance(canvas_aspect_ratio, Canvas):
        canvas = Canvas(canvas_aspect_ratio.width, canvas_aspect_ratio.height,
                        canvas_aspect_ratio.aspect_ratio)
    else:
        canvas = canvas_for_aspect_ratio(canvas_aspect_ratio)

    return LayoutModel(
        type="overlay",
        canvas=canvas,
        elements={
            SLOT_IMAGE: Region(0, 0, 100, 100, 1),
            SLOT_TEXT_PANEL: Region(5, 78, 90, 17, 2),
            SLOT_DIAGRAM_PANEL: Region(5, 5, 60, 40, 3),
        },
    )


def rescale_layout(model: LayoutModel, target_canvas: Canvas) -> LayoutModel:
    """
    Re-target a layout to another canvas.

    Each region is scaled linearly (scale_x = target/source width, same for Y)
    and expressed in normalized units, so the result is always normalized.
    """
    source = model.canvas
    scale_x = target_canvas.width / source.width
    scale_y = target_canvas.height / source.height

    elements = {}
    for slot, r in model.elements.items():
        if model.encoding == ENCODING_ABSOLUTE:
            # pixels on the source canvas -> pixels on the target -> percent
            x, w = r.x * scale_x, r.width * scale_x
            y, h = r.y * scale_y, r.height * scale_y
            elements[slot] = Region(
                x=x / target_canvas.width * NORMALIZED_MAX,
                y=y / target_canvas.height * NORMALIZED_MAX,
                width=w / target_canvas.width * NORMALIZED_MAX,
                height=h / target_canvas.height * NORMALIZED_MAX,
                z_index=r.z_index,
            )
        else:
            elements[slot] = Region(r.x, r.y, r.width, r.height, r.z_index)

    logger.debug(
        f"Rescaled {model.type} layout {source.width}x{source.height} -> "
        f"{target_canvas.width}x{target_canvas.height} (scale {scale_x:.3f}, {scale_y:.3f})"
    )
    return LayoutModel(
        type=model.type,
        canvas=Canvas(target_canvas.width, target_canvas.height, target_canvas.aspect_ratio),
        elements=elements,
        encoding=ENCODING_NORMALIZED,
    )


def preset_names():
    return sorted(PRESET_LAYOUTS.keys())


def apply_preset(name: str, target_canvas: Canvas) -> LayoutModel:
    """
    Load a preset and re-target it to the given canvas.

    Raises:
        ValueError: If the preset name is unknown
    """
    preset = PRESET_LAYOUTS.get(name)
    if preset is None:
        raise ValueError(f"Unknown layout preset '{name}', expected one of {preset_names()}")

    logger.info(f"Applying preset '{name}' to {target_canvas.width}x{target_canvas.height} canvas")
    return rescale_layout(preset, target_canvas)
