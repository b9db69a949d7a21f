"""Image processing utilities for StoryComposer."""

import io
import logging
import re
from typing import Tuple, Optional, Union

from PIL import Image, ImageColor

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]
Size = Tuple[int, int]

RasterLike = Union[Image.Image, bytes, bytearray]

_RGBA_FUNC = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)$",
    re.IGNORECASE
)


def parse_color(color: Optional[str], default: RGBA = (0, 0, 0, 255)) -> RGBA:
    """
    Convert a CSS-like color string to an RGBA tuple.

    Accepts hex (#rgb, #rrggbb, #rrggbbaa), named colors, ``transparent`` and
    ``rgb()/rgba()`` with a 0-1 float alpha as produced by browser styles.
    """
    if not color:
        return default

    value = color.strip()
    if value.lower() == "transparent":
        return (0, 0, 0, 0)

    match = _RGBA_FUNC.match(value)
    if match:
        r, g, b = (int(round(float(c))) for c in match.group(1, 2, 3))
        alpha = match.group(4)
        if alpha is None:
            a = 255
        elif alpha.endswith("%"):
            a = int(round(float(alpha[:-1]) * 2.55))
        else:
            a = float(alpha)
            # 0-1 floats come from CSS, larger values are already 0-255
            a = int(round(a * 255)) if a <= 1.0 else int(a)
        return (_clamp(r), _clamp(g), _clamp(b), _clamp(a))

    try:
        rgb = ImageColor.getrgb(value)
    except ValueError:
        logger.warning(f"Unrecognized color '{color}', using default {default}")
        return default

    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return rgb  # type: ignore[return-value]


def _clamp(v: int) -> int:
    return max(0, min(255, v))


def to_unit_rgba(color: RGBA) -> Tuple[float, float, float, float]:
    """RGBA 0-255 to 0-1 floats (matplotlib color format)."""
    return tuple(c / 255.0 for c in color)  # type: ignore[return-value]


def ensure_rgba(img: Image.Image) -> Image.Image:
    """Return an RGBA view of the image, converting only if needed."""
    if img.mode != 'RGBA':
        return img.convert('RGBA')
    return img


def decode_raster(raster: RasterLike) -> Image.Image:
    """
    Turn an in-memory raster into a loaded PIL image.

    Raises:
        ValueError: If the data cannot be decoded or has zero area
    """
    if isinstance(raster, Image.Image):
        img = raster
    elif isinstance(raster, (bytes, bytearray)):
        try:
            img = Image.open(io.BytesIO(bytes(raster)))
            img.load()
        except Exception as e:
            raise ValueError(f"undecodable raster: {e}") from e
    else:
        raise ValueError(f"unsupported raster type: {type(raster).__name__}")

    if img.width <= 0 or img.height <= 0:
        raise ValueError(f"raster has zero size: {img.width}x{img.height}")
    return img


def contain_size(source: Size, box: Size) -> Size:
    """
    Largest size with the source aspect ratio that fits inside the box.

    Assumes the full box width first and switches to the full box height
    when the derived height would overflow.
    """
    src_w, src_h = source
    box_w, box_h = box
    aspect = src_w / src_h

    width = box_w
    height = int(round(box_w / aspect))
    if height > box_h:
        height = box_h
        width = int(round(box_h * aspect))

    return max(1, width), max(1, height)


def fit_width_size(source: Size, target_width: int) -> Size:
    """Scale to the target width, deriving height from the source aspect ratio."""
    src_w, src_h = source
    height = int(round(target_width * src_h / src_w))
    return max(1, target_width), max(1, height)


def image_to_png_bytes(img: Image.Image) -> bytes:
    """Encode an image as PNG bytes."""
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
