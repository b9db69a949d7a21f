"""Board surfaces: background fill, optional texture and border treatment."""

import logging

from PIL import Image, ImageChops, ImageDraw, ImageFilter

from ..constants import SHADOW_INSET
from ..image_utils import parse_color
from .theme import Theme

logger = logging.getLogger(__name__)

INNER_SHADOW = (0, 0, 0, 77)   # rgba(0,0,0,0.3)
DROP_SHADOW = (0, 0, 0, 128)   # rgba(0,0,0,0.5)
DROP_SHADOW_BLUR = 10
DROP_SHADOW_OFFSET = 5

# Noise amplitude per board kind (+/- this many levels)
TEXTURE_AMPLITUDE = {"dark": 5, "light": 2}


def border_allowance(theme: Theme) -> int:
    if theme.border_kind == "frame":
        return theme.effective_border_width
    if theme.border_kind == "shadow":
        return SHADOW_INSET
    return 0


def content_inset(theme: Theme) -> int:
    """Distance from the surface edge to the drawable interior."""
    return max(0, int(theme.padding)) + border_allowance(theme)


def _apply_texture(img: Image.Image, amplitude: int) -> Image.Image:
    """Add subtle chalk/marker noise to the RGB channels."""
    noise = Image.effect_noise(img.size, 64)
    up = noise.point(lambda v: max(0, v - 128) * amplitude // 128)
    down = noise.point(lambda v: max(0, 128 - v) * amplitude // 128)
    r, g, b, a = img.split()
    rgb = Image.merge("RGB", (r, g, b))
    rgb = ImageChops.add(rgb, Image.merge("RGB", (up, up, up)))
    rgb = ImageChops.subtract(rgb, Image.merge("RGB", (down, down, down)))
    rgb.putalpha(a)
    return rgb


def _draw_frame(img: Image.Image, theme: Theme) -> Image.Image:
    w, h = img.size
    bw = theme.effective_border_width
    border_color = parse_color(theme.border_color or "#8b7355")

    draw = ImageDraw.Draw(img)
    draw.rectangle([0, 0, w - 1, h - 1], outline=border_color, width=bw)

    # Inner hairline for depth
    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    ImageDraw.Draw(overlay).rectangle(
        [bw + 2, bw + 2, w - bw - 3, h - bw - 3], outline=INNER_SHADOW, width=2
    )
    return Image.alpha_composite(img, overlay)


def _draw_shadow(img: Image.Image, theme: Theme) -> Image.Image:
    """Drop shadow under a fill inset by the shadow allowance."""
    w, h = img.size
    inset = SHADOW_INSET
    fill = parse_color(theme.background_color)

    base = Image.new("RGBA", img.size, (0, 0, 0, 0))
    shadow = Image.new("RGBA", img.size, (0, 0, 0, 0))
    ImageDraw.Draw(shadow).rectangle(
        [inset + DROP_SHADOW_OFFSET, inset + DROP_SHADOW_OFFSET,
         w - inset + DROP_SHADOW_OFFSET - 1, h - inset + DROP_SHADOW_OFFSET - 1],
        fill=DROP_SHADOW,
    )
    base = Image.alpha_composite(base, shadow.filter(ImageFilter.GaussianBlur(DROP_SHADOW_BLUR)))

    panel = img.crop((inset, inset, w - inset, h - inset))
    if fill[3] == 0:
        panel = Image.new("RGBA", panel.size, (0, 0, 0, 0))
    base.alpha_composite(panel, (inset, inset))
    return base


def create_board(width: int, height: int, theme: Theme) -> Image.Image:
    """
    Create the board surface for a panel.

    Args:
        width: Surface width in pixels
        height: Surface height in pixels
        theme: Board theme

    Returns:
        RGBA image with background, texture and border applied
    """
    background = parse_color(theme.background_color)
    img = Image.new("RGBA", (width, height), background)

    if theme.texture and background[3] > 0:
        amplitude = TEXTURE_AMPLITUDE.get(theme.board_kind, 0)
        if amplitude:
            img = _apply_texture(img, amplitude)

    if theme.border_kind == "frame":
        img = _draw_frame(img, theme)
    elif theme.border_kind == "shadow":
        img = _draw_shadow(img, theme)

    return img
