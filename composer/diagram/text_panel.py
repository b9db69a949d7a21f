"""
Caption panels.

Plain story text on a rounded, bordered box, plus the fit measurement the
editor uses to size the text panel region.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw

from ..constants import DEFAULT_TEXT_FAMILIES
from ..image_utils import parse_color
from .fonts import FontManager, FontType, get_font_manager, split_families
from .text_layout import get_layout_engine

logger = logging.getLogger(__name__)


@dataclass
class PanelStyle:
    """Styling for a caption panel."""
    background_color: str = "#000000cc"
    border_color: str = "#ffffff"
    border_width: int = 2
    border_radius: int = 8
    padding: int = 20
    font_family: str = "Arial, sans-serif"
    font_size: Optional[int] = None  # None: derived from panel height
    font_color: str = "#ffffff"
    line_height: float = 1.3         # multiple of font size
    align: str = "center"            # left | center | right
    language: str = "en_US"          # hyphenation dictionary

    def resolved_font_size(self, panel_height: int) -> int:
        if self.font_size:
            return int(self.font_size)
        return max(1, int(round(panel_height / 6)))

    def line_height_px(self, font_size: int) -> int:
        return max(1, int(round(font_size * self.line_height)))


@dataclass
class TextFitResult:
    fits: bool
    required_height: int
    required_height_percentage: int
    line_count: int


def wrap_panel_text(text: str, font: FontType, inner_width: float, language: str = "en_US") -> List[str]:
    """Wrap text to the inner width; blank source lines are kept as empty lines."""
    engine = get_layout_engine(language)
    lines: List[str] = []
    for paragraph in text.replace("\r\n", "\n").split("\n"):
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(line.text for line in engine.wrap(paragraph, font, inner_width))
    return lines


def _panel_font(style: PanelStyle, size: int, fonts: FontManager) -> FontType:
    return fonts.pil_font(split_families(style.font_family, DEFAULT_TEXT_FAMILIES), size)


def measure_text_fit(text: str, panel_width: int, panel_height: int,
                     style: Optional[PanelStyle] = None,
                     canvas_height: Optional[int] = None,
                     fonts: Optional[FontManager] = None) -> TextFitResult:
    """
    Measure whether text fits a panel of the given pixel size.

    Args:
        text: Caption text
        panel_width: Panel width in pixels
        panel_height: Panel height in pixels
        style: Panel styling (defaults to PanelStyle())
        canvas_height: Height the percentage is relative to (defaults to panel height)
        fonts: Font manager (defaults to the shared one)

    Returns:
        TextFitResult with the required height in pixels and as a percentage
    """
    style = style or PanelStyle()
    fonts = fonts or get_font_manager()
    font_size = style.resolved_font_size(panel_height)
    font = _panel_font(style, font_size, fonts)

    inner_width = max(1, panel_width - style.padding * 2)
    lines = wrap_panel_text(text, font, inner_width, style.language)
    required = len(lines) * style.line_height_px(font_size) + style.padding * 2

    reference = canvas_height or panel_height
    percentage = int(math.ceil(required * 100 / reference)) if reference > 0 else 0
    return TextFitResult(
        fits=required <= panel_height,
        required_height=required,
        required_height_percentage=percentage,
        line_count=len(lines),
    )


class TextPanelRenderer:
    """Draws caption panels."""

    def __init__(self, fonts: Optional[FontManager] = None):
        self._fonts = fonts

    @property
    def fonts(self) -> FontManager:
        if self._fonts is None:
            self._fonts = get_font_manager()
        return self._fonts

    def render(self, text: str, size: Tuple[int, int], style: Optional[PanelStyle] = None) -> Image.Image:
        """
        Render a caption panel.

        Lines that would cross the bottom padding are not drawn.

        Raises:
            ValueError: If the panel size is not positive
        """
        width, height = size
        if width <= 0 or height <= 0:
            raise ValueError(f"Panel size must be positive, got {width}x{height}")
        style = style or PanelStyle()

        img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        draw.rounded_rectangle(
            [0, 0, width - 1, height - 1],
            radius=style.border_radius,
            fill=parse_color(style.background_color),
            outline=parse_color(style.border_color) if style.border_width > 0 else None,
            width=max(0, style.border_width),
        )

        font_size = style.resolved_font_size(height)
        font = _panel_font(style, font_size, self.fonts)
        line_h = style.line_height_px(font_size)
        inner_w = max(1, width - style.padding * 2)
        color = parse_color(style.font_color)

        y = style.padding
        drawn = 0
        lines = wrap_panel_text(text, font, inner_w, style.language)
        for line in lines:
            if y + line_h > height - style.padding:
                break
            line_w = font.getlength(line)
            x = style.padding
            if style.align == "center":
                x = style.padding + (inner_w - line_w) / 2
            elif style.align == "right":
                x = style.padding + inner_w - line_w
            draw.text((x, y), line, fill=color, font=font)
            y += line_h
            drawn += 1

        if drawn < len(lines):
            logger.debug(f"Caption clipped: {drawn} of {len(lines)} lines drawn")
        return img
