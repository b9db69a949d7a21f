"""
Equation typesetting with matplotlib mathtext.

Each non-empty line becomes one transparent block; lines that mathtext
rejects fall back to their raw source, word-wrapped.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.font_manager import FontProperties
from matplotlib.mathtext import MathTextParser
from PIL import Image, ImageDraw

from ..image_utils import parse_color, to_unit_rgba
from .fonts import FontManager
from .text_layout import get_layout_engine

logger = logging.getLogger(__name__)

# Display math is set slightly larger than body text
EQUATION_FONT_SCALE = 1.2
# 1pt == 1px at this resolution
TYPESET_DPI = 72

_DISPLAY_DELIMITERS = [
    (re.compile(r'^\$\$(.+)\$\$$', re.DOTALL), r'$\1$'),
    (re.compile(r'^\\\[(.+)\\\]$', re.DOTALL), r'$\1$'),
    (re.compile(r'^\\\((.+)\\\)$', re.DOTALL), r'$\1$'),
]

_parser = MathTextParser("path")


@dataclass
class EquationBlock:
    source: str
    image: Image.Image
    fallback: bool = False

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


def to_mathtext(line: str) -> str:
    """Normalize TeX delimiters to mathtext's single-dollar form."""
    stripped = line.strip()
    for pattern, replacement in _DISPLAY_DELIMITERS:
        if pattern.match(stripped):
            return pattern.sub(replacement, stripped)
    if "$" not in stripped:
        return f"${stripped}$"
    return stripped


def typeset(source: str, font_size: float, color: str) -> Image.Image:
    """
    Typeset one line of mathtext onto a tightly sized transparent image.

    Raises:
        ValueError: If mathtext cannot parse the line
    """
    text = to_mathtext(source)
    prop = FontProperties(size=font_size)
    width, height, depth, _, _ = _parser.parse(text, dpi=TYPESET_DPI, prop=prop)
    if width <= 0 or height <= 0:
        raise ValueError(f"nothing to typeset in '{source}'")

    fig = Figure(figsize=(width / TYPESET_DPI, height / TYPESET_DPI), dpi=TYPESET_DPI)
    fig.patch.set_alpha(0)
    fig.text(0, depth / height, text, fontproperties=prop,
             color=to_unit_rgba(parse_color(color)))
    canvas = FigureCanvasAgg(fig)
    canvas.draw()
    size = canvas.get_width_height()
    return Image.frombuffer("RGBA", size, canvas.buffer_rgba(), "raw", "RGBA", 0, 1).copy()


def _fallback_block(source: str, font_size: int, color: str, max_width: int,
                    fonts: FontManager, families: List[str]) -> Image.Image:
    font = fonts.pil_font(families, font_size)
    engine = get_layout_engine()
    block = engine.layout_text(source, font, max(1, max_width))
    width = max(1, int(round(block.width)))
    height = max(1, block.height)
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    engine.draw_layout(block, ImageDraw.Draw(img), (0, 0), font, parse_color(color), width, "center")
    return img


def build_blocks(content: str, font_size: int, color: str, max_width: int,
                 fonts: FontManager, families: List[str],
                 warnings: Optional[List[str]] = None) -> List[EquationBlock]:
    """Typeset every non-empty line, falling back to wrapped raw text per line."""
    blocks = []
    math_size = font_size * EQUATION_FONT_SCALE
    for line in content.splitlines():
        if not line.strip():
            continue
        try:
            img = typeset(line, math_size, color)
            blocks.append(EquationBlock(line, img))
        except ValueError as e:
            message = f"Could not typeset '{line.strip()}': {str(e).splitlines()[0] if str(e) else e}"
            logger.warning(message)
            if warnings is not None:
                warnings.append(message)
            img = _fallback_block(line.strip(), font_size, color, max_width, fonts, families)
            blocks.append(EquationBlock(line, img, fallback=True))
    return blocks


def stack_size(blocks: List[EquationBlock], spacing: int) -> Tuple[int, int]:
    """Size of the vertical stack of blocks."""
    if not blocks:
        return 0, 0
    width = max(b.size[0] for b in blocks)
    height = sum(b.size[1] for b in blocks) + spacing * (len(blocks) - 1)
    return width, height


def paint_stack(blocks: List[EquationBlock], spacing: int, scale: float = 1.0) -> Image.Image:
    """Stack blocks top-down, centered horizontally, at a uniform scale."""
    width, height = stack_size(blocks, spacing)
    out_w = max(1, int(round(width * scale)))
    out_h = max(1, int(round(height * scale)))
    out = Image.new("RGBA", (out_w, out_h), (0, 0, 0, 0))

    y = 0.0
    for block in blocks:
        img = block.image
        if scale != 1.0:
            img = img.resize((max(1, int(round(img.width * scale))),
                              max(1, int(round(img.height * scale)))), Image.Resampling.LANCZOS)
        x = (out_w - img.width) // 2
        out.alpha_composite(img, (x, int(round(y))))
        y += (block.size[1] + spacing) * scale
    return out
