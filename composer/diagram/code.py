"""Code listings: monospace lines with pygments token colors."""

import logging
import math
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw
from pygments.lexers import get_lexer_by_name
from pygments.token import Token
from pygments.util import ClassNotFound

from ..constants import CODE_LINE_HEIGHT, ELLIPSIS_MARKER
from ..image_utils import parse_color
from .fonts import FontType

logger = logging.getLogger(__name__)

Run = Tuple[str, str]  # (text, color)

# Token colors per board, most specific token types first
DARK_PALETTE = [
    (Token.Literal.String.Doc, "#5fdfff"),
    (Token.Comment.Preproc, "#5fdfff"),
    (Token.Comment, "#87ceeb"),
    (Token.Keyword.Constant, "#d787ff"),
    (Token.Keyword.Type, "#5fdfff"),
    (Token.Keyword, "#ff6b9d"),
    (Token.Name.Function, "#5fff87"),
    (Token.Name.Class, "#5fdfff"),
    (Token.Name.Builtin, "#5fdfff"),
    (Token.Name.Decorator, "#5fdfff"),
    (Token.Name.Attribute, "#5fff87"),
    (Token.Name.Tag, "#ff6b9d"),
    (Token.Name.Variable, "#ffffff"),
    (Token.Literal.String, "#ffff5f"),
    (Token.Literal.Number, "#d787ff"),
    (Token.Operator, "#ff6b9d"),
    (Token.Punctuation, "#ffffff"),
]

LIGHT_PALETTE = [
    (Token.Literal.String.Doc, "#6a737d"),
    (Token.Comment.Preproc, "#6a737d"),
    (Token.Comment, "#6a737d"),
    (Token.Keyword.Constant, "#6f42c1"),
    (Token.Keyword.Type, "#005cc5"),
    (Token.Keyword, "#d73a49"),
    (Token.Name.Function, "#005cc5"),
    (Token.Name.Class, "#d73a49"),
    (Token.Name.Builtin, "#005cc5"),
    (Token.Name.Decorator, "#6a737d"),
    (Token.Name.Attribute, "#005cc5"),
    (Token.Name.Tag, "#d73a49"),
    (Token.Name.Variable, "#24292e"),
    (Token.Literal.String, "#22863a"),
    (Token.Literal.Number, "#6f42c1"),
    (Token.Operator, "#d73a49"),
    (Token.Punctuation, "#24292e"),
]


def palette_for(board_kind: str):
    return DARK_PALETTE if board_kind == "dark" else LIGHT_PALETTE


def _color_for(ttype, palette, default: str) -> str:
    for token_type, color in palette:
        if ttype in token_type:
            return color
    return default


def split_lines(content: str) -> List[str]:
    lines = content.replace("\r\n", "\n").split("\n")
    # A trailing newline does not start another line
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return [line.expandtabs(4) for line in lines]


def highlight(content: str, language: Optional[str], board_kind: str, default_color: str) -> List[List[Run]]:
    """
    Split code into per-line colored runs.

    Unknown or missing languages produce single plain runs per line.
    """
    lines = split_lines(content)
    if not language:
        return [[(line, default_color)] for line in lines]

    try:
        lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
    except ClassNotFound:
        logger.debug(f"No lexer for language '{language}', drawing plain text")
        return [[(line, default_color)] for line in lines]

    palette = palette_for(board_kind)
    result: List[List[Run]] = [[]]
    for ttype, value in lexer.get_tokens("\n".join(lines)):
        color = _color_for(ttype, palette, default_color)
        parts = value.expandtabs(4).split("\n")
        for i, part in enumerate(parts):
            if i > 0:
                result.append([])
            if part:
                result[-1].append((part, color))
    # Keep the row count identical to the source
    while len(result) < len(lines):
        result.append([])
    return result[:len(lines)]


def code_line_height(font_size: int) -> float:
    return font_size * CODE_LINE_HEIGHT


def natural_size(content: str, font: FontType, font_size: int) -> Tuple[int, int]:
    """Width of the longest line and height of all lines, unclipped."""
    lines = split_lines(content)
    width = max((font.getlength(line) for line in lines), default=0)
    height = len(lines) * code_line_height(font_size)
    return int(math.ceil(width)), int(math.ceil(height))


def paint_code(rows: List[List[Run]], font: FontType, font_size: int,
               size: Tuple[int, int], default_color: str) -> Tuple[Image.Image, bool]:
    """
    Draw rows top/left aligned into a transparent image of the given size.

    Rows that do not fit are dropped and the last visible row becomes the
    ellipsis marker.

    Returns:
        (image, truncated)
    """
    width, height = size
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    lh = code_line_height(font_size)

    capacity = int(height // lh)
    truncated = len(rows) > capacity
    visible = rows[:max(0, capacity - 1)] if truncated else rows

    y = 0.0
    for runs in visible:
        x = 0.0
        for text, color in runs:
            draw.text((x, y), text, fill=parse_color(color), font=font)
            x += font.getlength(text)
        y += lh

    if truncated and capacity >= 1:
        draw.text((0, y), ELLIPSIS_MARKER, fill=parse_color(default_color), font=font)

    return img, truncated
