"""
Formatted text panels.

Lightweight markup is parsed with markdown-it-py into blocks of styled
spans, wrapped to the panel width and laid out top-down with fixed block
spacing.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from markdown_it import MarkdownIt
from PIL import Image, ImageDraw

from ..constants import HEADING_SCALES, TEXT_LINE_HEIGHT, CODE_LINE_HEIGHT
from ..image_utils import parse_color
from .fonts import FontManager, FontType
from .text_layout import TextLayoutEngine

logger = logging.getLogger(__name__)

HEADING_LINE_HEIGHT = 1.25
LIST_INDENT = 30
MARKER_GAP = 8
RULE_THICKNESS = 1

# (margin_top, margin_bottom) per block kind; adjacent margins collapse
BLOCK_MARGINS = {
    "h1": (0, 20),
    "h2": (20, 15),
    "h3": (15, 10),
    "h": (15, 10),
    "paragraph": (0, 15),
    "list_item": (0, 8),
    "code": (0, 15),
    "rule": (10, 10),
}
LIST_MARGIN_BOTTOM = 15

_md = MarkdownIt("commonmark")


@dataclass
class Span:
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False


@dataclass
class Block:
    kind: str  # heading | paragraph | list_item | code | rule
    spans: List[Span] = field(default_factory=list)
    level: int = 0          # heading level
    depth: int = 0          # list / quote nesting
    marker: Optional[str] = None
    text: str = ""          # code blocks
    last_in_list: bool = False

    @property
    def margin_key(self) -> str:
        if self.kind == "heading":
            return f"h{self.level}" if self.level <= 3 else "h"
        return self.kind


@dataclass
class TextOp:
    x: float
    y: float
    text: str
    font: FontType
    color: str


@dataclass
class MarkupLayout:
    ops: List[TextOp]
    rules: List[Tuple[float, float, float]]  # (x0, y, x1)
    width: int
    height: int
    color: str = "#000000"


def _inline_spans(token) -> List[Span]:
    spans: List[Span] = []
    bold = italic = 0
    for child in token.children or []:
        if child.type == "strong_open":
            bold += 1
        elif child.type == "strong_close":
            bold -= 1
        elif child.type == "em_open":
            italic += 1
        elif child.type == "em_close":
            italic -= 1
        elif child.type == "text":
            spans.append(Span(child.content, bold > 0, italic > 0))
        elif child.type == "code_inline":
            spans.append(Span(child.content, code=True))
        elif child.type == "softbreak":
            spans.append(Span(" ", bold > 0, italic > 0))
        elif child.type == "hardbreak":
            spans.append(Span("\n"))
        elif child.type == "image":
            spans.append(Span(child.content, bold > 0, italic > 0))
    return spans


def parse_markup(content: str) -> List[Block]:
    """Turn markup into a flat list of blocks."""
    tokens = _md.parse(content)
    blocks: List[Block] = []
    lists: List[List] = []  # stack of [ordered, counter]
    quote_depth = 0
    pending_marker: Optional[str] = None
    item_has_text = False
    heading_level = 0

    for token in tokens:
        t = token.type
        if t == "heading_open":
            heading_level = int(token.tag[1])
        elif t == "heading_close":
            heading_level = 0
        elif t in ("bullet_list_open", "ordered_list_open"):
            start = int(token.attrGet("start") or 1)
            lists.append([t == "ordered_list_open", start - 1])
        elif t in ("bullet_list_close", "ordered_list_close"):
            lists.pop()
            for block in reversed(blocks):
                if block.kind == "list_item":
                    block.last_in_list = True
                    break
        elif t == "list_item_open":
            lists[-1][1] += 1
            ordered, counter = lists[-1]
            pending_marker = f"{counter}." if ordered else "•"
            item_has_text = False
        elif t == "blockquote_open":
            quote_depth += 1
        elif t == "blockquote_close":
            quote_depth -= 1
        elif t == "inline":
            spans = _inline_spans(token)
            if heading_level:
                blocks.append(Block("heading", spans, level=heading_level, depth=quote_depth))
            elif lists:
                blocks.append(Block(
                    "list_item", spans, depth=len(lists) + quote_depth,
                    marker=pending_marker if not item_has_text else None,
                ))
                item_has_text = True
            else:
                blocks.append(Block("paragraph", spans, depth=quote_depth))
        elif t in ("fence", "code_block"):
            blocks.append(Block("code", text=token.content.rstrip("\n"), depth=len(lists) + quote_depth))
        elif t == "hr":
            blocks.append(Block("rule", depth=quote_depth))
    return blocks


class MarkupLayoutEngine:
    """Wraps styled spans and stacks blocks."""

    def __init__(self, fonts: FontManager, text_families: List[str], mono_families: List[str],
                 font_size: int, color: str):
        self.fonts = fonts
        self.text_families = text_families
        self.mono_families = mono_families
        self.font_size = font_size
        self.color = color

    def _font(self, span: Span, size: int, heading: bool) -> FontType:
        if span.code:
            return self.fonts.pil_font(self.mono_families, size)
        return self.fonts.pil_font(self.text_families, size, bold=span.bold or heading, italic=span.italic)

    def _wrap(self, spans: List[Span], size: int, heading: bool, max_width: float):
        """Greedy wrap of styled words. Returns lines of (x, text, font)."""
        lines: List[List[Tuple[float, str, FontType]]] = [[]]
        x = 0.0
        pending_space = 0.0
        for span in spans:
            font = self._font(span, size, heading)
            if span.text == "\n":
                lines.append([])
                x, pending_space = 0.0, 0.0
                continue
            pieces = span.text.split(" ")
            for j, word in enumerate(pieces):
                if j > 0:
                    pending_space = font.getlength(" ") if (x > 0 or lines[-1]) else 0.0
                if not word:
                    continue
                width = font.getlength(word)
                if x > 0 and x + pending_space + width > max_width:
                    lines.append([])
                    x, pending_space = 0.0, 0.0
                while width > max_width and len(word) > 1 and x == 0:
                    head, word = TextLayoutEngine._hard_break(word, font, max_width)
                    lines[-1].append((0.0, head, font))
                    lines.append([])
                    width = font.getlength(word)
                lines[-1].append((x + pending_space, word, font))
                x += pending_space + width
                pending_space = 0.0
        return [line for line in lines if line] or []

    def layout(self, blocks: List[Block], max_width: float) -> MarkupLayout:
        ops: List[TextOp] = []
        rules: List[Tuple[float, float, float]] = []
        y = 0.0
        widest = 0.0
        prev_bottom: Optional[float] = None

        for block in blocks:
            top, bottom = BLOCK_MARGINS[block.margin_key]
            if block.last_in_list:
                bottom = max(bottom, LIST_MARGIN_BOTTOM)
            if prev_bottom is not None:
                y += max(prev_bottom, top)
            indent = block.depth * LIST_INDENT
            avail = max(1.0, max_width - indent)

            if block.kind == "rule":
                rules.append((indent, y, max_width))
                widest = max(widest, max_width)
                y += RULE_THICKNESS
            elif block.kind == "code":
                font = self.fonts.pil_font(self.mono_families, self.font_size)
                lh = self.font_size * CODE_LINE_HEIGHT
                for line in block.text.split("\n"):
                    ops.append(TextOp(indent, y, line, font, self.color))
                    widest = max(widest, indent + font.getlength(line))
                    y += lh
            else:
                heading = block.kind == "heading"
                scale = HEADING_SCALES.get(block.level, 1.0) if heading else 1.0
                size = max(1, int(round(self.font_size * scale)))
                lh = size * (HEADING_LINE_HEIGHT if heading else TEXT_LINE_HEIGHT)
                if block.marker:
                    marker_font = self.fonts.pil_font(self.text_families, size)
                    mx = indent - MARKER_GAP - marker_font.getlength(block.marker)
                    ops.append(TextOp(max(0.0, mx), y, block.marker, marker_font, self.color))
                lines = self._wrap(block.spans, size, heading, avail)
                for line in lines:
                    for x, text, font in line:
                        ops.append(TextOp(indent + x, y, text, font, self.color))
                    last_x, last_text, last_font = line[-1]
                    widest = max(widest, indent + last_x + last_font.getlength(last_text))
                    y += lh
                if not lines:
                    y += lh
            prev_bottom = bottom

        return MarkupLayout(ops=ops, rules=rules,
                            width=int(math.ceil(widest)), height=int(math.ceil(y)),
                            color=self.color)


def paint_markup(layout: MarkupLayout, size: Tuple[int, int]) -> Image.Image:
    """Draw a laid-out markup block onto a transparent image (clipped to size)."""
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    for op in layout.ops:
        draw.text((op.x, op.y), op.text, fill=parse_color(op.color), font=op.font)
    for x0, y, x1 in layout.rules:
        draw.line([(x0, y), (x1, y)], fill=parse_color(layout.color), width=RULE_THICKNESS)
    return img
