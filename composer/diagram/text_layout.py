"""
Text layout for panels.

Word wrapping with hyphenation, multi-paragraph handling and alignment,
shared by the caption panels, equation fallbacks and diagram labels.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple, Optional

import pyphen
from PIL import ImageDraw

from .fonts import FontType, line_height

logger = logging.getLogger(__name__)

_engines = {}


@dataclass
class LayoutLine:
    """A single line of text with layout information."""
    text: str
    width: float  # Actual width in pixels
    word_count: int
    has_hyphen: bool = False
    is_paragraph_end: bool = False


@dataclass
class LayoutParagraph:
    """A paragraph with its layout lines."""
    lines: List[LayoutLine] = field(default_factory=list)
    spacing_after: int = 0  # Pixels to add after this paragraph


@dataclass
class TextBlock:
    """Result of laying out a whole text."""
    paragraphs: List[LayoutParagraph]
    height: int
    line_height: int
    truncated: bool = False

    @property
    def lines(self) -> List[LayoutLine]:
        return [line for para in self.paragraphs for line in para.lines]

    @property
    def width(self) -> float:
        return max((line.width for line in self.lines), default=0)


class TextLayoutEngine:
    """
    Text layout engine with support for:
    - Word wrapping with hyphenation
    - Hard breaks for words wider than the box
    - Multi-paragraph handling
    """

    def __init__(self, language: str = "en_US"):
        """
        Initialize the text layout engine.

        Args:
            language: Language code for hyphenation (e.g., 'en_US', 'en_GB')
        """
        self.language = language
        self.hyphenator = None
        try:
            self.hyphenator = pyphen.Pyphen(lang=language)
        except KeyError:
            logger.warning(f"No hyphenation dictionary for {language}, hyphenation disabled")

    def wrap(self, text: str, font: FontType, max_width: float) -> List[LayoutLine]:
        """Wrap a single paragraph into lines no wider than max_width where possible."""
        words = text.split()
        lines: List[LayoutLine] = []
        current: List[str] = []
        current_width = 0.0

        for word in words:
            test_text = " ".join(current + [word])
            test_width = font.getlength(test_text)

            if test_width <= max_width:
                current.append(word)
                current_width = test_width
                continue

            if current and self.hyphenator and len(word) > 6:
                hyphenated = self._try_hyphenate(word, current, font, max_width)
                if hyphenated:
                    line_text, remaining = hyphenated
                    lines.append(LayoutLine(
                        text=line_text,
                        width=font.getlength(line_text),
                        word_count=len(current) + 1,
                        has_hyphen=True
                    ))
                    current, current_width = [], 0.0
                    word = remaining

            if current:
                lines.append(LayoutLine(
                    text=" ".join(current),
                    width=current_width,
                    word_count=len(current)
                ))
                current, current_width = [], 0.0

            # Word alone may still overflow the box
            while font.getlength(word) > max_width and len(word) > 1:
                head, word = self._hard_break(word, font, max_width)
                lines.append(LayoutLine(text=head, width=font.getlength(head), word_count=1))

            current = [word]
            current_width = font.getlength(word)

        if current:
            lines.append(LayoutLine(
                text=" ".join(current),
                width=current_width,
                word_count=len(current)
            ))

        return lines

    def _try_hyphenate(
        self,
        word: str,
        current_line: List[str],
        font: FontType,
        max_width: float
    ) -> Optional[Tuple[str, str]]:
        """
        Try to hyphenate a word to fit on the current line.

        Returns:
            Tuple of (line_with_hyphen, remaining_text) or None if can't hyphenate
        """
        positions = self.hyphenator.positions(word)
        for pos in reversed(positions):
            prefix = word[:pos] + "-"
            test_text = " ".join(current_line + [prefix])
            if font.getlength(test_text) <= max_width:
                return test_text, word[pos:]
        return None

    @staticmethod
    def _hard_break(word: str, font: FontType, max_width: float) -> Tuple[str, str]:
        cut = len(word) - 1
        while cut > 1 and font.getlength(word[:cut]) > max_width:
            cut -= 1
        return word[:cut], word[cut:]

    def layout_text(
        self,
        text: str,
        font: FontType,
        max_width: float,
        max_height: Optional[int] = None,
        line_spacing: float = 1.2
    ) -> TextBlock:
        """
        Layout text into paragraphs and lines.

        Paragraphs are separated by blank lines; single newlines are kept as
        line breaks. Lines that do not fit ``max_height`` are dropped and the
        block is marked truncated.
        """
        line_height_px = max(1, int(line_height(font) * line_spacing))
        paragraphs: List[LayoutParagraph] = []
        total_height = 0
        truncated = False

        chunks = [p for p in text.replace("\r\n", "\n").split("\n\n") if p.strip()]
        for i, chunk in enumerate(chunks):
            lines: List[LayoutLine] = []
            for raw_line in chunk.strip().split("\n"):
                lines.extend(self.wrap(raw_line, font, max_width))
            if not lines:
                continue

            spacing_after = 0 if i == len(chunks) - 1 else line_height_px // 2
            para_height = len(lines) * line_height_px

            if max_height is not None and total_height + para_height > max_height:
                fit = max(0, (max_height - total_height) // line_height_px)
                truncated = True
                lines = lines[:fit]
                if not lines:
                    break
                para_height = len(lines) * line_height_px
                spacing_after = 0

            lines[-1].is_paragraph_end = True
            paragraphs.append(LayoutParagraph(lines=lines, spacing_after=spacing_after))
            total_height += para_height + spacing_after
            if truncated:
                break

        if paragraphs:
            total_height -= paragraphs[-1].spacing_after
            paragraphs[-1].spacing_after = 0

        return TextBlock(paragraphs=paragraphs, height=total_height,
                         line_height=line_height_px, truncated=truncated)

    def draw_layout(
        self,
        block: TextBlock,
        draw: ImageDraw.ImageDraw,
        origin: Tuple[float, float],
        font: FontType,
        color,
        box_width: float,
        align: str = "left"
    ) -> None:
        """
        Draw laid-out text.

        Args:
            block: Laid-out text
            draw: ImageDraw instance
            origin: Top-left position (x, y)
            font: Font used for the layout
            color: Fill color
            box_width: Width of text box for alignment
            align: left, center or right
        """
        x, y = origin
        current_y = y
        for para in block.paragraphs:
            for line in para.lines:
                if align == "center":
                    tx = x + (box_width - line.width) / 2
                elif align == "right":
                    tx = x + box_width - line.width
                else:
                    tx = x
                draw.text((tx, current_y), line.text, fill=color, font=font)
                current_y += block.line_height
            current_y += para.spacing_after


def get_layout_engine(language: str = "en_US") -> TextLayoutEngine:
    """Cached engine per hyphenation language."""
    engine = _engines.get(language)
    if engine is None:
        engine = TextLayoutEngine(language)
        _engines[language] = engine
    return engine
